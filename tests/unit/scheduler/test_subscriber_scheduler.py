"""Unit tests for the subscriber sync process."""
import pytest
from unittest.mock import AsyncMock

from roomsync.core.config import Settings
from roomsync.scheduler.subscribers import SubscriberScheduler, build_reconciler
from roomsync.services.subscriber_reconciler import FatalReconciliationError


@pytest.mark.unit
@pytest.mark.asyncio
class TestSubscriberScheduler:
    """Test fatal error propagation."""

    @pytest.mark.critical
    async def test_fatal_error_stops_and_propagates(self):
        """✅ A failed transaction ends run() with the error."""
        reconciler = AsyncMock()
        reconciler.reconcile.side_effect = FatalReconciliationError("rolled back")
        scheduler = SubscriberScheduler(reconciler, interval_seconds=60)

        await scheduler.sync_subscribers()

        assert isinstance(scheduler.fatal_error, FatalReconciliationError)
        with pytest.raises(FatalReconciliationError):
            await scheduler.run()
        assert not scheduler.scheduler.running

    async def test_other_errors_keep_running(self):
        """✅ Non-fatal errors are logged and the loop continues."""
        reconciler = AsyncMock()
        reconciler.reconcile.side_effect = RuntimeError("unexpected")
        scheduler = SubscriberScheduler(reconciler)

        await scheduler.sync_subscribers()
        assert scheduler.fatal_error is None

    async def test_stop_ends_run_cleanly(self):
        """✅ stop() returns from run() without error."""
        scheduler = SubscriberScheduler(AsyncMock(), interval_seconds=60)
        scheduler.stop()
        await scheduler.run()
        assert scheduler.fatal_error is None


@pytest.mark.unit
class TestBuildReconciler:
    """Test provider wiring from configuration."""

    def test_disabled_without_credentials(self):
        """✅ Missing credentials leave the reconciler disabled."""
        reconciler = build_reconciler(Settings(stripe_secret_key=None))
        assert reconciler.billing is None
        assert not reconciler.enabled
