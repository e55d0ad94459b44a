"""Subscriber sync process: reconciles billing state into the shared store."""
import logging
import asyncio
import sys
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from roomsync.core.config import settings, Settings
from roomsync.core import database
from roomsync.providers.stripe import StripeBillingProvider
from roomsync.providers.firebase import FirebaseIdentityProvider
from roomsync.services.subscriber_reconciler import SubscriberReconciler, FatalReconciliationError

logger = logging.getLogger(__name__)


class SubscriberScheduler:
    """
    Runs the subscriber reconciler on its own timer.

    A fatal reconciliation error stops the scheduler and is surfaced by
    run(); the entry point turns it into a non-zero exit so the process
    supervisor restarts us from a clean state.
    """

    def __init__(self, reconciler: SubscriberReconciler, interval_seconds: float = 60):
        self.reconciler = reconciler
        self.interval_seconds = interval_seconds
        self.scheduler = AsyncIOScheduler()
        self.fatal_error: Optional[FatalReconciliationError] = None
        self._stopped = asyncio.Event()

    async def sync_subscribers(self):
        """Scheduled job body."""
        try:
            await self.reconciler.reconcile()
        except FatalReconciliationError as e:
            self.fatal_error = e
            self._stopped.set()
        except Exception as e:
            logger.error(f"Error syncing subscribers: {e}", exc_info=True)

    def start(self):
        logger.info(f"Starting subscriber sync (every {self.interval_seconds}s)")
        self.scheduler.add_job(
            self.sync_subscribers,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id="sync_subscribers",
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )
        self.scheduler.start()

    def stop(self):
        self._stopped.set()

    async def run(self):
        """
        Run until stopped.

        Raises:
            FatalReconciliationError: If a reconciliation transaction failed
        """
        self.start()
        try:
            await self._stopped.wait()
        finally:
            if self.scheduler.running:
                self.scheduler.shutdown(wait=False)
        if self.fatal_error is not None:
            raise self.fatal_error


def build_reconciler(config: Settings) -> SubscriberReconciler:
    """Wire providers from configuration; missing credentials leave it disabled."""
    billing = identity = None
    if config.subscriber_sync_enabled:
        billing = StripeBillingProvider(config.stripe_secret_key)
        identity = FirebaseIdentityProvider(config.firebase_project_id, config.firebase_access_token)
    else:
        logger.info("Billing/identity credentials not set, subscriber sync is a no-op")
    return SubscriberReconciler(
        billing,
        identity,
        database.AsyncSessionLocal,
        batch_size=config.subscriber_batch_size
    )


async def main() -> int:
    """Main entry point for the subscriber sync process."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    reconciler = build_reconciler(settings)
    scheduler = SubscriberScheduler(reconciler, settings.subscriber_sync_interval_seconds)
    try:
        await scheduler.run()
    except FatalReconciliationError:
        logger.critical("Exiting for supervisor restart after failed subscriber sync")
        return 1
    finally:
        for provider in (reconciler.billing, reconciler.identity):
            if provider is not None:
                await provider.close()
    return 0


def run():
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
