"""Unit tests for SubscriberReconciler.

This module tests subscriber reconciliation including:
- Digest-gated writes
- Full replacement of subscriber rows and room flags
- Batched identity lookups
- Provider and transaction failure handling
"""
import asyncio
import pytest
from unittest.mock import AsyncMock
from sqlalchemy import select, text, delete

from roomsync.models import RoomRecord, Subscriber
from roomsync.providers import BillingProvider, IdentityProvider, ProviderError
from roomsync.providers.models import BillingSubscription, BillingCustomer, IdentityUser
from roomsync.services.subscriber_reconciler import (
    SubscriberReconciler,
    FatalReconciliationError,
    compute_digest,
)


# ============================================================================
# Fixtures
# ============================================================================

class FakeIdentity(IdentityProvider):
    """Identity directory backed by a dict, tracking concurrent lookups."""

    def __init__(self, users):
        self.users = users
        self.in_flight = 0
        self.max_in_flight = 0
        self.lookups = 0

    async def get_user_by_email(self, email):
        self.in_flight += 1
        self.lookups += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0)
        self.in_flight -= 1
        uid = self.users.get(email)
        return IdentityUser(uid=uid, email=email) if uid else None

    async def validate_token(self, uid, token):
        return None

    async def delete_user(self, uid):
        pass


def make_billing(customers):
    """Billing mock with one active subscription per (customer_id, email) pair."""
    billing = AsyncMock(spec=BillingProvider)
    billing.get_all_active_subscriptions.return_value = [
        BillingSubscription(id=f"sub_{cid}", customer=cid, status="active") for cid, _ in customers
    ]
    billing.get_all_customers.return_value = [BillingCustomer(id=cid, email=email) for cid, email in customers]
    return billing


@pytest.fixture
async def seeded(session_factory):
    """Three rooms owned by different users, none flagged."""
    async with session_factory() as db:
        db.add_all([
            RoomRecord(room_id="/alice", owner="uid-alice"),
            RoomRecord(room_id="/bob", owner="uid-bob"),
            RoomRecord(room_id="/carol", owner="uid-carol", is_sub_room=True),
        ])
        await db.commit()
    return session_factory


async def sub_room_ids(session_factory):
    async with session_factory() as db:
        result = await db.execute(select(RoomRecord.room_id).where(RoomRecord.is_sub_room.is_(True)))
        return {row[0] for row in result.all()}


async def subscriber_uids(session_factory):
    async with session_factory() as db:
        result = await db.execute(select(Subscriber.uid))
        return sorted(row[0] for row in result.all() if row[0])


# ============================================================================
# Tests for compute_digest
# ============================================================================

@pytest.mark.unit
class TestComputeDigest:
    """Test the change digest."""

    def test_same_input_same_digest(self):
        """✅ Deterministic."""
        assert compute_digest(["a", "b"]) == compute_digest(["a", "b"])

    def test_order_sensitive(self):
        """✅ Provider order is part of the digest."""
        assert compute_digest(["a", "b"]) != compute_digest(["b", "a"])

    def test_uid_boundaries_matter(self):
        """✅ Adjacent uids cannot run together into the same digest."""
        assert compute_digest(["ab", "c"]) != compute_digest(["a", "bc"])

    def test_unresolved_uids_ignored(self):
        """✅ None uids contribute nothing."""
        assert compute_digest(["a", None]) == compute_digest(["a"])


# ============================================================================
# Tests for reconcile
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
class TestReconcile:
    """Test full reconciliation passes."""

    @pytest.mark.critical
    async def test_first_pass_replaces_state(self, seeded):
        """✅ Subscriber rows rebuilt and only subscribers' rooms flagged."""
        billing = make_billing([("cus_a", "alice@example.com"), ("cus_x", "ghost@example.com")])
        identity = FakeIdentity({"alice@example.com": "uid-alice"})
        reconciler = SubscriberReconciler(billing, identity, seeded)

        assert await reconciler.reconcile() is True

        assert await sub_room_ids(seeded) == {"/alice"}
        async with seeded() as db:
            rows = (await db.execute(select(Subscriber))).scalars().all()
        assert {(row.customer_id, row.uid) for row in rows} == {("cus_a", "uid-alice"), ("cus_x", None)}
        assert reconciler.last_digest == compute_digest(["uid-alice"])

    @pytest.mark.critical
    async def test_unchanged_digest_skips_writes(self, seeded):
        """✅ Identical pass writes nothing."""
        billing = make_billing([("cus_a", "alice@example.com")])
        reconciler = SubscriberReconciler(billing, FakeIdentity({"alice@example.com": "uid-alice"}), seeded)
        await reconciler.reconcile()

        # Tamper with storage; an unchanged pass must not repair it
        async with seeded() as db:
            await db.execute(delete(Subscriber))
            await db.commit()

        assert await reconciler.reconcile() is False
        assert await subscriber_uids(seeded) == []

    async def test_added_subscriber_rewrites(self, seeded):
        """✅ New uid changes digest and flags the new owner's room."""
        customers = [("cus_a", "alice@example.com")]
        identity = FakeIdentity({"alice@example.com": "uid-alice", "bob@example.com": "uid-bob"})
        billing = make_billing(customers)
        reconciler = SubscriberReconciler(billing, identity, seeded)
        await reconciler.reconcile()

        updated = make_billing(customers + [("cus_b", "bob@example.com")])
        reconciler.billing = updated

        assert await reconciler.reconcile() is True
        assert await sub_room_ids(seeded) == {"/alice", "/bob"}
        assert await subscriber_uids(seeded) == ["uid-alice", "uid-bob"]

    async def test_cancelled_subscriber_unflags(self, seeded):
        """✅ Rooms of users no longer subscribed are cleared."""
        reconciler = SubscriberReconciler(make_billing([]), FakeIdentity({}), seeded)
        await reconciler.reconcile()
        assert await sub_room_ids(seeded) == set()

    async def test_provider_error_skips_pass(self, seeded):
        """✅ Provider failure leaves storage and digest untouched."""
        billing = AsyncMock(spec=BillingProvider)
        billing.get_all_active_subscriptions.side_effect = ProviderError("Stripe rate limit exceeded (429)")
        billing.get_all_customers.return_value = []
        reconciler = SubscriberReconciler(billing, FakeIdentity({}), seeded)

        assert await reconciler.reconcile() is False
        assert reconciler.last_digest is None
        assert await sub_room_ids(seeded) == {"/carol"}

    async def test_transaction_failure_is_fatal(self, seeded, db_engine):
        """✅ Failed transaction raises and keeps the previous digest."""
        async with db_engine.begin() as conn:
            await conn.execute(text("DROP TABLE subscriber"))

        billing = make_billing([("cus_a", "alice@example.com")])
        reconciler = SubscriberReconciler(billing, FakeIdentity({"alice@example.com": "uid-alice"}), seeded)

        with pytest.raises(FatalReconciliationError):
            await reconciler.reconcile()
        assert reconciler.last_digest is None
        assert await sub_room_ids(seeded) == {"/carol"}

    async def test_disabled_without_providers(self, session_factory):
        """✅ Missing credentials make the pass a no-op."""
        reconciler = SubscriberReconciler(None, None, session_factory)
        assert not reconciler.enabled
        assert await reconciler.reconcile() is False


@pytest.mark.unit
@pytest.mark.asyncio
class TestResolveUids:
    """Test batched identity lookups."""

    async def test_lookups_bounded_by_batch_size(self, session_factory):
        """✅ At most batch_size lookups in flight."""
        emails = [f"user{i}@example.com" for i in range(7)]
        identity = FakeIdentity({email: f"uid-{i}" for i, email in enumerate(emails)})
        reconciler = SubscriberReconciler(AsyncMock(spec=BillingProvider), identity, session_factory, batch_size=3)

        uid_map = await reconciler.resolve_uids(emails)

        assert identity.lookups == 7
        assert 1 <= identity.max_in_flight <= 3
        assert uid_map["user6@example.com"] == "uid-6"

    async def test_invalid_batch_size(self, session_factory):
        """✅ Batch size must be positive."""
        with pytest.raises(ValueError):
            SubscriberReconciler(None, None, session_factory, batch_size=0)
