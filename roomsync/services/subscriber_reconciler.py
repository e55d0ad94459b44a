"""Subscriber reconciliation against the billing and identity providers."""
import asyncio
import hashlib
import logging
import time
from dataclasses import dataclass, asdict
from typing import Dict, Iterable, List, Optional

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from roomsync.models import RoomRecord, Subscriber
from roomsync.providers import BillingProvider, IdentityProvider, ProviderError

logger = logging.getLogger(__name__)


class FatalReconciliationError(Exception):
    """
    The subscriber transaction failed and was rolled back.

    The host process must exit and be restarted by its supervisor rather
    than keep running next to partially applied subscriber/room flags.
    """
    pass


@dataclass
class SubscriberRecord:
    """One active subscription resolved to an identity."""
    customer_id: str
    email: Optional[str]
    status: str
    uid: Optional[str]


def compute_digest(uids: Iterable[Optional[str]]) -> str:
    """
    MD5 over the resolved uids in provider order.

    Order matters: the same set returned in a different order produces a
    different digest. Unresolved uids contribute nothing. Each uid is
    newline-terminated so adjacent uids cannot run together.
    """
    digest = hashlib.md5()
    for uid in uids:
        if uid:
            digest.update(uid.encode("utf-8") + b"\n")
    return digest.hexdigest()


class SubscriberReconciler:
    """Rebuilds the `subscriber` table and room `isSubRoom` flags from billing state."""

    def __init__(
        self,
        billing: Optional[BillingProvider],
        identity: Optional[IdentityProvider],
        session_factory: Optional[async_sessionmaker[AsyncSession]],
        batch_size: int = 50
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        self.billing = billing
        self.identity = identity
        self.session_factory = session_factory
        self.batch_size = batch_size
        self.last_digest: Optional[str] = None

    @property
    def enabled(self) -> bool:
        return None not in (self.billing, self.identity, self.session_factory)

    async def resolve_uids(self, emails: List[str]) -> Dict[str, str]:
        """
        Map emails to identity uids.

        Lookups run concurrently within a batch and batches run one after
        another, keeping in-flight identity calls under `batch_size`.
        """
        uid_map: Dict[str, str] = {}
        for i in range(0, len(emails), self.batch_size):
            batch = emails[i:i + self.batch_size]
            users = await asyncio.gather(*(self.identity.get_user_by_email(email) for email in batch))
            for user in users:
                if user is not None and user.email:
                    uid_map[user.email] = user.uid
        return uid_map

    async def build_records(self) -> List[SubscriberRecord]:
        """Fetch provider state and produce one record per active subscription."""
        subs, customers = await asyncio.gather(
            self.billing.get_all_active_subscriptions(),
            self.billing.get_all_customers(),
        )
        email_map = {customer.id: customer.email for customer in customers}

        emails = [email_map[sub.customer] for sub in subs if email_map.get(sub.customer)]
        uid_map = await self.resolve_uids(emails)

        return [
            SubscriberRecord(
                customer_id=sub.customer,
                email=email_map.get(sub.customer),
                status=sub.status,
                uid=uid_map.get(email_map.get(sub.customer)),
            )
            for sub in subs
        ]

    async def apply(self, records: List[SubscriberRecord]) -> None:
        """
        Replace subscriber rows and room flags in a single transaction.

        Raises:
            FatalReconciliationError: If the transaction failed (rolled back)
        """
        async with self.session_factory() as db:
            try:
                async with db.begin():
                    await db.execute(delete(Subscriber))
                    await db.execute(update(RoomRecord).values(is_sub_room=False))
                    db.add_all([Subscriber(**asdict(record)) for record in records])
                    await db.flush()
                    for record in records:
                        if not record.uid:
                            continue
                        await db.execute(
                            update(RoomRecord)
                            .where(RoomRecord.owner == record.uid)
                            .values(is_sub_room=True)
                        )
            except Exception as e:
                logger.critical(f"Subscriber transaction failed and was rolled back: {e}", exc_info=True)
                raise FatalReconciliationError(str(e)) from e

    async def reconcile(self) -> bool:
        """
        Run one reconciliation pass.

        Returns:
            True if the durable tables were rewritten, False if the pass was
            skipped (disabled, provider failure, or unchanged digest)

        Raises:
            FatalReconciliationError: If applying a changed subscriber set failed
        """
        if not self.enabled:
            logger.debug("Subscriber sync disabled (missing billing/identity credentials or database)")
            return False

        start = time.monotonic()
        try:
            records = await self.build_records()
        except ProviderError as e:
            logger.error(f"Skipping subscriber sync, provider error: {e}")
            return False

        digest = compute_digest(record.uid for record in records)
        changed = digest != self.last_digest
        if changed:
            await self.apply(records)
            logger.info(f"{len(records)} subscribers")
        else:
            logger.debug("Subscriber digest unchanged, skipping writes")
        self.last_digest = digest

        logger.info(f"syncSubscribers: {time.monotonic() - start:.3f}s")
        return changed
