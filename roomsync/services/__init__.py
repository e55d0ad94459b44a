"""Services package initialization."""
from roomsync.services.room_store import RoomStore
from roomsync.services.subscriber_reconciler import (
    SubscriberReconciler,
    SubscriberRecord,
    FatalReconciliationError,
    compute_digest
)
from roomsync.services.stats import collect_shard_stats

__all__ = [
    "RoomStore",
    "SubscriberReconciler",
    "SubscriberRecord",
    "FatalReconciliationError",
    "compute_digest",
    "collect_shard_stats"
]
