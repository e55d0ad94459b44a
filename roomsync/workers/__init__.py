"""Workers package initialization."""
from roomsync.workers.persistence_worker import PersistenceWorker
from roomsync.workers.release_worker import ReleaseWorker, SessionState, evaluate_session
from roomsync.workers.lock_renewer import LockRenewer
from roomsync.workers.reclaim_worker import ReclaimWorker

__all__ = [
    "PersistenceWorker",
    "ReleaseWorker",
    "SessionState",
    "evaluate_session",
    "LockRenewer",
    "ReclaimWorker"
]
