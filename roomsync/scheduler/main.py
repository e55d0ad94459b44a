"""Shard scheduler: loads this shard's rooms and runs the reconciliation loops."""
import logging
import asyncio
from typing import Optional
import uvicorn
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from roomsync.core.config import settings, Settings
from roomsync.core import database
from roomsync.core.redis import get_redis, close_redis
from roomsync.api.main import create_app
from roomsync.providers import ChatBroadcaster, SessionProvider
from roomsync.providers.vm_worker import VMWorkerSessionProvider
from roomsync.rooms.registry import RoomRegistry
from roomsync.services.room_store import RoomStore
from roomsync.workers import PersistenceWorker, ReleaseWorker, LockRenewer, ReclaimWorker

logger = logging.getLogger(__name__)


class ShardScheduler:
    """Owns a shard's registry and the interval jobs that reconcile it."""

    def __init__(
        self,
        config: Optional[Settings] = None,
        store: Optional[RoomStore] = None,
        session_provider: Optional[SessionProvider] = None,
        broadcaster: Optional[ChatBroadcaster] = None,
        redis=None
    ):
        logger.info("Initializing ShardScheduler...")
        self.config = config or settings
        self.scheduler = AsyncIOScheduler()
        self.store = store or RoomStore(
            database.AsyncSessionLocal,
            shard=self.config.shard,
            shard_count=self.config.shard_count
        )
        self.session_provider = session_provider
        self.broadcaster = broadcaster
        self.redis = redis
        self.registry: Optional[RoomRegistry] = None
        self.persistence: Optional[PersistenceWorker] = None
        self.releaser: Optional[ReleaseWorker] = None
        self.renewer: Optional[LockRenewer] = None
        self.reclaimer: Optional[ReclaimWorker] = None

    async def setup(self) -> RoomRegistry:
        """Build the registry and workers, then preload this shard's rooms."""
        if self.redis is None:
            self.redis = await get_redis()
        if self.session_provider is None:
            self.session_provider = VMWorkerSessionProvider()

        self.registry = RoomRegistry(
            broadcaster=self.broadcaster,
            session_provider=self.session_provider,
            redis=self.redis
        )
        self.persistence = PersistenceWorker(self.registry, self.store)
        self.releaser = ReleaseWorker(
            self.registry,
            session_limit=self.config.session_limit_seconds,
            release_interval_seconds=self.config.release_interval_seconds,
            release_batches=self.config.release_batches,
            empty_idle_seconds=self.config.empty_idle_seconds,
            store=self.store,
            redis=self.redis
        )
        self.renewer = LockRenewer(
            self.registry,
            lock_ttl_seconds=self.config.vbrowser_lock_ttl_seconds,
            uid_lock_ttl_seconds=self.config.uid_lock_ttl_seconds,
            redis=self.redis
        )
        self.reclaimer = ReclaimWorker(self.registry, self.store)

        await self.store.load_rooms(self.registry)
        self.registry.ensure_default_room()
        return self.registry

    def _add_job(self, func, seconds: float, job_id: str):
        self.scheduler.add_job(
            func,
            trigger=IntervalTrigger(seconds=seconds),
            id=job_id,
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )

    def start(self):
        """Register the interval jobs and start the scheduler."""
        if self.registry is None:
            raise RuntimeError("setup() must complete before start()")

        logger.info("=" * 60)
        logger.info("Starting shard scheduler...")
        logger.info(f"Shard: {self.config.shard or '-'} of {self.config.shard_count}")
        logger.info(f"Rooms loaded: {len(self.registry)}")
        logger.info(
            f"Release sweep: every {self.config.release_sweep_seconds:.1f}s "
            f"({self.config.release_batches} batches per {self.config.release_interval_seconds}s)"
        )
        logger.info("=" * 60)

        self._add_job(self.persistence.save_rooms, self.config.save_interval_seconds, "save_rooms")
        self._add_job(self.renewer.renew_locks, self.config.lock_renew_interval_seconds, "renew_locks")
        self._add_job(self.releaser.release, self.config.release_sweep_seconds, "release_vbrowsers")
        self._add_job(self.reclaimer.free_unused_rooms, self.config.reclaim_interval_seconds, "free_unused_rooms")

        self.scheduler.start()
        logger.info("All scheduled jobs registered successfully")

    def stop_job(self, job_id: str):
        """Cancel a single loop."""
        self.scheduler.remove_job(job_id)

    async def shutdown(self):
        logger.info("Shutting down shard scheduler...")
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        if self.session_provider is not None:
            await self.session_provider.close()
        await close_redis()


async def main():
    """Main entry point for a shard process: reconciliation loops plus the shard API."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    await database.init_db()
    scheduler = ShardScheduler()
    await scheduler.setup()
    scheduler.start()

    server = uvicorn.Server(uvicorn.Config(
        create_app(scheduler.registry),
        host="0.0.0.0",
        port=settings.backend_port,
        log_level=settings.log_level.lower()
    ))
    try:
        await server.serve()
    finally:
        await scheduler.shutdown()


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
