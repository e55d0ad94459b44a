"""Minute job: keeps vBrowser TTL locks alive and meters usage."""
import logging
from typing import List, Tuple

from roomsync.core.redis import get_redis
from roomsync.rooms.registry import RoomRegistry
from roomsync.utils.time import utc_now, get_end_of_day

logger = logging.getLogger(__name__)

CLIENT_ID_MINUTES_KEY = "vBrowserClientIDMinutes"
UID_MINUTES_KEY = "vBrowserUIDMinutes"


class LockRenewer:
    """
    Renews session locks across the whole registry every minute.

    Not batched: every lock must be refreshed well within its TTL, or an
    external reaper may hand the VM to someone else while it is in use.
    """

    def __init__(
        self,
        registry: RoomRegistry,
        lock_ttl_seconds: int = 300,
        uid_lock_ttl_seconds: int = 120,
        redis=None,
        clock=utc_now
    ):
        self.registry = registry
        self.lock_ttl_seconds = lock_ttl_seconds
        self.uid_lock_ttl_seconds = uid_lock_ttl_seconds
        self.redis = redis
        self.clock = clock

    async def _get_redis(self):
        """Get Redis connection."""
        if self.redis is None:
            self.redis = await get_redis()
        return self.redis

    async def renew_locks(self) -> int:
        """
        Refresh lock TTLs and bump per-day minute counters.

        Returns:
            Number of sessions renewed
        """
        redis = await self._get_redis()
        if redis is None:
            logger.debug("Redis not configured, skipping lock renewal")
            return 0

        # Minute counters reset at the end of the UTC day
        expire_at = int(get_end_of_day(self.clock()).timestamp())
        renewed = 0
        for room in self.registry.with_vbrowser():
            session = room.vbrowser
            if session is None or not session.id:
                continue
            try:
                await redis.expire(session.lock_key, self.lock_ttl_seconds)
                if session.uid_lock_key:
                    await redis.expire(session.uid_lock_key, self.uid_lock_ttl_seconds)

                if session.creator_client_id:
                    await redis.zincrby(CLIENT_ID_MINUTES_KEY, 1, session.creator_client_id)
                    await redis.expireat(CLIENT_ID_MINUTES_KEY, expire_at)
                if session.creator_uid:
                    await redis.zincrby(UID_MINUTES_KEY, 1, session.creator_uid)
                    await redis.expireat(UID_MINUTES_KEY, expire_at)
                renewed += 1
            except Exception as e:
                logger.error(f"Error renewing locks for room {room.room_id}: {e}", exc_info=True)

        logger.debug(f"Renewed locks for {renewed} vBrowser sessions")
        return renewed

    async def top_usage(self, key: str = UID_MINUTES_KEY, limit: int = 20) -> List[Tuple[str, float]]:
        """Heaviest users today by vBrowser minutes."""
        redis = await self._get_redis()
        if redis is None:
            return []
        return await redis.zrevrange(key, 0, limit - 1, withscores=True)
