"""vBrowser lifecycle sweep: time limits and idle eviction, one batch per tick."""
import enum
import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from roomsync.core.redis import get_redis
from roomsync.rooms.models import Room
from roomsync.rooms.registry import RoomRegistry
from roomsync.services.room_store import RoomStore
from roomsync.utils.hashing import hash_string
from roomsync.utils.metrics import redis_count
from roomsync.utils.time import utc_now

logger = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    """Lifecycle of a room's vBrowser session."""
    ASSIGNED = "assigned"
    RUNNING = "running"
    ALMOST_TIMED_OUT = "almost_timed_out"
    TIMED_OUT = "timed_out"
    EMPTY_IDLE = "empty_idle"
    RELEASED = "released"


def evaluate_session(
    room: Room,
    now: datetime,
    release_interval: timedelta,
    session_limit: timedelta,
    empty_idle: timedelta = timedelta(minutes=5)
) -> Optional[SessionState]:
    """
    Classify a room's session at `now`.

    A session is timed out once its remaining time would lapse before the
    sweep comes back to it (one full release interval). Empty rooms idle for
    longer than `empty_idle` are released regardless of remaining time.

    Returns:
        The session state, or None if the room has no assigned session
    """
    session = room.vbrowser
    if session is None or session.assign_time is None:
        return None

    elapsed = now - session.assign_time
    ttl = session_limit - elapsed

    if ttl <= release_interval:
        return SessionState.TIMED_OUT
    if not room.roster and now - room.last_update_time > empty_idle:
        return SessionState.EMPTY_IDLE
    if ttl <= release_interval * 2:
        return SessionState.ALMOST_TIMED_OUT
    return SessionState.RUNNING


class ReleaseWorker:
    """
    Sweeps one slice of the registry per tick.

    Rooms are bucketed by `hash_string(room_id) % release_batches`; each tick
    handles the bucket matching `current_batch` and advances it, so every
    room is visited exactly once per release interval.
    """

    def __init__(
        self,
        registry: RoomRegistry,
        session_limit: Callable[[bool], float],
        release_interval_seconds: float = 300,
        release_batches: int = 10,
        empty_idle_seconds: float = 300,
        store: Optional[RoomStore] = None,
        redis=None,
        clock=utc_now
    ):
        if release_batches < 1:
            raise ValueError(f"release_batches must be at least 1, got {release_batches}")
        self.registry = registry
        self.session_limit = session_limit
        self.release_interval = timedelta(seconds=release_interval_seconds)
        self.release_batches = release_batches
        self.empty_idle = timedelta(seconds=empty_idle_seconds)
        self.store = store
        self.redis = redis
        self.clock = clock
        self.current_batch = 0

    async def _get_redis(self):
        """Get Redis connection."""
        if self.redis is None:
            self.redis = await get_redis()
        return self.redis

    def batch_of(self, room_id: str) -> int:
        return hash_string(room_id) % self.release_batches

    def select_batch(self) -> List[Room]:
        """Rooms in the current batch (does not advance the counter)."""
        return [room for room in self.registry.rooms() if self.batch_of(room.room_id) == self.current_batch]

    async def _count(self, prefix: str):
        redis = await self._get_redis()
        if redis is not None:
            await redis_count(redis, prefix, self.clock())

    async def _release_room(self, room: Room, state: SessionState):
        try:
            await room.stop_vbrowser()
        finally:
            # The session reference is gone even if teardown signalling failed
            if state == SessionState.TIMED_OUT:
                room.add_system_message("vBrowserTimeout")
                await self._count("vBrowserTerminateTimeout")
            else:
                await self._count("vBrowserTerminateEmpty")
            if self.store is not None and self.store.enabled:
                await self.store.update_room_data(room)

    async def release(self) -> Dict[SessionState, List[str]]:
        """
        Evaluate and act on the current batch, then advance to the next one.

        Returns:
            Room ids grouped by the state they were found in
        """
        batch = self.current_batch
        rooms = self.select_batch()
        self.current_batch = (self.current_batch + 1) % self.release_batches
        logger.info(f"[RELEASE][{batch}] {len(rooms)} rooms in batch")

        summary: Dict[SessionState, List[str]] = {}
        now = self.clock()
        for room in rooms:
            session = room.vbrowser
            if session is None:
                continue
            try:
                state = evaluate_session(
                    room,
                    now,
                    self.release_interval,
                    timedelta(seconds=self.session_limit(session.large)),
                    self.empty_idle,
                )
                if state is None:
                    continue
                summary.setdefault(state, []).append(room.room_id)

                if state in (SessionState.TIMED_OUT, SessionState.EMPTY_IDLE):
                    logger.info(f"[RELEASE][{batch}] VM in room {room.room_id} ({state.value})")
                    await self._release_room(room, state)
                elif state == SessionState.ALMOST_TIMED_OUT:
                    room.add_system_message("vBrowserAlmostTimeout")
            except Exception as e:
                logger.error(f"[RELEASE][{batch}] Error releasing room {room.room_id}: {e}", exc_info=True)
        return summary
