"""Room registry: maps room_id to the Room cached by this shard."""
import logging
from typing import Dict, Iterator, List, Optional

from roomsync.providers import ChatBroadcaster, SessionProvider
from roomsync.rooms.models import Room
from roomsync.utils.time import utc_now

logger = logging.getLogger(__name__)

DEFAULT_ROOM_ID = "/default"


class RoomRegistry:
    """
    Per-process cache of active rooms.

    Owned by the shard context and handed to every scheduled job. All jobs
    run on one event loop and mutate the registry only between awaits, so no
    locking is needed.
    """

    def __init__(
        self,
        broadcaster: Optional[ChatBroadcaster] = None,
        session_provider: Optional[SessionProvider] = None,
        redis=None,
        clock=utc_now
    ) -> None:
        self._rooms: Dict[str, Room] = {}
        self.broadcaster = broadcaster
        self.session_provider = session_provider
        self.redis = redis
        self.clock = clock

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, room_id: str) -> bool:
        return room_id in self._rooms

    def __iter__(self) -> Iterator[Room]:
        return iter(self.rooms())

    def new_room(self, room_id: str) -> Room:
        """Build a room wired to this shard's collaborators (not registered)."""
        return Room(
            room_id,
            broadcaster=self.broadcaster,
            session_provider=self.session_provider,
            redis=self.redis,
            clock=self.clock,
        )

    def add(self, room: Room) -> Room:
        self._rooms[room.room_id] = room
        return room

    def get(self, room_id: str) -> Optional[Room]:
        return self._rooms.get(room_id)

    def get_or_create(self, room_id: str) -> Room:
        room = self._rooms.get(room_id)
        if room is None:
            room = self.add(self.new_room(room_id))
            logger.debug(f"Created room {room_id}")
        return room

    def ensure_default_room(self) -> Room:
        return self.get_or_create(DEFAULT_ROOM_ID)

    def remove(self, room_id: str) -> Optional[Room]:
        return self._rooms.pop(room_id, None)

    def rooms(self) -> List[Room]:
        """Snapshot of cached rooms, safe to iterate across awaits."""
        return list(self._rooms.values())

    def room_ids(self) -> List[str]:
        return list(self._rooms.keys())

    def with_vbrowser(self) -> List[Room]:
        return [room for room in self._rooms.values() if room.vbrowser is not None]
