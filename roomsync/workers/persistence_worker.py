"""Persistence loop: flushes occupied rooms to durable storage."""
import logging
from roomsync.rooms.registry import RoomRegistry
from roomsync.services.room_store import RoomStore

logger = logging.getLogger(__name__)


class PersistenceWorker:
    """Saves every room with a non-empty roster on each tick."""

    def __init__(self, registry: RoomRegistry, store: RoomStore):
        self.registry = registry
        self.store = store

    async def save_rooms(self) -> int:
        """
        Persist occupied rooms.

        Empty rooms are skipped, so their rows age until reclaimed. A failure
        on one room does not stop the others.

        Returns:
            Number of rooms saved
        """
        if not self.store.enabled:
            return 0

        saved = 0
        for room in self.registry.rooms():
            if not room.roster:
                continue
            try:
                await self.store.save_room(room)
                saved += 1
            except Exception as e:
                logger.error(f"Error saving room {room.room_id}: {e}", exc_info=True)
        if saved:
            logger.debug(f"Saved {saved} rooms")
        return saved
