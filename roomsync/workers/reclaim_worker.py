"""Frees cached rooms that are empty and no longer persisted."""
import logging
from typing import List

from roomsync.rooms.registry import RoomRegistry
from roomsync.services.room_store import RoomStore

logger = logging.getLogger(__name__)


class ReclaimWorker:
    """Evicts empty, unpersisted rooms to keep long-running shards lean."""

    def __init__(self, registry: RoomRegistry, store: RoomStore):
        self.registry = registry
        self.store = store

    async def free_unused_rooms(self) -> List[str]:
        """
        Destroy and drop rooms with an empty roster and no durable row.

        Destroying a room releases its vBrowser session, if it still holds
        one. Rooms with anyone in them are never evicted. If the durable id set
        cannot be read the pass is skipped.

        Returns:
            Ids of evicted rooms
        """
        try:
            persisted = await self.store.get_persisted_room_ids()
        except Exception as e:
            logger.error(f"Error fetching persisted room ids, skipping reclaim: {e}", exc_info=True)
            return []

        freed = []
        for room in self.registry.rooms():
            if room.roster or room.room_id in persisted:
                continue
            try:
                await room.destroy()
            except Exception as e:
                # The session reference is already gone, so the room is evicted anyway
                logger.error(f"Error releasing resources of room {room.room_id}: {e}", exc_info=True)
            self.registry.remove(room.room_id)
            freed.append(room.room_id)

        if freed:
            logger.info(f"Freed {len(freed)} unused rooms ({len(self.registry)} remain)")
        return freed
