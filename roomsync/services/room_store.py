"""Durable room storage for a shard: bulk load, upsert and id listing."""
import logging
from datetime import datetime, timezone
from typing import List, Optional, Set

from sqlalchemy import select, update, and_, func
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from roomsync.models import RoomRecord
from roomsync.rooms.models import Room
from roomsync.rooms.registry import RoomRegistry
from roomsync.utils.shard import shard_characters

logger = logging.getLogger(__name__)

_room_columns = RoomRecord.__table__.c


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class RoomStore:
    """
    Reads and writes the `room` table on behalf of one shard.

    A store without a session factory is a no-op: nothing loads, nothing
    saves, and every room counts as unpersisted.
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]],
        shard: Optional[int] = None,
        shard_count: int = 1
    ):
        self.session_factory = session_factory
        self.shard = shard
        self.shard_count = shard_count

    @property
    def enabled(self) -> bool:
        return self.session_factory is not None

    def _shard_clause(self):
        """Restrict rows to ids whose leading character belongs to this shard."""
        clause = RoomRecord.room_id.like("/%")
        if self.shard is None:
            return clause
        selection = shard_characters(self.shard, self.shard_count)
        logger.debug(f"Shard {self.shard}/{self.shard_count} owns leading characters: {''.join(selection)}")
        return and_(clause, func.substr(RoomRecord.room_id, 2, 1).in_(selection))

    async def fetch_records(self) -> List[RoomRecord]:
        """All durable rows for this shard."""
        if not self.enabled:
            return []
        async with self.session_factory() as db:
            result = await db.execute(select(RoomRecord).where(self._shard_clause()))
            return list(result.scalars().all())

    async def load_rooms(self, registry: RoomRegistry) -> List[Room]:
        """
        Rehydrate this shard's persisted rooms into the registry.

        Storage failures are logged and yield an empty preload; the shard
        still starts and serves rooms created from then on.

        Returns:
            Rooms added to the registry
        """
        if not self.enabled:
            logger.info("No durable store configured, starting with an empty registry")
            return []

        try:
            records = await self.fetch_records()
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Failed to load rooms from storage: {e}", exc_info=True)
            return []

        rooms = []
        for record in records:
            room = registry.new_room(record.room_id)
            self.apply_record(room, record)
            registry.add(room)
            rooms.append(room)

        logger.info(f"Found {len(rooms)} rooms in storage for shard {self.shard or '-'}")
        return rooms

    @staticmethod
    def apply_record(room: Room, record: RoomRecord) -> None:
        """Copy durable columns and serialized state onto a room."""
        room.load_data(record.data)
        room.owner = record.owner
        room.vanity = record.vanity
        room.password = record.password
        room.is_sub_room = bool(record.is_sub_room)
        room.creation_time = _as_utc(record.creation_time) or room.creation_time
        room.last_update_time = _as_utc(record.last_update_time) or room.last_update_time

    async def get_persisted_room_ids(self) -> Set[str]:
        """Ids of this shard's rooms that still have a durable row."""
        if not self.enabled:
            return set()
        async with self.session_factory() as db:
            result = await db.execute(select(RoomRecord.room_id).where(self._shard_clause()))
            return {row[0] for row in result.all()}

    async def save_room(self, room: Room) -> None:
        """
        Upsert a room's live state (last write wins).

        Only `roomId`, `lastUpdateTime` and `data` are written; ownership and
        metadata columns belong to the web tier and are left untouched.
        """
        if not self.enabled:
            return
        room.last_update_time = room.clock()
        values = {
            _room_columns.roomId: room.room_id,
            _room_columns.lastUpdateTime: room.last_update_time,
            _room_columns.data: room.serialize(),
        }
        async with self.session_factory() as db:
            dialect = db.get_bind().dialect.name
            insert_fn = postgresql_insert if dialect == "postgresql" else sqlite_insert
            stmt = insert_fn(RoomRecord.__table__).values(values)
            stmt = stmt.on_conflict_do_update(
                index_elements=[_room_columns.roomId],
                set_={
                    _room_columns.lastUpdateTime: stmt.excluded.lastUpdateTime,
                    _room_columns.data: stmt.excluded.data,
                }
            )
            await db.execute(stmt)
            await db.commit()

    async def update_room_data(self, room: Room) -> bool:
        """
        Refresh the serialized state of an existing row without creating one.

        Used after a release so a stale session is not resurrected on restart,
        while never pinning an unpersisted room in storage.

        Returns:
            True if a row was updated
        """
        if not self.enabled:
            return False
        async with self.session_factory() as db:
            result = await db.execute(
                update(RoomRecord)
                .where(RoomRecord.room_id == room.room_id)
                .values(data=room.serialize())
            )
            await db.commit()
            return result.rowcount > 0
