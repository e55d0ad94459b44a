"""Durable room row shared by every shard."""
from sqlalchemy import Column, String, DateTime, Boolean, JSON
from datetime import datetime, timezone
from roomsync.core.database import Base


class RoomRecord(Base):
    """Persisted room. Column names match the shared schema used by the web tier."""

    __tablename__ = "room"

    room_id = Column("roomId", String, primary_key=True)
    creation_time = Column("creationTime", DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    last_update_time = Column("lastUpdateTime", DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)
    data = Column(JSON, nullable=True)  # serialized in-memory state (video, chat, vBrowser)
    password = Column(String, nullable=True)
    owner = Column(String, nullable=True, index=True)
    vanity = Column(String, nullable=True, unique=True)
    is_sub_room = Column("isSubRoom", Boolean, default=False, nullable=False)
    room_title = Column("roomTitle", String, nullable=True)
    room_description = Column("roomDescription", String, nullable=True)
    media_path = Column("mediaPath", String, nullable=True)
