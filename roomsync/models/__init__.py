"""Models package initialization."""
from roomsync.models.room import RoomRecord
from roomsync.models.subscriber import Subscriber

__all__ = [
    "RoomRecord",
    "Subscriber"
]
