"""Rooms package initialization."""
from roomsync.rooms.models import Room, Participant, VBrowserSession, Lock
from roomsync.rooms.registry import RoomRegistry, DEFAULT_ROOM_ID

__all__ = [
    "Room",
    "Participant",
    "VBrowserSession",
    "Lock",
    "RoomRegistry",
    "DEFAULT_ROOM_ID"
]
