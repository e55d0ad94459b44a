"""Utilities package initialization."""
from roomsync.utils.shard import resolve_shard, shard_characters
from roomsync.utils.hashing import hash_string
from roomsync.utils.time import utc_now, get_start_of_day, get_end_of_day, get_start_of_hour

__all__ = [
    "resolve_shard",
    "shard_characters",
    "hash_string",
    "utc_now",
    "get_start_of_day",
    "get_end_of_day",
    "get_start_of_hour"
]
