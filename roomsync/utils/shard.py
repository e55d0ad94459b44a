"""Shard resolution for the room-id keyspace."""
import string
from typing import Iterable, List

# Characters that can lead a generated or vanity room name
ROOM_ID_ALPHABET = string.ascii_lowercase + string.ascii_uppercase + string.digits + "-_"


def shard_key(room_id: str) -> str:
    """Return the character that decides a room's shard ('' for an empty name)."""
    name = room_id[1:] if room_id.startswith("/") else room_id
    return name[:1]


def resolve_shard(room_id: str, shard_count: int) -> int:
    """
    Map a room id to its owning shard.

    The result depends only on the first character of the room name, so every
    process computes the same answer without coordination.

    Args:
        room_id: Room identifier, usually of the form "/name"
        shard_count: Number of configured shards (N)

    Returns:
        Shard number in [1, shard_count]
    """
    if shard_count < 1:
        raise ValueError(f"shard_count must be at least 1, got {shard_count}")
    key = shard_key(room_id)
    code = ord(key) if key else 0
    return code % shard_count + 1


def shard_characters(
    shard: int,
    shard_count: int,
    alphabet: Iterable[str] = ROOM_ID_ALPHABET
) -> List[str]:
    """Leading characters whose rooms belong to `shard`."""
    return [c for c in alphabet if resolve_shard("/" + c, shard_count) == shard]
