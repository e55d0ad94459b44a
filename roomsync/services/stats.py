"""Per-shard stats snapshot over the room registry."""
from collections import Counter
from datetime import datetime
from typing import Any, Dict, Optional

from roomsync.rooms.registry import RoomRegistry
from roomsync.utils.time import utc_now


def collect_shard_stats(registry: RoomRegistry, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Aggregate counters over every cached room.

    Share counts (http, screenshare, fileshare) only include rooms with
    someone watching.
    """
    now = now or utc_now()
    stats = {
        "currentRoomCount": len(registry),
        "currentUsers": 0,
        "currentVideoChat": 0,
        "currentVBrowser": 0,
        "currentVBrowserLarge": 0,
        "currentHttp": 0,
        "currentScreenShare": 0,
        "currentFileShare": 0,
    }
    room_sizes: Counter = Counter()
    uid_counts: Counter = Counter()
    vbrowser_elapsed: Dict[str, float] = {}

    for room in registry.rooms():
        roster_length = len(room.roster)
        stats["currentUsers"] += roster_length
        stats["currentVideoChat"] += sum(1 for p in room.roster if p.is_video_chat)

        if room.vbrowser:
            stats["currentVBrowser"] += 1
            if room.vbrowser.large:
                stats["currentVBrowserLarge"] += 1
            if room.vbrowser.creator_uid:
                uid_counts[room.vbrowser.creator_uid] += 1
            if room.vbrowser.assign_time:
                vbrowser_elapsed[room.room_id] = (now - room.vbrowser.assign_time).total_seconds()

        if roster_length:
            room_sizes[roster_length] += 1
            video = room.video or ""
            if video.startswith("http"):
                stats["currentHttp"] += 1
            elif video.startswith("screenshare://"):
                stats["currentScreenShare"] += 1
            elif video.startswith("fileshare://"):
                stats["currentFileShare"] += 1

    stats["currentRoomSizeCounts"] = dict(room_sizes)
    # Only uids holding more than one session are interesting (abuse check)
    stats["currentVBrowserUIDCounts"] = {uid: n for uid, n in uid_counts.items() if n > 1}
    stats["currentVBrowserElapsed"] = vbrowser_elapsed
    return stats
