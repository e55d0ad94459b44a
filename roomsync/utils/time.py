"""Time utilities for counter buckets and TTL alignment."""
from datetime import datetime, timedelta, timezone
from typing import Optional


def utc_now() -> datetime:
    """Current time as an aware UTC datetime (the default worker clock)."""
    return datetime.now(timezone.utc)


def get_start_of_day(now: Optional[datetime] = None) -> datetime:
    """Midnight UTC of the day containing `now`."""
    now = now or utc_now()
    return now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)


def get_end_of_day(now: Optional[datetime] = None) -> datetime:
    """Midnight UTC at the end of the day containing `now`."""
    return get_start_of_day(now) + timedelta(days=1)


def get_start_of_hour(now: Optional[datetime] = None) -> datetime:
    """Top of the UTC hour containing `now`."""
    now = now or utc_now()
    return now.astimezone(timezone.utc).replace(minute=0, second=0, microsecond=0)


def to_epoch_ms(value: datetime) -> int:
    """Milliseconds since the epoch."""
    return int(value.timestamp() * 1000)


def from_epoch_ms(value: float) -> datetime:
    """Aware UTC datetime from epoch milliseconds."""
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
