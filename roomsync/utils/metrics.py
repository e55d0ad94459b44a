"""Redis-backed counters bucketed by hour."""
from datetime import datetime, timedelta
from typing import Optional
from roomsync.utils.time import get_start_of_hour, to_epoch_ms

# Hourly buckets live one day, which is all get_redis_count_day reads
COUNTER_TTL_SECONDS = 24 * 60 * 60
SESSION_DURATION_KEY = "vBrowserSessionMS"
SESSION_DURATION_SAMPLES = 100


def counter_key(prefix: str, now: Optional[datetime] = None) -> str:
    """Key for the hourly bucket of a counter."""
    return f"{prefix}:{to_epoch_ms(get_start_of_hour(now))}"


async def redis_count(redis, prefix: str, now: Optional[datetime] = None) -> int:
    """Increment the current hour's bucket of a counter."""
    key = counter_key(prefix, now)
    value = await redis.incr(key)
    await redis.expire(key, COUNTER_TTL_SECONDS)
    return value


async def get_redis_count_day(redis, prefix: str, now: Optional[datetime] = None) -> int:
    """Sum of a counter over the last 24 hourly buckets, current hour included."""
    start = get_start_of_hour(now)
    keys = [counter_key(prefix, start - timedelta(hours=i)) for i in range(24)]
    values = await redis.mget(keys)
    return sum(int(v) for v in values if v)


async def record_session_duration(redis, duration_ms: int) -> None:
    """Keep a rolling sample of vBrowser session lengths."""
    await redis.lpush(SESSION_DURATION_KEY, duration_ms)
    await redis.ltrim(SESSION_DURATION_KEY, 0, SESSION_DURATION_SAMPLES - 1)
