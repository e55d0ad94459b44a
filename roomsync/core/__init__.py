"""Core package initialization."""
from roomsync.core.config import settings
from roomsync.core.database import Base, init_db, get_async_session
from roomsync.core.redis import get_redis, close_redis

__all__ = ["settings", "Base", "init_db", "get_async_session", "get_redis", "close_redis"]
