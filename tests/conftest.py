"""Shared pytest fixtures for roomsync tests."""
import pytest
from datetime import datetime, timedelta, timezone
from typing import Optional
from unittest.mock import AsyncMock, MagicMock
import fakeredis.aioredis
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from roomsync.core.database import Base, create_session_factory
from roomsync.providers import ChatBroadcaster, SessionProvider
from roomsync.rooms.models import Room, Participant, VBrowserSession
from roomsync.rooms.registry import RoomRegistry
import roomsync.models  # noqa: F401  (registers tables on Base.metadata)


NOW = datetime(2025, 3, 14, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Virtual clock workers can be single-stepped against."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


def create_session(
    session_id: str = "vm-1",
    provider: str = "Hetzner",
    assigned_ago: timedelta = timedelta(minutes=10),
    large: bool = False,
    creator_uid: Optional[str] = "uid-1",
    creator_client_id: Optional[str] = "client-1",
    now: datetime = NOW
) -> VBrowserSession:
    """Factory function to create VBrowserSession instances for testing."""
    return VBrowserSession(
        id=session_id,
        provider=provider,
        assign_time=now - assigned_ago,
        large=large,
        creator_uid=creator_uid,
        creator_client_id=creator_client_id,
    )


def create_room(
    registry: RoomRegistry,
    room_id: str,
    users: int = 0,
    session: Optional[VBrowserSession] = None,
    last_update_ago: timedelta = timedelta(0),
    video: Optional[str] = None
) -> Room:
    """Factory function to create and register a Room for testing."""
    room = registry.get_or_create(room_id)
    room.roster = [Participant(id=f"{room_id}-p{i}", name=f"user{i}") for i in range(users)]
    room.vbrowser = session
    room.last_update_time = registry.clock() - last_update_ago
    room.video = video
    return room


@pytest.fixture
def clock():
    """Virtual clock fixed at NOW."""
    return FakeClock()


@pytest.fixture
def broadcaster():
    """Mock chat broadcaster."""
    return MagicMock(spec=ChatBroadcaster)


@pytest.fixture
def session_provider():
    """Mock vBrowser session provider."""
    return AsyncMock(spec=SessionProvider)


@pytest.fixture
async def fake_redis():
    """Create a FakeRedis instance for testing."""
    redis = fakeredis.aioredis.FakeRedis(decode_responses=True)
    yield redis
    await redis.flushall()
    await redis.aclose()


@pytest.fixture
def registry(clock, broadcaster, session_provider):
    """Registry wired to mock collaborators and the virtual clock (no redis)."""
    return RoomRegistry(
        broadcaster=broadcaster,
        session_provider=session_provider,
        clock=clock,
    )


@pytest.fixture
async def db_engine():
    """In-memory SQLite engine with all tables created."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    """Async session factory bound to the in-memory engine."""
    return create_session_factory(db_engine)
