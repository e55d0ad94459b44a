"""Unit tests for the shard HTTP surface."""
import pytest
from fastapi.testclient import TestClient

from roomsync.api.main import create_app
from roomsync.core.config import settings
from roomsync.utils.shard import resolve_shard
from tests.conftest import create_room, create_session


@pytest.fixture
def client(registry):
    """Test client around a registry with one occupied room."""
    create_room(registry, "/a", users=2, session=create_session())
    return TestClient(create_app(registry))


@pytest.mark.unit
class TestHealth:
    """Test health endpoint."""

    def test_health(self, client):
        """✅ Reports healthy."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


@pytest.mark.unit
class TestResolveShard:
    """Test shard lookup endpoint."""

    def test_unsharded(self, client, monkeypatch):
        """✅ Empty body when sharding is off."""
        monkeypatch.setattr(settings, "shard", None)
        response = client.get("/resolveShard/movie-night")
        assert response.status_code == 200
        assert response.text == ""

    def test_sharded(self, client, monkeypatch):
        """✅ Shard number for the room, slash optional."""
        monkeypatch.setattr(settings, "shard", 1)
        monkeypatch.setattr(settings, "shard_count", 4)
        response = client.get("/resolveShard/movie-night")
        assert response.text == str(resolve_shard("/movie-night", 4))


@pytest.mark.unit
class TestStats:
    """Test stats endpoint."""

    def test_requires_key(self, client, monkeypatch):
        """✅ Wrong or missing key forbidden."""
        monkeypatch.setattr(settings, "stats_key", "secret")
        assert client.get("/stats").status_code == 403
        assert client.get("/stats", params={"key": "nope"}).status_code == 403

    def test_no_key_configured(self, client, monkeypatch):
        """✅ Stats closed when no key is configured."""
        monkeypatch.setattr(settings, "stats_key", None)
        assert client.get("/stats", params={"key": ""}).status_code == 403

    def test_returns_stats(self, client, monkeypatch):
        """✅ Counters for this shard."""
        monkeypatch.setattr(settings, "stats_key", "secret")
        response = client.get("/stats", params={"key": "secret"})
        assert response.status_code == 200
        body = response.json()
        assert body["currentRoomCount"] == 1
        assert body["currentUsers"] == 2
        assert body["currentVBrowser"] == 1
        assert "currentUptime" in body

    def test_no_registry(self, monkeypatch):
        """✅ Lookup-only instance has no stats."""
        monkeypatch.setattr(settings, "stats_key", "secret")
        response = TestClient(create_app()).get("/stats", params={"key": "secret"})
        assert response.status_code == 503
