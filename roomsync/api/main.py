"""FastAPI application exposing shard lookup and stats."""
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import PlainTextResponse
from typing import Optional
import logging
import time

from roomsync.core.config import settings
from roomsync.rooms.registry import RoomRegistry
from roomsync.services.stats import collect_shard_stats
from roomsync.utils.shard import resolve_shard

logger = logging.getLogger(__name__)

launch_time = time.time()


def create_app(registry: Optional[RoomRegistry] = None) -> FastAPI:
    """Build the app around a shard's registry (None for a lookup-only instance)."""
    app = FastAPI(title="roomsync shard API", version="0.1.0")
    app.state.registry = registry

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.get("/resolveShard/{room_id:path}", response_class=PlainTextResponse)
    async def get_shard(room_id: str):
        """Shard owning a room, or empty when sharding is off."""
        if not settings.shard:
            return ""
        if not room_id.startswith("/"):
            room_id = "/" + room_id
        return str(resolve_shard(room_id, settings.shard_count))

    @app.get("/stats")
    async def get_stats(request: Request, key: Optional[str] = None):
        """Per-shard stats, guarded by STATS_KEY."""
        if not settings.stats_key or key != settings.stats_key:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
        registry = request.app.state.registry
        if registry is None:
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="No registry attached")
        stats = collect_shard_stats(registry)
        stats["currentUptime"] = [int((time.time() - launch_time) * 1000)]
        stats["shard"] = settings.shard
        return stats

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.backend_port)
