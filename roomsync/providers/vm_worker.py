"""Session provider that forwards teardown requests to the local VM worker."""
import httpx
import logging
from typing import Optional
from roomsync.providers import SessionProvider, ProviderError
from roomsync.core.config import settings

logger = logging.getLogger(__name__)


class VMWorkerSessionProvider(SessionProvider):
    """Posts release requests to the VM worker process running beside the shard."""

    def __init__(self, base_url: Optional[str] = None, client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url or f"http://localhost:{settings.vmworker_port}"
        # Bounded so a hung worker cannot stall a release batch
        self.client = client or httpx.AsyncClient(timeout=10.0)

    async def release_session(self, session) -> None:
        body = {
            "provider": session.provider,
            "isLarge": session.large,
            "region": session.region,
            "id": session.id,
            "uid": session.creator_uid,
        }
        try:
            response = await self.client.post(f"{self.base_url}/releaseVM", json=body)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ProviderError(f"VM worker release failed for {session.provider}:{session.id}: {e}")
        logger.debug(f"Requested release of {session.provider}:{session.id}")

    async def close(self):
        await self.client.aclose()
