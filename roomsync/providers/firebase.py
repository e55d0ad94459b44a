"""Firebase identity provider over the Identity Toolkit REST API."""
import httpx
from typing import List, Optional
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log
)
import logging
from roomsync.providers import IdentityProvider, ProviderError
from roomsync.providers.models import IdentityUser
from roomsync.core.config import settings


logger = logging.getLogger(__name__)


class FirebaseIdentityProvider(IdentityProvider):
    """Identity Toolkit (admin) implementation of the identity provider."""

    BASE_URL = "https://identitytoolkit.googleapis.com/v1"

    def __init__(
        self,
        project_id: Optional[str] = None,
        access_token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.project_id = project_id or settings.firebase_project_id
        self.access_token = access_token or settings.firebase_access_token
        self.client = client or httpx.AsyncClient(
            timeout=15.0,
            headers={"Authorization": f"Bearer {self.access_token}"}
        )

    @property
    def _accounts_url(self) -> str:
        return f"{self.BASE_URL}/projects/{self.project_id}/accounts"

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.ConnectError)),
        before_sleep=before_sleep_log(logger, logging.WARNING)
    )
    async def _post(self, url: str, body: dict) -> dict:
        """POST with retry logic for transient failures."""
        response = await self.client.post(url, json=body)
        response.raise_for_status()
        return response.json()

    async def _lookup(self, body: dict) -> List[IdentityUser]:
        try:
            data = await self._post(f"{self._accounts_url}:lookup", body)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 400:
                # Unknown users and malformed tokens both surface as 400
                return []
            raise ProviderError(f"Identity API error: {str(e)}")
        except httpx.HTTPError as e:
            raise ProviderError(f"Identity API connection error: {str(e)}")
        return [
            IdentityUser(uid=user["localId"], email=user.get("email"))
            for user in data.get("users", [])
        ]

    async def get_user_by_email(self, email: str) -> Optional[IdentityUser]:
        users = await self._lookup({"email": [email]})
        return users[0] if users else None

    async def validate_token(self, uid: str, token: str) -> Optional[IdentityUser]:
        """Resolve an ID token and accept it only if it belongs to `uid`."""
        if not uid or not token:
            return None
        users = await self._lookup({"idToken": token})
        if users and users[0].uid == uid:
            return users[0]
        return None

    async def delete_user(self, uid: str) -> None:
        try:
            await self._post(f"{self._accounts_url}:delete", {"localId": uid})
        except httpx.HTTPError as e:
            raise ProviderError(f"Failed to delete user {uid}: {str(e)}")
        logger.info(f"Deleted identity user {uid}")

    async def close(self):
        await self.client.aclose()
