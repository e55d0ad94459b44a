"""Stripe billing provider implementation."""
import httpx
from typing import Any, Dict, List, Optional
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log
)
import logging
from roomsync.providers import BillingProvider, ProviderError
from roomsync.providers.models import BillingSubscription, BillingCustomer
from roomsync.core.config import settings


logger = logging.getLogger(__name__)


class StripeBillingProvider(BillingProvider):
    """Stripe REST implementation of the billing provider."""

    BASE_URL = "https://api.stripe.com"
    PAGE_SIZE = 100

    def __init__(self, secret_key: Optional[str] = None, client: Optional[httpx.AsyncClient] = None):
        self.secret_key = secret_key or settings.stripe_secret_key
        self.client = client or httpx.AsyncClient(
            timeout=30.0,
            headers={"Authorization": f"Bearer {self.secret_key}"}
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.ConnectError)),
        before_sleep=before_sleep_log(logger, logging.WARNING)
    )
    async def _make_request(self, url: str, params: dict) -> dict:
        """Make HTTP request with retry logic for transient failures."""
        response = await self.client.get(url, params=params)
        response.raise_for_status()
        return response.json()

    async def _list_all(self, path: str, params: Dict[str, Any]) -> List[dict]:
        """
        Walk a paginated list endpoint to the end.

        Pages are chained with `starting_after` set to the last object id,
        preserving the provider's ordering.
        """
        url = f"{self.BASE_URL}{path}"
        items: List[dict] = []
        cursor: Optional[str] = None

        try:
            while True:
                page_params = {**params, "limit": self.PAGE_SIZE}
                if cursor:
                    page_params["starting_after"] = cursor
                data = await self._make_request(url, page_params)
                page = data.get("data", [])
                items.extend(page)
                if not data.get("has_more") or not page:
                    break
                cursor = page[-1]["id"]
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 429:
                raise ProviderError("Stripe rate limit exceeded (429)")
            raise ProviderError(f"Stripe API error: {str(e)}")
        except httpx.HTTPError as e:
            raise ProviderError(f"Stripe API connection error: {str(e)}")

        logger.debug(f"Fetched {len(items)} objects from {path}")
        return items

    async def get_all_active_subscriptions(self) -> List[BillingSubscription]:
        """Fetch every active subscription in provider order."""
        rows = await self._list_all("/v1/subscriptions", {"status": "active"})
        return [
            BillingSubscription(id=row["id"], customer=row["customer"], status=row["status"])
            for row in rows
        ]

    async def get_all_customers(self) -> List[BillingCustomer]:
        """Fetch every customer."""
        rows = await self._list_all("/v1/customers", {})
        return [BillingCustomer(id=row["id"], email=row.get("email")) for row in rows]

    async def close(self):
        await self.client.aclose()
