"""Abstract interfaces for the external services this core orchestrates."""
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from roomsync.providers.models import BillingSubscription, BillingCustomer, IdentityUser

if TYPE_CHECKING:
    from roomsync.rooms.models import VBrowserSession


class ProviderError(Exception):
    """Exception raised when an external provider call fails."""
    pass


class BillingProvider(ABC):
    """Source of truth for paying subscribers."""

    @abstractmethod
    async def get_all_active_subscriptions(self) -> List[BillingSubscription]:
        """
        Fetch every active subscription.

        Raises:
            ProviderError: If API call fails
        """
        pass

    @abstractmethod
    async def get_all_customers(self) -> List[BillingCustomer]:
        """
        Fetch every customer.

        Raises:
            ProviderError: If API call fails
        """
        pass

    async def close(self):
        """Release underlying connections."""
        pass


class IdentityProvider(ABC):
    """User directory keyed by uid and email."""

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[IdentityUser]:
        """Look up a user by email, returning None if no such user exists."""
        pass

    @abstractmethod
    async def validate_token(self, uid: str, token: str) -> Optional[IdentityUser]:
        """Return the decoded identity if `token` belongs to `uid`, else None."""
        pass

    @abstractmethod
    async def delete_user(self, uid: str) -> None:
        """Delete a user account."""
        pass

    async def close(self):
        """Release underlying connections."""
        pass


class SessionProvider(ABC):
    """Backend that owns vBrowser VMs. This core only triggers teardown."""

    @abstractmethod
    async def release_session(self, session: "VBrowserSession") -> None:
        """Signal the backend to tear down a session."""
        pass

    async def close(self):
        """Release underlying connections."""
        pass


class ChatBroadcaster(ABC):
    """Real-time transport that pushes room events to connected clients."""

    @abstractmethod
    def broadcast(self, room_id: str, event: str, payload: Dict[str, Any]) -> None:
        """Fire-and-forget delivery of an event to everyone in a room."""
        pass


class NullBroadcaster(ChatBroadcaster):
    """Broadcaster used when no transport is attached (tests, headless shards)."""

    def broadcast(self, room_id: str, event: str, payload: Dict[str, Any]) -> None:
        pass


__all__ = [
    "ProviderError",
    "BillingProvider",
    "IdentityProvider",
    "SessionProvider",
    "ChatBroadcaster",
    "NullBroadcaster",
    "BillingSubscription",
    "BillingCustomer",
    "IdentityUser"
]
