"""Data models returned by external providers."""
from dataclasses import dataclass
from typing import Optional


@dataclass
class BillingSubscription:
    """Subscription as reported by the billing provider."""
    id: str
    customer: str
    status: str


@dataclass
class BillingCustomer:
    """Billing customer with the email used to resolve an identity."""
    id: str
    email: Optional[str]


@dataclass
class IdentityUser:
    """User record from the identity provider."""
    uid: str
    email: Optional[str] = None
