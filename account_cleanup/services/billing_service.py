"""
Billing Service using Stripe

Only the two calls the cleanup job needs: look up a subscription's
remote status and cancel it.
"""

import asyncio
import logging
from typing import Optional

import stripe

from ..config import Settings, get_settings

logger = logging.getLogger(__name__)

STRIPE_API_VERSION = "2025-09-30.clover"

# Remote statuses that need no further cancel call
CANCELED_STATUSES = frozenset({"canceled", "incomplete_expired"})


class BillingConfigurationError(Exception):
    """Raised when a billing client is requested without credentials."""


class StripeBillingClient:
    def __init__(self, api_key: str):
        if not api_key:
            raise BillingConfigurationError("STRIPE_SECRET_KEY is not set")
        self.api_key = api_key
        stripe.api_key = api_key
        stripe.api_version = STRIPE_API_VERSION

    async def retrieve_subscription_status(self, subscription_id: str) -> str:
        subscription = await asyncio.to_thread(stripe.Subscription.retrieve, subscription_id)
        return subscription["status"]

    async def cancel_subscription(self, subscription_id: str) -> None:
        await asyncio.to_thread(stripe.Subscription.cancel, subscription_id)


def is_canceled_status(status: Optional[str]) -> bool:
    return (status or "").lower() in CANCELED_STATUSES


def get_billing_client(settings: Optional[Settings] = None) -> Optional[StripeBillingClient]:
    """
    Return a Stripe client, or None when billing is not configured.

    Raises BillingConfigurationError only if a key is present but the client
    cannot be built; the caller records that and carries on without billing.
    """
    settings = settings or get_settings()
    if not settings.stripe_secret_key:
        return None
    return StripeBillingClient(settings.stripe_secret_key)
