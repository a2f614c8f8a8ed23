"""
Route dependencies.

Collaborators for the cleanup endpoint, resolved per request so tests can
override them with ``app.dependency_overrides``.
"""

from typing import Callable, Optional

from ..config import Settings, get_settings
from ..services.billing_service import StripeBillingClient, get_billing_client
from ..services.email_service import EmailTransport, get_email_transport


def get_email_transport_dep() -> Optional[EmailTransport]:
    return get_email_transport(get_settings())


def get_billing_client_factory() -> Callable[[], Optional[StripeBillingClient]]:
    settings = get_settings()
    return lambda: get_billing_client(settings)


def get_settings_dep() -> Settings:
    return get_settings()
