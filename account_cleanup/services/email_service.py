"""
Email Service using Resend

Transactional email transport used by the cleanup job.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import resend

from ..config import Settings, get_settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """Raised when the email provider does not confirm a send."""


class EmailTransport:
    """
    Thin wrapper over the Resend SDK.

    ``send`` returns the provider message id, or raises. A response without
    an ``id`` is treated as a failed send.
    """

    def __init__(self, api_key: str, sender: str):
        self.api_key = api_key
        self.sender = sender
        resend.api_key = api_key

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def send(
        self,
        *,
        to: str,
        subject: str,
        html: str,
        text: str,
        sender: Optional[str] = None,
    ) -> str:
        params: Dict[str, Any] = {
            "from": sender or self.sender,
            "to": [to],
            "subject": subject,
            "html": html,
            "text": text,
        }

        response = await asyncio.to_thread(resend.Emails.send, params)

        # resend returns dict with 'id' on success
        message_id = response.get("id") if response else None
        if not message_id:
            raise EmailDeliveryError(f"Email provider returned no message id: {response}")

        logger.debug("Email sent to %s (id: %s)", to, message_id)
        return message_id


def get_email_transport(settings: Optional[Settings] = None) -> Optional[EmailTransport]:
    """
    Return a transport, or None when RESEND_API_KEY is not set.

    Callers that cannot work without email treat None as a fatal
    configuration error.
    """
    settings = settings or get_settings()
    if not settings.resend_api_key:
        return None
    return EmailTransport(settings.resend_api_key, settings.email_from)
