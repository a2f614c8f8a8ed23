"""
Account Cleanup - Email Templates

HTML and plain-text bodies for outgoing lifecycle emails.
Each template lives in its own module so the email_service stays lean.
"""

from .deletion_reminder import (
    get_deletion_reminder_subject,
    get_deletion_reminder_email_html,
    get_deletion_reminder_email_text,
)

__all__ = [
    "get_deletion_reminder_subject",
    "get_deletion_reminder_email_html",
    "get_deletion_reminder_email_text",
]
