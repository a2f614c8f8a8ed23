"""Reminder sent while an account waits out its deletion grace period."""

from ._base import base_wrapper, cta_button, esc


def format_day_count(days: int) -> str:
    return "1 day" if days == 1 else f"{days} days"


def build_manage_url(app_url: str) -> str:
    return f"{app_url.rstrip('/')}/dashboard/settings"


def get_deletion_reminder_subject(product_name: str, countdown_label: str) -> str:
    return f"Your {product_name} account will be deleted in {countdown_label}"


def get_deletion_reminder_email_html(
    *,
    recipient_name: str,
    organization_name: str,
    countdown_label: str,
    deletion_date: str,
    app_url: str,
    grace_period_days: int,
    product_name: str,
) -> str:
    manage_url = build_manage_url(app_url)
    grace_label = format_day_count(grace_period_days)

    body = f"""\
    <tr>
        <td style="padding: 32px 40px;">
            <h2 style="margin: 0 0 16px 0; font-size: 22px; font-weight: 600; color: #111827;">Account deletion scheduled ({esc(countdown_label)} remaining)</h2>
            <p style="margin: 0 0 12px 0; font-size: 15px; line-height: 1.6;">Hi {esc(recipient_name)},</p>
            <p style="margin: 0 0 12px 0; font-size: 15px; line-height: 1.6;">
                This is a friendly reminder that the {esc(product_name)} account for {esc(organization_name)} is scheduled for permanent deletion on <strong>{esc(deletion_date)}</strong>.
            </p>
            <p style="margin: 16px 0; padding: 12px 16px; background: #fef3c7; border-left: 4px solid #f59e0b; border-radius: 6px; font-size: 15px; font-weight: 600;">
                Your data will be permanently removed after this time.
            </p>
            <p style="margin: 0 0 24px 0; font-size: 15px; line-height: 1.6;">
                If you wish to keep your account active, please log back in and reactivate your subscription before the deletion date.
            </p>
            {cta_button(manage_url, "Review account settings")}
            <p style="margin: 24px 0 0 0; font-size: 14px; line-height: 1.6;">If you have any questions or need assistance, reply to this email or contact our support team.</p>
        </td>
    </tr>"""

    footer_note = (
        "This notification was sent because account cancellation was requested. "
        f"The {esc(grace_label)} grace period allows you to reactivate your subscription before data is removed."
    )
    return base_wrapper(body, brand=product_name, footer_note=footer_note)


def get_deletion_reminder_email_text(
    *,
    recipient_name: str,
    organization_name: str,
    countdown_label: str,
    deletion_date: str,
    app_url: str,
    grace_period_days: int,
    product_name: str,
) -> str:
    manage_url = build_manage_url(app_url)
    grace_label = format_day_count(grace_period_days)

    return (
        f"Hi {recipient_name},\n\n"
        f"The {product_name} account for {organization_name} is scheduled for permanent deletion "
        f"on {deletion_date} ({countdown_label} remaining).\n\n"
        "If you want to keep the account, please log in and reactivate your subscription "
        f"before the deletion date: {manage_url}\n\n"
        f"This reminder is part of the {grace_label} grace period that follows cancellation. "
        "If you need help, just reply to this email and our team will assist you.\n"
    )
