"""Shared helpers for email templates."""

from datetime import datetime
from html import escape as html_escape


def get_current_year() -> int:
    return datetime.now().year


def esc(value: str | None) -> str:
    """Escape untrusted values for safe HTML embedding."""
    if value is None:
        return ""
    return html_escape(str(value), quote=True)


def base_wrapper(body_html: str, *, brand: str, footer_note: str = "", year: int | None = None) -> str:
    """Wrap *body_html* in the common email shell (background, outer table, footer)."""
    current_year = year or get_current_year()
    note_html = (
        f'<p style="margin: 8px 0 0 0; font-size: 12px; line-height: 1.6; color: #6b7280;">{footer_note}</p>'
        if footer_note
        else ""
    )

    return f"""\
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="margin: 0; padding: 0; font-family: Arial, 'Helvetica Neue', sans-serif; background-color: #f9fafb; color: #1f2937; -webkit-font-smoothing: antialiased;">
    <table role="presentation" style="width: 100%; border-collapse: collapse;">
        <tr>
            <td style="padding: 40px 20px;">
                <table role="presentation" style="max-width: 600px; margin: 0 auto; background-color: #ffffff; border-radius: 8px; border: 1px solid #e5e7eb;">
                    <!-- Logo header -->
                    <tr>
                        <td style="padding: 32px 40px 24px 40px; text-align: center; border-bottom: 1px solid #e5e7eb;">
                            <h1 style="margin: 0; font-size: 24px; font-weight: 700; color: #111827;">{esc(brand)}</h1>
                        </td>
                    </tr>
                    {body_html}
                    <!-- Footer -->
                    <tr>
                        <td style="padding: 24px 40px; border-top: 1px solid #e5e7eb; text-align: center;">
                            <p style="margin: 0; font-size: 12px; color: #6b7280;">&copy; {current_year} {esc(brand)}. All rights reserved.</p>
                            {note_html}
                        </td>
                    </tr>
                </table>
            </td>
        </tr>
    </table>
</body>
</html>"""


def cta_button(href: str, label: str) -> str:
    """Render a centred call-to-action button."""
    return f"""\
<table role="presentation" style="width: 100%;">
    <tr>
        <td style="text-align: center;">
            <a href="{esc(href)}" style="display: inline-block; padding: 12px 24px; background-color: #2563eb; color: #ffffff; text-decoration: none; font-size: 15px; font-weight: 600; border-radius: 6px; mso-padding-alt: 0; text-align: center;">{esc(label)}</a>
        </td>
    </tr>
</table>"""
