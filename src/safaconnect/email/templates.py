"""
Transactional email templates for Safatanc Connect.

Inline CSS only, so the layout survives webmail clients. Every template
function returns ``(subject, html_body, text_body)``. Values interpolated
into HTML are escaped.
"""

from __future__ import annotations

from html import escape

APP_NAME = "Safatanc Connect"

# Palette
BG_PAGE = "#F4F6F8"
BG_CARD = "#FFFFFF"
ACCENT = "#2563EB"
TEXT_PRIMARY = "#111827"
TEXT_MUTED = "#6B7280"
BORDER = "#E5E7EB"


def _layout(content: str, support_email: str) -> str:
    return f"""\
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{APP_NAME}</title>
</head>
<body style="margin: 0; padding: 0; background-color: {BG_PAGE}; font-family: -apple-system, 'Segoe UI', Roboto, Helvetica, Arial, sans-serif;">
    <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%" style="background-color: {BG_PAGE};">
        <tr>
            <td align="center" style="padding: 32px 16px;">
                <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="560" style="max-width: 560px; width: 100%;">
                    <tr>
                        <td style="padding-bottom: 24px; font-size: 20px; font-weight: 700; color: {ACCENT};">{APP_NAME}</td>
                    </tr>
                    <tr>
                        <td style="background-color: {BG_CARD}; border: 1px solid {BORDER}; border-radius: 8px; padding: 32px;">
                            {content}
                        </td>
                    </tr>
                    <tr>
                        <td style="padding-top: 24px; color: {TEXT_MUTED}; font-size: 12px; line-height: 1.5;">
                            Questions? Contact <a href="mailto:{escape(support_email)}" style="color: {TEXT_MUTED};">{escape(support_email)}</a>.
                        </td>
                    </tr>
                </table>
            </td>
        </tr>
    </table>
</body>
</html>"""


def _paragraph(text: str) -> str:
    return f'<p style="color: {TEXT_PRIMARY}; font-size: 15px; line-height: 1.6; margin: 0 0 16px;">{text}</p>'


def _action(url: str, label: str) -> str:
    safe_url = escape(url, quote=True)
    return f"""\
<p style="margin: 24px 0;">
    <a href="{safe_url}" target="_blank" style="display: inline-block; padding: 12px 24px; background-color: {ACCENT}; color: #FFFFFF; font-size: 15px; font-weight: 600; text-decoration: none; border-radius: 6px;">{label}</a>
</p>
<p style="color: {TEXT_MUTED}; font-size: 12px; word-break: break-all; margin: 0;">{safe_url}</p>"""


def _greeting(name: str | None) -> str:
    return f"Hi {name}," if name else "Hi,"


def welcome_email(name: str | None, verify_url: str, support_email: str) -> tuple[str, str, str]:
    """Sent right after registration; doubles as the first verification mail."""
    subject = f"Welcome to {APP_NAME}"
    greeting = _greeting(name)
    html = _layout(
        _paragraph(escape(greeting))
        + _paragraph(f"Your {APP_NAME} account is ready. Confirm your email address to start using it.")
        + _action(verify_url, "Verify email"),
        support_email,
    )
    text = (
        f"{greeting}\n\n"
        f"Your {APP_NAME} account is ready. Confirm your email address to start using it:\n\n"
        f"{verify_url}\n"
    )
    return subject, html, text


def verify_email(verify_url: str, expires_hours: int, support_email: str) -> tuple[str, str, str]:
    subject = "Verify your email address"
    html = _layout(
        _paragraph("Use the link below to verify your email address.")
        + _action(verify_url, "Verify email")
        + _paragraph(f"The link expires in {expires_hours} hours."),
        support_email,
    )
    text = f"Verify your email address:\n\n{verify_url}\n\nThe link expires in {expires_hours} hours.\n"
    return subject, html, text


def password_reset(reset_url: str, expires_minutes: int, support_email: str) -> tuple[str, str, str]:
    subject = "Reset your password"
    html = _layout(
        _paragraph("We received a request to reset your password.")
        + _action(reset_url, "Choose a new password")
        + _paragraph(
            f"The link expires in {expires_minutes} minutes. If you did not ask for this, ignore this email."
        ),
        support_email,
    )
    text = (
        "We received a request to reset your password:\n\n"
        f"{reset_url}\n\n"
        f"The link expires in {expires_minutes} minutes. If you did not ask for this, ignore this email.\n"
    )
    return subject, html, text


def password_changed(name: str | None, support_email: str) -> tuple[str, str, str]:
    """Security notice after a password change or reset."""
    subject = "Your password was changed"
    greeting = _greeting(name)
    notice = "The password for your account was just changed and you have been signed out of other devices."
    html = _layout(
        _paragraph(escape(greeting))
        + _paragraph(notice)
        + _paragraph(f"If this wasn't you, contact {escape(support_email)} right away."),
        support_email,
    )
    text = f"{greeting}\n\n{notice}\n\nIf this wasn't you, contact {support_email} right away.\n"
    return subject, html, text
