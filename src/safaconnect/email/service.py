"""
Email service with provider abstraction.

Supports SMTP (default) and the Resend HTTP API, selected via
``CONNECT_EMAIL_PROVIDER``. Delivery failures are logged and reported as
``False``; callers run in background tasks and never see an exception.
"""

from __future__ import annotations

import ssl
from abc import ABC, abstractmethod
from collections.abc import Callable
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any

import aiosmtplib
import httpx
import structlog

from safaconnect.config import Settings, get_settings
from safaconnect.email import templates

logger = structlog.get_logger()

RESEND_API_URL = "https://api.resend.com/emails"

Rendered = tuple[str, str, str]


def _render_welcome(ctx: dict[str, Any], settings: Settings) -> Rendered:
    return templates.welcome_email(ctx.get("name"), ctx["verify_url"], settings.support_email)


def _render_verify(ctx: dict[str, Any], settings: Settings) -> Rendered:
    return templates.verify_email(
        ctx["verify_url"], settings.email_verification_token_ttl_hours, settings.support_email
    )


def _render_reset(ctx: dict[str, Any], settings: Settings) -> Rendered:
    return templates.password_reset(
        ctx["reset_url"], settings.password_reset_token_ttl_minutes, settings.support_email
    )


def _render_changed(ctx: dict[str, Any], settings: Settings) -> Rendered:
    return templates.password_changed(ctx.get("name"), settings.support_email)


_TEMPLATE_REGISTRY: dict[str, Callable[[dict[str, Any], Settings], Rendered]] = {
    "welcome": _render_welcome,
    "verify_email": _render_verify,
    "password_reset": _render_reset,
    "password_changed": _render_changed,
}


class BaseEmailProvider(ABC):
    """Abstract base class for email delivery providers."""

    name: str = "base"

    @abstractmethod
    async def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> None:
        """Deliver one message. Raises on failure."""


class SMTPProvider(BaseEmailProvider):
    """Send emails via SMTP using aiosmtplib."""

    name = "smtp"

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        from_address: str,
        from_name: str,
        use_tls: bool = True,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_address = from_address
        self.from_name = from_name
        self.use_tls = use_tls

    def build_message(self, to_email: str, subject: str, html_body: str, text_body: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = f"{self.from_name} <{self.from_address}>"
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))
        return msg

    async def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> None:
        await aiosmtplib.send(
            self.build_message(to_email, subject, html_body, text_body),
            hostname=self.host,
            port=self.port,
            username=self.username or None,
            password=self.password or None,
            start_tls=self.use_tls,
            tls_context=ssl.create_default_context() if self.use_tls else None,
        )


class ResendProvider(BaseEmailProvider):
    """Send emails via the Resend HTTP API."""

    name = "resend"

    def __init__(self, api_key: str, from_address: str, from_name: str, timeout: float = 10.0) -> None:
        self.api_key = api_key
        self.from_address = from_address
        self.from_name = from_name
        self.timeout = timeout

    async def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> None:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                RESEND_API_URL,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "from": f"{self.from_name} <{self.from_address}>",
                    "to": [to_email],
                    "subject": subject,
                    "html": html_body,
                    "text": text_body,
                },
            )
            response.raise_for_status()


def create_provider(settings: Settings) -> BaseEmailProvider:
    """Create the email provider named in configuration."""
    provider_name = settings.email_provider.lower()
    if provider_name == "smtp":
        return SMTPProvider(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            from_address=settings.email_from_address,
            from_name=settings.email_from_name,
            use_tls=settings.smtp_use_tls,
        )
    if provider_name == "resend":
        return ResendProvider(
            api_key=settings.resend_api_key,
            from_address=settings.email_from_address,
            from_name=settings.email_from_name,
        )
    msg = f"Unsupported email provider: {provider_name}"
    raise ValueError(msg)


class EmailService:
    """Renders templates and hands them to the configured provider."""

    def __init__(self, provider: BaseEmailProvider | None = None, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.provider = provider or create_provider(self.settings)

    async def send_email(self, to: str, subject: str, html_body: str, text_body: str) -> bool:
        """Send a message. Returns True if delivered, False if the provider failed."""
        try:
            await self.provider.send(to, subject, html_body, text_body)
        except Exception:
            logger.exception("email_send_failed", to=to, subject=subject, provider=self.provider.name)
            return False
        logger.info("email_sent", to=to, subject=subject, provider=self.provider.name)
        return True

    async def send_template(self, to: str, template_name: str, context: dict[str, Any]) -> bool:
        """
        Render a named template and send it.

        Args:
            to: Recipient email.
            template_name: One of welcome, verify_email, password_reset, password_changed.
            context: Template variables (``name``, ``verify_url``, ``reset_url``).

        Raises:
            ValueError: If the template name is unknown.
        """
        render = _TEMPLATE_REGISTRY.get(template_name)
        if render is None:
            msg = f"Unknown template: {template_name}"
            raise ValueError(msg)
        subject, html_body, text_body = render(context, self.settings)
        return await self.send_email(to, subject, html_body, text_body)

    # Link builders shared by the auth jobs.

    def verify_url(self, raw_token: str) -> str:
        return f"{self.settings.frontend_base_url.rstrip('/')}/auth/verify-email/{raw_token}"

    def reset_url(self, raw_token: str) -> str:
        return f"{self.settings.frontend_base_url.rstrip('/')}/auth/reset-password?token={raw_token}"


# Module-level singleton
_email_service: EmailService | None = None


def get_email_service() -> EmailService:
    """Get or create the email service singleton."""
    global _email_service  # noqa: PLW0603
    if _email_service is None:
        _email_service = EmailService()
    return _email_service


def reset_email_service() -> None:
    """Reset the email service singleton (for testing)."""
    global _email_service  # noqa: PLW0603
    _email_service = None
