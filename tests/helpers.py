"""Request helpers shared by the API tests."""

from __future__ import annotations

from typing import Any

from httpx import AsyncClient

from safaconnect.auth.service import register_user
from safaconnect.database import session_scope
from safaconnect.db.models import GlobalRole, User
from safaconnect.email.service import EmailService

PASSWORD = "SecureP@ss1"


def sent_templates(service: EmailService) -> list[str]:
    return [c.args[1] for c in service.send_template.call_args_list]  # type: ignore[attr-defined]


def last_email_context(service: EmailService, template: str | None = None) -> dict[str, Any]:
    for c in reversed(service.send_template.call_args_list):  # type: ignore[attr-defined]
        if template is None or c.args[1] == template:
            return c.args[2]
    msg = f"no {template!r} email was sent"
    raise AssertionError(msg)


def last_verification_token(service: EmailService) -> str:
    for c in reversed(service.send_template.call_args_list):  # type: ignore[attr-defined]
        if "verify_url" in c.args[2]:
            return c.args[2]["verify_url"].rsplit("/", 1)[1]
    msg = "no verification email was sent"
    raise AssertionError(msg)


def last_reset_token(service: EmailService) -> str:
    return last_email_context(service, "password_reset")["reset_url"].split("token=", 1)[1]


async def register(
    client: AsyncClient,
    email: str = "alice@example.com",
    username: str = "alice",
    password: str = PASSWORD,
    **extra: Any,
) -> dict[str, Any]:
    response = await client.post(
        "/auth/register",
        json={"email": email, "username": username, "password": password, **extra},
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def login(client: AsyncClient, identifier: str, password: str = PASSWORD) -> dict[str, Any]:
    response = await client.post("/auth/login", json={"email": identifier, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["data"]


def bearer(tokens: dict[str, Any]) -> dict[str, str]:
    return {"Authorization": f"Bearer {tokens['access_token']}"}


async def create_user(
    email: str,
    username: str,
    *,
    role: GlobalRole = GlobalRole.USER,
    verified: bool = True,
    password: str = PASSWORD,
) -> User:
    """Insert a user straight into the database."""
    async with session_scope() as db:
        return await register_user(db, email, username, password, global_role=role, is_email_verified=verified)
