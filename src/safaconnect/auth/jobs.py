"""
Background jobs for the auth flows and the periodic token purge.

Each job runs after the HTTP response, opens its own transaction with
``session_scope()`` and takes plain IDs rather than ORM objects bound to
the request session.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import structlog
from sqlalchemy import update

from safaconnect.auth.sessions import revoke_all_sessions
from safaconnect.auth.tokens import delete_expired_tokens, issue_token
from safaconnect.config import get_settings
from safaconnect.database import session_scope
from safaconnect.db.models import TokenType, User
from safaconnect.email.service import get_email_service

logger = structlog.get_logger()


async def send_verification_email(user_id: str, email: str, name: str | None, *, welcome: bool = False) -> None:
    """Issue a fresh verification token and mail the link."""
    async with session_scope() as db:
        raw_token = await issue_token(db, user_id, TokenType.EMAIL_VERIFICATION)
    service = get_email_service()
    template = "welcome" if welcome else "verify_email"
    await service.send_template(email, template, {"name": name, "verify_url": service.verify_url(raw_token)})


async def send_welcome_email(user_id: str, email: str, name: str | None) -> None:
    await send_verification_email(user_id, email, name, welcome=True)


async def send_password_reset_email(user_id: str, email: str) -> None:
    async with session_scope() as db:
        raw_token = await issue_token(db, user_id, TokenType.PASSWORD_RESET)
    service = get_email_service()
    await service.send_template(email, "password_reset", {"reset_url": service.reset_url(raw_token)})


async def record_login(user_id: str, new_password_hash: str | None = None) -> None:
    """Stamp ``last_login_at`` and store an upgraded hash when one was computed."""
    values: dict[str, object] = {"last_login_at": datetime.now(timezone.utc)}
    if new_password_hash is not None:
        values["password_hash"] = new_password_hash
        logger.info("password_rehashed", user_id=user_id)
    async with session_scope() as db:
        await db.execute(
            update(User).where(User.id == user_id).values(**values).execution_options(synchronize_session=False)
        )


async def mark_email_verified(user_id: str) -> None:
    async with session_scope() as db:
        await db.execute(
            update(User)
            .where(User.id == user_id)
            .values(is_email_verified=True)
            .execution_options(synchronize_session=False)
        )
    logger.info("email_verified", user_id=user_id)


async def apply_password_change(user_id: str, password_hash: str, email: str, name: str | None) -> None:
    """
    Persist a new password hash, revoke sessions per policy, and notify the user.
    """
    settings = get_settings()
    async with session_scope() as db:
        await db.execute(
            update(User)
            .where(User.id == user_id)
            .values(password_hash=password_hash)
            .execution_options(synchronize_session=False)
        )
        if settings.revoke_sessions_on_password_change:
            await revoke_all_sessions(db, user_id)
    logger.info("password_changed", user_id=user_id)
    await get_email_service().send_template(email, "password_changed", {"name": name})


async def purge_expired_tokens() -> int:
    async with session_scope() as db:
        return await delete_expired_tokens(db)


async def token_cleanup_loop(interval_seconds: float) -> None:
    """Purge expired tokens every ``interval_seconds`` until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await purge_expired_tokens()
        except Exception:
            logger.exception("token_cleanup_failed")
