"""
Single-use email verification and password reset tokens.

Only the SHA-256 digest of a token is stored. Consumption is a single
conditional UPDATE so that, of several concurrent callers presenting the
same token, exactly one succeeds.
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import delete, select, update

from safaconnect.config import get_settings
from safaconnect.db.models import TokenType, VerificationToken
from safaconnect.errors import NotFoundError, TokenExpiredError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


def hash_token(raw_token: str) -> str:
    """SHA-256 hex digest used as the stored form of any bearer secret."""
    return hashlib.sha256(raw_token.encode()).hexdigest()


def _ttl(token_type: TokenType) -> timedelta:
    settings = get_settings()
    if token_type is TokenType.PASSWORD_RESET:
        return timedelta(minutes=settings.password_reset_token_ttl_minutes)
    return timedelta(hours=settings.email_verification_token_ttl_hours)


async def issue_token(db: AsyncSession, user_id: str, token_type: TokenType) -> str:
    """
    Create a verification or reset token for a user.

    Earlier unused tokens of the same type are invalidated. Returns the raw
    token to send to the user.
    """
    now = datetime.now(timezone.utc)
    raw_token = secrets.token_urlsafe(48)

    await db.execute(
        update(VerificationToken)
        .where(VerificationToken.user_id == user_id)
        .where(VerificationToken.type == token_type.value)
        .where(VerificationToken.used_at.is_(None))
        .values(used_at=now)
        .execution_options(synchronize_session=False)
    )

    token = VerificationToken(
        user_id=user_id,
        token=hash_token(raw_token),
        type=token_type.value,
        expires_at=now + _ttl(token_type),
    )
    db.add(token)
    await db.flush()
    logger.info("token_issued", user_id=user_id, token_type=token_type.value)
    return raw_token


async def consume_token(db: AsyncSession, raw_token: str, token_type: TokenType) -> str:
    """
    Mark a token as used and return the owning user's ID.

    Raises:
        NotFoundError: No token of this type exists.
        TokenExpiredError: The token was already used or has expired.
    """
    now = datetime.now(timezone.utc)
    token_hash = hash_token(raw_token)

    result = await db.execute(
        update(VerificationToken)
        .where(VerificationToken.token == token_hash)
        .where(VerificationToken.type == token_type.value)
        .where(VerificationToken.used_at.is_(None))
        .where(VerificationToken.expires_at > now)
        .values(used_at=now)
        .returning(VerificationToken.user_id)
        .execution_options(synchronize_session=False)
    )
    user_id = result.scalar_one_or_none()
    if user_id is not None:
        logger.info("token_consumed", user_id=user_id, token_type=token_type.value)
        return user_id

    existing = await db.execute(
        select(VerificationToken.id)
        .where(VerificationToken.token == token_hash)
        .where(VerificationToken.type == token_type.value)
    )
    if existing.scalar_one_or_none() is None:
        msg = "Invalid token"
        raise NotFoundError(msg)
    raise TokenExpiredError


async def delete_expired_tokens(db: AsyncSession) -> int:
    """Delete every token past its expiry, used or not. Returns the row count."""
    result = await db.execute(
        delete(VerificationToken)
        .where(VerificationToken.expires_at < datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    count = result.rowcount or 0
    if count:
        logger.info("expired_tokens_cleaned", count=count)
    return count
