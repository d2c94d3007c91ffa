"""
Session ledger: issuing, refreshing, and revoking login sessions.

A session row holds the SHA-256 digests of the current access token and
the opaque refresh token. Refresh is guarded by a conditional UPDATE on
the refresh digest, so a refresh token can only ever be redeemed once
when rotation is enabled.
"""

from __future__ import annotations

import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import select, update

from safaconnect.auth.jwt import create_access_token
from safaconnect.auth.tokens import hash_token
from safaconnect.config import get_settings
from safaconnect.db.models import Session, User
from safaconnect.errors import UnauthorizedError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


@dataclass(frozen=True)
class ClientInfo:
    """Request metadata recorded on a session."""

    ip_address: str | None = None
    user_agent: str | None = None
    device_info: dict[str, Any] | None = None


@dataclass(frozen=True)
class IssuedTokens:
    access_token: str
    refresh_token: str
    expires_in: int
    session_id: str


def _new_refresh_token() -> str:
    return secrets.token_urlsafe(48)


async def issue_session(db: AsyncSession, user: User, client: ClientInfo | None = None) -> IssuedTokens:
    """Create a new active session for the user and return its tokens."""
    settings = get_settings()
    client = client or ClientInfo()
    now = datetime.now(timezone.utc)
    access_ttl = timedelta(minutes=settings.jwt_access_token_expire_minutes)

    session_id = str(uuid.uuid4())
    access_token = create_access_token(user.id, user.email, user.global_role, session_id)
    refresh_token = _new_refresh_token()

    db.add(
        Session(
            id=session_id,
            user_id=user.id,
            token=hash_token(access_token),
            refresh_token=hash_token(refresh_token),
            expires_at=now + access_ttl,
            refresh_token_expires_at=now + timedelta(days=settings.refresh_token_expire_days),
            ip_address=client.ip_address,
            user_agent=client.user_agent,
            device_info=client.device_info,
            last_activity_at=now,
        )
    )
    await db.flush()
    logger.info("session_issued", user_id=user.id, session_id=session_id)
    return IssuedTokens(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=int(access_ttl.total_seconds()),
        session_id=session_id,
    )


async def refresh_session(db: AsyncSession, raw_refresh_token: str) -> tuple[User, IssuedTokens]:
    """
    Exchange a refresh token for a new access token.

    With rotation enabled the refresh token is replaced in the same UPDATE
    that validates it; otherwise the presented one is returned unchanged.

    Raises:
        UnauthorizedError: Unknown, revoked, expired, or already-rotated token.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    refresh_hash = hash_token(raw_refresh_token)

    row = (
        await db.execute(
            select(Session.id, User)
            .join(User, User.id == Session.user_id)
            .where(Session.refresh_token == refresh_hash)
            .where(Session.is_active.is_(True))
        )
    ).one_or_none()
    if row is None:
        msg = "Invalid refresh token"
        raise UnauthorizedError(msg)
    session_id, user = row
    if not user.is_active or user.deleted_at is not None:
        msg = "Invalid refresh token"
        raise UnauthorizedError(msg)

    access_ttl = timedelta(minutes=settings.jwt_access_token_expire_minutes)
    access_token = create_access_token(user.id, user.email, user.global_role, session_id)
    values: dict[str, Any] = {
        "token": hash_token(access_token),
        "expires_at": now + access_ttl,
        "last_activity_at": now,
    }
    new_refresh = raw_refresh_token
    if settings.refresh_token_rotation:
        new_refresh = _new_refresh_token()
        values["refresh_token"] = hash_token(new_refresh)

    result = await db.execute(
        update(Session)
        .where(Session.id == session_id)
        .where(Session.refresh_token == refresh_hash)
        .where(Session.is_active.is_(True))
        .where(Session.refresh_token_expires_at > now)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        msg = "Invalid refresh token"
        raise UnauthorizedError(msg)

    logger.info("session_refreshed", user_id=user.id, session_id=session_id, rotated=settings.refresh_token_rotation)
    return user, IssuedTokens(
        access_token=access_token,
        refresh_token=new_refresh,
        expires_in=int(access_ttl.total_seconds()),
        session_id=session_id,
    )


async def logout_session(db: AsyncSession, raw_refresh_token: str) -> bool:
    """Deactivate the session owning this refresh token. Returns True if one was active."""
    result = await db.execute(
        update(Session)
        .where(Session.refresh_token == hash_token(raw_refresh_token))
        .where(Session.is_active.is_(True))
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    revoked = result.rowcount > 0
    if revoked:
        logger.info("session_logged_out")
    return revoked


async def revoke_all_sessions(db: AsyncSession, user_id: str) -> int:
    """Deactivate every active session of a user. Returns count revoked."""
    result = await db.execute(
        update(Session)
        .where(Session.user_id == user_id)
        .where(Session.is_active.is_(True))
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    count: int = result.rowcount
    logger.info("sessions_revoked", user_id=user_id, count=count)
    return count


async def get_active_session(db: AsyncSession, session_id: str) -> Session | None:
    """Fetch a session by ID if it is still active."""
    result = await db.execute(
        select(Session).where(Session.id == session_id).where(Session.is_active.is_(True))
    )
    return result.scalar_one_or_none()
