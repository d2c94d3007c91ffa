"""User administration business logic."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from safaconnect.auth.password import validate_username
from safaconnect.auth.service import ensure_unique, get_user_by_id
from safaconnect.auth.sessions import revoke_all_sessions
from safaconnect.db.models import User
from safaconnect.errors import ConflictError, ForbiddenError, NotFoundError
from safaconnect.responses import PageParams, paginate

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

ADMIN_ONLY_FIELDS = frozenset({"is_active", "global_role"})


def ensure_self_or_admin(actor: User, user_id: str) -> None:
    if actor.id != user_id and not actor.is_admin:
        msg = "You can only access your own account"
        raise ForbiddenError(msg)


async def get_user_or_404(db: AsyncSession, user_id: str) -> User:
    user = await get_user_by_id(db, user_id)
    if user is None:
        msg = "User not found"
        raise NotFoundError(msg)
    return user


async def list_users(db: AsyncSession, params: PageParams) -> tuple[list[User], int]:
    """Page through users that are not soft-deleted, newest first."""
    query = select(User).where(User.deleted_at.is_(None)).order_by(User.created_at.desc(), User.id)
    return await paginate(db, query, params)


async def update_user(db: AsyncSession, actor: User, target: User, changes: dict[str, Any]) -> bool:
    """
    Apply a partial update.

    Returns True if the email address changed, in which case the account
    is marked unverified again.

    Raises:
        ForbiddenError: A non-admin tried to change role or active state.
        InvalidInputError: Bad username.
        ConflictError: Email or username taken.
    """
    forbidden = ADMIN_ONLY_FIELDS.intersection(changes)
    if forbidden and not actor.is_admin:
        msg = f"Only admins can change: {', '.join(sorted(forbidden))}"
        raise ForbiddenError(msg)

    email = changes.pop("email", None)
    username = changes.pop("username", None)
    if email is not None:
        email = email.strip()
        email = None if email == target.email else email
    if username is not None:
        username = username.strip()
        validate_username(username)
        username = None if username == target.username else username
    await ensure_unique(db, email=email, username=username, exclude_user_id=target.id)

    email_changed = email is not None
    if email_changed:
        target.email = email
        target.is_email_verified = False
    if username is not None:
        target.username = username
    if "global_role" in changes and changes["global_role"] is not None:
        changes["global_role"] = changes["global_role"].value
    for field, value in changes.items():
        if field in ADMIN_ONLY_FIELDS and value is None:
            continue
        setattr(target, field, value)

    try:
        await db.flush()
    except IntegrityError as e:
        msg = "Email or username already exists"
        raise ConflictError(msg) from e
    logger.info("user_updated", user_id=target.id, actor_id=actor.id, email_changed=email_changed)
    return email_changed


async def soft_delete_user(db: AsyncSession, user: User) -> None:
    """Mark the account deleted and inactive and revoke its sessions."""
    user.deleted_at = datetime.now(timezone.utc)
    user.is_active = False
    await revoke_all_sessions(db, user.id)
    await db.flush()
    logger.info("user_deleted", user_id=user.id)
