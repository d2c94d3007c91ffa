"""
Authentication business logic.

Handles user creation, credential checks, and password changes. Session
and token ledgers live in ``safaconnect.auth.sessions`` and
``safaconnect.auth.tokens``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError

from safaconnect.auth.password import (
    hash_password,
    validate_password_strength,
    validate_username,
    verify_password,
)
from safaconnect.db.models import GlobalRole, User
from safaconnect.errors import ConflictError, ForbiddenError, UnauthorizedError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

INVALID_CREDENTIALS = "Invalid credentials"


# ---------------------------------------------------------------------------
# User queries
# ---------------------------------------------------------------------------


async def get_user_by_id(db: AsyncSession, user_id: str) -> User | None:
    """Fetch a user by ID, ignoring soft-deleted accounts."""
    result = await db.execute(select(User).where(User.id == user_id).where(User.deleted_at.is_(None)))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Fetch a user by email (exact match)."""
    result = await db.execute(select(User).where(User.email == email).where(User.deleted_at.is_(None)))
    return result.scalar_one_or_none()


async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
    result = await db.execute(select(User).where(User.username == username).where(User.deleted_at.is_(None)))
    return result.scalar_one_or_none()


async def ensure_unique(
    db: AsyncSession,
    *,
    email: str | None = None,
    username: str | None = None,
    exclude_user_id: str | None = None,
) -> None:
    """
    Raise ConflictError if another account already uses the email or username.

    Soft-deleted accounts still hold their email and username.
    """
    clauses = []
    if email is not None:
        clauses.append(User.email == email)
    if username is not None:
        clauses.append(User.username == username)
    if not clauses:
        return
    stmt = select(User.email, User.username).where(or_(*clauses))
    if exclude_user_id is not None:
        stmt = stmt.where(User.id != exclude_user_id)
    for existing_email, existing_username in (await db.execute(stmt)).all():
        if email is not None and existing_email == email:
            msg = "Email already registered"
            raise ConflictError(msg)
        if username is not None and existing_username == username:
            msg = "Username already taken"
            raise ConflictError(msg)


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


async def register_user(
    db: AsyncSession,
    email: str,
    username: str,
    password: str,
    full_name: str | None = None,
    phone_number: str | None = None,
    avatar_url: str | None = None,
    *,
    global_role: GlobalRole = GlobalRole.USER,
    is_email_verified: bool = False,
) -> User:
    """
    Register a new user with email, username and password.

    Raises:
        InvalidInputError: Bad username or weak password.
        ConflictError: Email or username already exists.
    """
    email = email.strip()
    username = username.strip()
    validate_username(username)
    validate_password_strength(password)
    await ensure_unique(db, email=email, username=username)

    user = User(
        email=email,
        username=username,
        password_hash=hash_password(password),
        full_name=full_name,
        phone_number=phone_number,
        avatar_url=avatar_url,
        global_role=global_role.value,
        is_email_verified=is_email_verified,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError as e:
        msg = "Email or username already exists"
        raise ConflictError(msg) from e
    logger.info("user_created", user_id=user.id, username=username, method="password")
    return user


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


async def authenticate_user(db: AsyncSession, identifier: str, password: str) -> User:
    """
    Authenticate with email-or-username + password.

    Unknown account and wrong password raise the same error.

    Raises:
        UnauthorizedError: If credentials are invalid or the account is disabled.
    """
    identifier = identifier.strip()
    if "@" in identifier:
        user = await get_user_by_email(db, identifier)
    else:
        user = await get_user_by_username(db, identifier)

    if user is None or not verify_password(password, user.password_hash):
        logger.info("login_failed")
        raise UnauthorizedError(INVALID_CREDENTIALS)

    if not user.is_active:
        msg = "Account is disabled"
        raise UnauthorizedError(msg)

    logger.info("login_succeeded", user_id=user.id)
    return user


# ---------------------------------------------------------------------------
# Password change
# ---------------------------------------------------------------------------


def authorize_password_change(actor: User, target: User, current_password: str | None) -> None:
    """
    Check that ``actor`` may set a new password on ``target``.

    A user changing their own password must present the current one. An
    admin may reset anyone else's without it.

    Raises:
        UnauthorizedError: Own password change with a wrong current password.
        ForbiddenError: Non-admin acting on another user.
    """
    if actor.id == target.id:
        if not current_password or not verify_password(current_password, target.password_hash):
            msg = "Current password is incorrect"
            raise UnauthorizedError(msg)
        return
    if not actor.is_admin:
        msg = "You can only change your own password"
        raise ForbiddenError(msg)


def prepare_new_password(new_password: str) -> str:
    """Validate strength and return the argon2id hash for a new password."""
    validate_password_strength(new_password)
    return hash_password(new_password)
