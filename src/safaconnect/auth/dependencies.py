"""FastAPI authentication dependencies."""

from __future__ import annotations

import jwt
import structlog
from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from safaconnect.auth.jwt import verify_token
from safaconnect.auth.service import get_user_by_id
from safaconnect.auth.sessions import get_active_session
from safaconnect.database import get_session
from safaconnect.db.models import User
from safaconnect.errors import ForbiddenError, UnauthorizedError

logger = structlog.get_logger()

_bearer = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> User:
    """
    Extract and verify the bearer JWT, return the User model.

    The token's session must still be active and the account enabled.
    Email verification is not checked here; see ``get_verified_user``.
    """
    if credentials is None:
        msg = "Missing authorization token"
        raise UnauthorizedError(msg)
    try:
        payload = verify_token(credentials.credentials, expected_type="access")
    except jwt.InvalidTokenError as e:
        raise UnauthorizedError(str(e)) from e

    session = await get_active_session(db, payload["sid"])
    if session is None or session.user_id != payload["sub"]:
        msg = "Session has been revoked"
        raise UnauthorizedError(msg)

    user = await get_user_by_id(db, payload["sub"])
    if user is None or not user.is_active:
        msg = "User not found"
        raise UnauthorizedError(msg)
    return user


async def get_verified_user(user: User = Depends(get_current_user)) -> User:
    """Same as get_current_user but requires a verified email address."""
    if not user.is_email_verified:
        msg = "Email address is not verified"
        raise ForbiddenError(msg)
    return user


async def require_admin(user: User = Depends(get_verified_user)) -> User:
    """Allow only ADMIN accounts."""
    if not user.is_admin:
        logger.warning("admin_required", user_id=user.id)
        msg = "Admin access required"
        raise ForbiddenError(msg)
    return user
