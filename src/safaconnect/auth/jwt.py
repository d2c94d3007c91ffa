"""
JWT access token management.

HS256 with the shared ``jwt_secret`` by default. When the configured
algorithm is asymmetric (RS*/ES*), keys are read from the PEM paths in
settings. Every access token carries the ``sid`` of the session that
issued it so a revoked session invalidates its tokens immediately.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import jwt

from safaconnect.config import get_settings

_private_key: str | None = None
_public_key: str | None = None


def _load_keys() -> tuple[str, str]:
    """Return (signing key, verification key), cached after first call."""
    global _private_key, _public_key  # noqa: PLW0603
    if _private_key is None or _public_key is None:
        settings = get_settings()
        if settings.jwt_algorithm.startswith("HS"):
            _private_key = _public_key = settings.jwt_secret
        else:
            _private_key = Path(settings.jwt_private_key_path).read_text()
            _public_key = Path(settings.jwt_public_key_path).read_text()
    return _private_key, _public_key


def reset_keys() -> None:
    """Reset cached keys (useful for testing)."""
    global _private_key, _public_key  # noqa: PLW0603
    _private_key = None
    _public_key = None


def create_access_token(
    user_id: str,
    email: str,
    role: str,
    session_id: str,
    *,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a short-lived access token.

    Args:
        user_id: The user's database ID.
        email: The user's email address.
        role: The user's global role.
        session_id: ID of the session row this token belongs to.
        expires_delta: Override the configured lifetime.

    Returns:
        Encoded JWT string.
    """
    private_key, _ = _load_keys()
    settings = get_settings()
    now = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.jwt_access_token_expire_minutes)
    payload: dict[str, Any] = {
        "sub": user_id,
        "email": email,
        "role": role,
        "sid": session_id,
        "jti": uuid.uuid4().hex,
        "iat": now,
        "exp": now + expires_delta,
        "iss": settings.jwt_issuer,
        "type": "access",
    }
    return jwt.encode(payload, private_key, algorithm=settings.jwt_algorithm)


def verify_token(token: str, expected_type: str = "access") -> dict[str, Any]:
    """
    Verify and decode a JWT token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or wrong type.
    """
    _, public_key = _load_keys()
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            public_key,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            options={"require": ["sub", "sid", "exp", "iss"]},
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    if payload.get("type") != expected_type:
        msg = f"Expected token type '{expected_type}', got '{payload.get('type')}'"
        raise jwt.InvalidTokenError(msg)

    return payload
