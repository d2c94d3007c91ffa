"""
OAuth 2.0 authorization-code login.

Flow:
1. ``create_authorization_url`` stores a random ``state`` in Redis bound to
   the provider name and returns the provider's consent URL.
2. ``handle_callback`` consumes the state (GETDEL, single use), exchanges
   the code, fetches the profile, links or creates the local user.

Provider rows live in ``oauth_providers``; the ones configured through
settings are upserted at startup by ``seed_providers``.
"""

from __future__ import annotations

import math
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

import httpx
import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from safaconnect.auth.password import unusable_password_hash
from safaconnect.config import Settings, get_settings
from safaconnect.db.models import OAuthProvider, User, UserOAuthConnection
from safaconnect.errors import ConflictError, NotFoundError, UnauthorizedError

if TYPE_CHECKING:
    from redis.asyncio import Redis
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

STATE_KEY_PREFIX = "oauth:state:"
# Longest provider token lifetime stored; anything beyond is treated as absent.
_MAX_EXPIRES_IN = 10 * 365 * 24 * 3600

_USERNAME_UNSAFE = re.compile(r"[^a-zA-Z0-9_-]")
_USERNAME_MAX = 30
_USERNAME_MIN = 3


@dataclass(frozen=True)
class OAuthProfile:
    """Provider profile reduced to the fields we store."""

    provider_user_id: str
    email: str
    name: str | None
    avatar_url: str | None
    raw: dict[str, Any]


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


def _configured_providers(settings: Settings) -> list[dict[str, str]]:
    providers = []
    if settings.oauth_google_client_id:
        providers.append(
            {
                "provider_name": "google",
                "display_name": "Google",
                "client_id": settings.oauth_google_client_id,
                "client_secret": settings.oauth_google_client_secret,
                "auth_url": settings.oauth_google_auth_url,
                "token_url": settings.oauth_google_token_url,
                "user_info_url": settings.oauth_google_user_info_url,
                "redirect_url": settings.oauth_google_redirect_url,
                "scope": settings.oauth_google_scope,
            }
        )
    if settings.oauth_github_client_id:
        providers.append(
            {
                "provider_name": "github",
                "display_name": "GitHub",
                "client_id": settings.oauth_github_client_id,
                "client_secret": settings.oauth_github_client_secret,
                "auth_url": settings.oauth_github_auth_url,
                "token_url": settings.oauth_github_token_url,
                "user_info_url": settings.oauth_github_user_info_url,
                "redirect_url": settings.oauth_github_redirect_url,
                "scope": settings.oauth_github_scope,
            }
        )
    return providers


async def seed_providers(db: AsyncSession) -> int:
    """Upsert providers configured through settings. Returns count written."""
    count = 0
    for data in _configured_providers(get_settings()):
        result = await db.execute(
            select(OAuthProvider).where(OAuthProvider.provider_name == data["provider_name"])
        )
        provider = result.scalar_one_or_none()
        if provider is None:
            db.add(OAuthProvider(**data))
        else:
            for key, value in data.items():
                setattr(provider, key, value)
            provider.is_active = True
            provider.deleted_at = None
        count += 1
    await db.flush()
    if count:
        logger.info("oauth_providers_seeded", count=count)
    return count


async def get_provider(db: AsyncSession, provider_name: str) -> OAuthProvider:
    """Fetch an active provider by name. Raises NotFoundError."""
    result = await db.execute(
        select(OAuthProvider)
        .where(OAuthProvider.provider_name == provider_name)
        .where(OAuthProvider.is_active.is_(True))
        .where(OAuthProvider.deleted_at.is_(None))
    )
    provider = result.scalar_one_or_none()
    if provider is None:
        msg = f"OAuth provider '{provider_name}' not found"
        raise NotFoundError(msg)
    return provider


# ---------------------------------------------------------------------------
# Authorization redirect and state
# ---------------------------------------------------------------------------


async def create_authorization_url(db: AsyncSession, redis: Redis, provider_name: str) -> tuple[str, str]:
    """Return (authorization URL, state) for the provider."""
    provider = await get_provider(db, provider_name)
    state = secrets.token_urlsafe(32)
    await redis.set(f"{STATE_KEY_PREFIX}{state}", provider.provider_name, ex=get_settings().oauth_state_ttl_seconds)
    query = urlencode(
        {
            "response_type": "code",
            "client_id": provider.client_id,
            "redirect_uri": provider.redirect_url,
            "scope": provider.scope,
            "state": state,
        }
    )
    separator = "&" if "?" in provider.auth_url else "?"
    return f"{provider.auth_url}{separator}{query}", state


async def consume_state(redis: Redis, state: str, provider_name: str) -> None:
    """
    Redeem a state value exactly once.

    Raises:
        UnauthorizedError: Unknown, expired, reused, or bound to another provider.
    """
    bound = await redis.getdel(f"{STATE_KEY_PREFIX}{state}")
    if bound is None or bound != provider_name:
        logger.warning("oauth_state_mismatch", provider=provider_name)
        msg = "Invalid OAuth state"
        raise UnauthorizedError(msg)


# ---------------------------------------------------------------------------
# Provider calls
# ---------------------------------------------------------------------------


def _http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=get_settings().oauth_http_timeout_seconds)


async def exchange_code(provider: OAuthProvider, code: str) -> dict[str, Any]:
    """Trade the authorization code for provider tokens."""
    try:
        async with _http_client() as client:
            response = await client.post(
                provider.token_url,
                data={
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": provider.redirect_url,
                    "client_id": provider.client_id,
                    "client_secret": provider.client_secret,
                },
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
            token_data: dict[str, Any] = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("oauth_exchange_failed", provider=provider.provider_name, error=str(e))
        msg = "OAuth code exchange failed"
        raise UnauthorizedError(msg) from e
    if not token_data.get("access_token"):
        msg = "OAuth provider returned no access token"
        raise UnauthorizedError(msg)
    return token_data


async def fetch_user_info(provider: OAuthProvider, access_token: str) -> dict[str, Any]:
    try:
        async with _http_client() as client:
            response = await client.get(
                provider.user_info_url,
                headers={"Authorization": f"Bearer {access_token}", "Accept": "application/json"},
            )
            response.raise_for_status()
            info: dict[str, Any] = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("oauth_user_info_failed", provider=provider.provider_name, error=str(e))
        msg = "Failed to fetch OAuth user info"
        raise UnauthorizedError(msg) from e
    return info


def normalize_profile(provider_name: str, info: dict[str, Any]) -> OAuthProfile:
    """
    Map a provider's user-info payload onto OAuthProfile.

    Raises:
        UnauthorizedError: No stable user id or email in the payload.
    """
    if provider_name == "github":
        login = info.get("login")
        user_id = info.get("id")
        email = info.get("email") or (f"{login}@github.user" if login else None)
        name = info.get("name") or login
        avatar = info.get("avatar_url")
    elif provider_name == "google":
        user_id = info.get("id") or info.get("sub")
        email = info.get("email")
        name = info.get("name")
        avatar = info.get("picture")
    else:
        user_id = info.get("sub") or info.get("id")
        email = info.get("email")
        name = info.get("name")
        avatar = info.get("picture") or info.get("avatar_url")

    if user_id is None or not email:
        msg = "OAuth profile is missing id or email"
        raise UnauthorizedError(msg)
    return OAuthProfile(
        provider_user_id=str(user_id),
        email=str(email).strip(),
        name=name,
        avatar_url=avatar,
        raw=info,
    )


# ---------------------------------------------------------------------------
# Linking
# ---------------------------------------------------------------------------


async def _available_username(db: AsyncSession, email: str) -> str:
    base = _USERNAME_UNSAFE.sub("_", email.split("@", 1)[0])[: _USERNAME_MAX - 4]
    if len(base) < _USERNAME_MIN:
        base = base.ljust(_USERNAME_MIN, "_")
    candidate = base
    suffix = 0
    while True:
        taken = await db.execute(select(User.id).where(User.username == candidate))
        if taken.scalar_one_or_none() is None:
            return candidate
        suffix += 1
        candidate = f"{base}_{suffix}"


def _seconds(value: Any) -> float | None:  # noqa: ANN401
    """Provider ``expires_in`` as seconds; unparseable values are treated as absent."""
    if value is None or isinstance(value, bool):
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        logger.warning("oauth_expires_in_invalid", value=str(value)[:32])
        return None
    return seconds if math.isfinite(seconds) and 0 < seconds <= _MAX_EXPIRES_IN else None


def _apply_tokens(connection: UserOAuthConnection, profile: OAuthProfile, token_data: dict[str, Any]) -> None:
    connection.email = profile.email
    connection.name = profile.name
    connection.avatar_url = profile.avatar_url
    connection.access_token = token_data.get("access_token")
    connection.refresh_token = token_data.get("refresh_token") or connection.refresh_token
    expires_in = _seconds(token_data.get("expires_in"))
    connection.expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in) if expires_in else None
    connection.raw_user_info = profile.raw


async def link_or_create_user(
    db: AsyncSession,
    provider: OAuthProvider,
    profile: OAuthProfile,
    token_data: dict[str, Any],
) -> User:
    """
    Resolve the local user for a provider identity.

    Existing connection wins, then an account with the same email, else a
    new account is created.

    Raises:
        ConflictError: The user is already linked to a different identity
            at this provider, or a concurrent link won the race.
        UnauthorizedError: The resolved account is disabled.
    """
    result = await db.execute(
        select(UserOAuthConnection)
        .where(UserOAuthConnection.provider_id == provider.id)
        .where(UserOAuthConnection.provider_user_id == profile.provider_user_id)
        .where(UserOAuthConnection.deleted_at.is_(None))
    )
    connection = result.scalar_one_or_none()

    if connection is not None:
        user = (await db.execute(select(User).where(User.id == connection.user_id))).scalar_one()
        created = False
    else:
        user_result = await db.execute(select(User).where(User.email == profile.email))
        existing = user_result.scalar_one_or_none()
        created = existing is None
        if existing is None:
            user = User(
                email=profile.email,
                username=await _available_username(db, profile.email),
                password_hash=unusable_password_hash(),
                full_name=profile.name,
                avatar_url=profile.avatar_url,
                is_active=True,
                is_email_verified=get_settings().oauth_auto_verify_email,
            )
            db.add(user)
        else:
            user = existing
            other = await db.execute(
                select(UserOAuthConnection)
                .where(UserOAuthConnection.user_id == user.id)
                .where(UserOAuthConnection.provider_id == provider.id)
            )
            if other.scalar_one_or_none() is not None:
                msg = f"Account is already linked to another {provider.display_name} identity"
                raise ConflictError(msg)
        connection = UserOAuthConnection(
            user=user,
            provider_id=provider.id,
            provider_user_id=profile.provider_user_id,
        )
        db.add(connection)

    if not user.is_active or user.deleted_at is not None:
        msg = "Account is disabled"
        raise UnauthorizedError(msg)

    _apply_tokens(connection, profile, token_data)
    try:
        await db.flush()
    except IntegrityError as e:
        msg = "OAuth account is already linked"
        raise ConflictError(msg) from e

    logger.info(
        "oauth_linked",
        user_id=user.id,
        provider=provider.provider_name,
        created=created,
    )
    return user


async def handle_callback(
    db: AsyncSession,
    redis: Redis,
    provider_name: str,
    code: str | None,
    state: str | None,
    error: str | None = None,
) -> User:
    """Validate state, talk to the provider, and return the linked user."""
    if error:
        logger.warning("oauth_provider_error", provider=provider_name, error=error)
        msg = f"OAuth provider returned an error: {error}"
        raise UnauthorizedError(msg)
    if not state:
        msg = "Invalid OAuth state"
        raise UnauthorizedError(msg)
    await consume_state(redis, state, provider_name)
    if not code:
        msg = "Missing authorization code"
        raise UnauthorizedError(msg)

    provider = await get_provider(db, provider_name)
    token_data = await exchange_code(provider, code)
    info = await fetch_user_info(provider, token_data["access_token"])
    profile = normalize_profile(provider.provider_name, info)
    return await link_or_create_user(db, provider, profile, token_data)
