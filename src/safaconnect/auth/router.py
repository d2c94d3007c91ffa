"""Authentication router, all /auth/* endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from safaconnect.auth import jobs
from safaconnect.auth.dependencies import get_current_user, get_verified_user
from safaconnect.auth.oauth import create_authorization_url, handle_callback
from safaconnect.auth.password import upgraded_hash
from safaconnect.auth.schemas import (
    LoginRequest,
    LogoutRequest,
    OAuthRedirectResponse,
    PasswordResetRequest,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenResponse,
    UserResponse,
)
from safaconnect.auth.service import (
    authenticate_user,
    get_user_by_email,
    get_user_by_id,
    prepare_new_password,
    register_user,
)
from safaconnect.auth.sessions import ClientInfo, IssuedTokens, issue_session, logout_session, refresh_session
from safaconnect.auth.tokens import consume_token
from safaconnect.database import get_session
from safaconnect.db.models import TokenType, User
from safaconnect.errors import InvalidInputError, NotFoundError
from safaconnect.redis_client import get_redis
from safaconnect.responses import ApiResponse
from safaconnect.tasks import spawn

logger = structlog.get_logger()

router = APIRouter(prefix="/auth", tags=["Authentication"])

PASSWORD_RESET_SENT = "If an account with that email exists, a password reset link has been sent"


def _client_info(request: Request) -> ClientInfo:
    return ClientInfo(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def _token_response(user: User, tokens: IssuedTokens) -> TokenResponse:
    return TokenResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        expires_in=tokens.expires_in,
        user=UserResponse.model_validate(user),
    )


# ---------------------------------------------------------------------------
# Registration / login
# ---------------------------------------------------------------------------


@router.post("/register", response_model=ApiResponse[UserResponse], status_code=201)
async def register(
    body: RegisterRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[UserResponse]:
    """Create an account. The verification email is sent after the response."""
    user = await register_user(
        db,
        email=body.email,
        username=body.username,
        password=body.password,
        full_name=body.full_name,
        phone_number=body.phone_number,
        avatar_url=body.avatar_url,
    )
    await db.commit()
    await db.refresh(user)
    spawn(background_tasks, jobs.send_welcome_email, user.id, user.email, user.full_name or user.username)
    return ApiResponse(message="User registered successfully", data=UserResponse.model_validate(user))


@router.post("/login", response_model=ApiResponse[TokenResponse])
async def login(
    body: LoginRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[TokenResponse]:
    """Log in with email or username and password."""
    user = await authenticate_user(db, body.email, body.password)
    tokens = await issue_session(db, user, _client_info(request))
    await db.commit()
    spawn(background_tasks, jobs.record_login, user.id, upgraded_hash(body.password, user.password_hash))
    return ApiResponse(message="Login successful", data=_token_response(user, tokens))


@router.post("/refresh", response_model=ApiResponse[TokenResponse])
async def refresh(
    body: RefreshRequest,
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[TokenResponse]:
    """Exchange a refresh token for a new access token (and a rotated refresh token)."""
    user, tokens = await refresh_session(db, body.refresh_token)
    await db.commit()
    return ApiResponse(message="Token refreshed successfully", data=_token_response(user, tokens))


@router.post("/logout", response_model=ApiResponse[None])
async def logout(
    body: LogoutRequest,
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[None]:
    """End the session owning the refresh token. Always succeeds."""
    await logout_session(db, body.refresh_token)
    await db.commit()
    return ApiResponse(message="Logged out successfully")


@router.get("/me", response_model=ApiResponse[UserResponse])
async def me(user: User = Depends(get_verified_user)) -> ApiResponse[UserResponse]:
    return ApiResponse(data=UserResponse.model_validate(user))


# ---------------------------------------------------------------------------
# Email verification
# ---------------------------------------------------------------------------


@router.get("/verify-email/{token}", response_model=ApiResponse[None])
async def verify_email(
    token: str,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[None]:
    user_id = await consume_token(db, token, TokenType.EMAIL_VERIFICATION)
    await db.commit()
    spawn(background_tasks, jobs.mark_email_verified, user_id)
    return ApiResponse(message="Email verified successfully")


@router.post("/resend-verification-email", response_model=ApiResponse[None])
async def resend_verification_email(
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
) -> ApiResponse[None]:
    """Send a new verification link. Reachable while the email is unverified."""
    if user.is_email_verified:
        msg = "Email is already verified"
        raise InvalidInputError(msg)
    spawn(background_tasks, jobs.send_verification_email, user.id, user.email, user.full_name or user.username)
    return ApiResponse(message="Verification email sent")


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------


@router.post("/request-password-reset", response_model=ApiResponse[None])
async def request_password_reset(
    body: PasswordResetRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[None]:
    """Always returns the same message so account existence is not revealed."""
    user = await get_user_by_email(db, body.email)
    if user is not None and user.is_active:
        spawn(background_tasks, jobs.send_password_reset_email, user.id, user.email)
    else:
        logger.info("password_reset_unknown_email")
    return ApiResponse(message=PASSWORD_RESET_SENT)


@router.post("/reset-password", response_model=ApiResponse[None])
async def reset_password(
    body: ResetPasswordRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[None]:
    """Set a new password using a reset token. All sessions are revoked."""
    password_hash = prepare_new_password(body.new_password)
    user_id = await consume_token(db, body.token, TokenType.PASSWORD_RESET)
    user = await get_user_by_id(db, user_id)
    if user is None:
        msg = "User not found"
        raise NotFoundError(msg)
    await db.commit()
    spawn(
        background_tasks,
        jobs.apply_password_change,
        user.id,
        password_hash,
        user.email,
        user.full_name or user.username,
    )
    return ApiResponse(message="Password has been reset successfully")


# ---------------------------------------------------------------------------
# OAuth
# ---------------------------------------------------------------------------


@router.get("/oauth/{provider}", response_model=ApiResponse[OAuthRedirectResponse])
async def oauth_redirect(
    provider: str,
    db: AsyncSession = Depends(get_session),
    redis: Redis = Depends(get_redis),
) -> ApiResponse[OAuthRedirectResponse]:
    """Return the provider consent URL and the anti-forgery state."""
    url, state = await create_authorization_url(db, redis, provider)
    return ApiResponse(data=OAuthRedirectResponse(url=url, state=state))


@router.get("/oauth/{provider}/callback", response_model=ApiResponse[TokenResponse])
async def oauth_callback(
    provider: str,
    request: Request,
    background_tasks: BackgroundTasks,
    code: str | None = Query(None),
    state: str | None = Query(None),
    error: str | None = Query(None),
    db: AsyncSession = Depends(get_session),
    redis: Redis = Depends(get_redis),
) -> ApiResponse[TokenResponse]:
    user = await handle_callback(db, redis, provider, code, state, error)
    tokens = await issue_session(db, user, _client_info(request))
    await db.commit()
    await db.refresh(user)
    spawn(background_tasks, jobs.record_login, user.id)
    return ApiResponse(message="Login successful", data=_token_response(user, tokens))
