"""Request/response schemas for authentication endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """User as returned by every endpoint. Never includes the password hash."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    username: str
    full_name: str | None = None
    phone_number: str | None = None
    avatar_url: str | None = None
    global_role: str
    is_email_verified: bool
    is_phone_verified: bool
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Registration / login
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Email + username + password registration."""

    email: EmailStr
    username: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=1)
    full_name: str | None = Field(None, max_length=100)
    phone_number: str | None = Field(None, max_length=20)
    avatar_url: str | None = Field(None, max_length=255)

    @field_validator("email", "username")
    @classmethod
    def strip(cls, v: str) -> str:
        return v.strip()


class LoginRequest(BaseModel):
    """Login with email-or-username + password."""

    email: str = Field(..., min_length=1, description="Email address or username")
    password: str = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


class TokenResponse(BaseModel):
    """Login / refresh / OAuth callback response."""

    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int
    user: UserResponse


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class LogoutRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------


class PasswordResetRequest(BaseModel):
    """Request a password reset email."""

    email: EmailStr

    @field_validator("email")
    @classmethod
    def strip(cls, v: str) -> str:
        return v.strip()


class ResetPasswordRequest(BaseModel):
    """Reset password with a valid token."""

    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1)


class ChangePasswordRequest(BaseModel):
    """Change password. ``current_password`` is required when changing your own."""

    current_password: str | None = None
    new_password: str = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# OAuth
# ---------------------------------------------------------------------------


class OAuthRedirectResponse(BaseModel):
    url: str
    state: str
