"""Request schemas for user administration.

Response shapes are shared with the auth endpoints.
"""

from __future__ import annotations

from pydantic import BaseModel, EmailStr, Field

from safaconnect.auth.schemas import ChangePasswordRequest, RegisterRequest, UserResponse
from safaconnect.db.models import GlobalRole


class CreateUserRequest(RegisterRequest):
    """Admin-created account; may set role and skip verification."""

    global_role: GlobalRole = GlobalRole.USER
    is_email_verified: bool = False


class UpdateUserRequest(BaseModel):
    """Partial update. ``is_active`` and ``global_role`` are admin-only."""

    email: EmailStr | None = None
    username: str | None = Field(None, min_length=1, max_length=50)
    full_name: str | None = Field(None, max_length=100)
    phone_number: str | None = Field(None, max_length=20)
    avatar_url: str | None = Field(None, max_length=255)
    is_active: bool | None = None
    global_role: GlobalRole | None = None


__all__ = [
    "ChangePasswordRequest",
    "CreateUserRequest",
    "UpdateUserRequest",
    "UserResponse",
]
