"""Badge request/response schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from safaconnect.auth.schemas import UserResponse


class BadgeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    image_url: str | None = Field(None, max_length=255)


class BadgeUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = None
    image_url: str | None = Field(None, max_length=255)


class BadgeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str | None = None
    image_url: str | None = None
    created_at: datetime
    updated_at: datetime


class AwardBadgeRequest(BaseModel):
    user_id: UUID
    badge_id: UUID


class UserBadgeResponse(BaseModel):
    """A badge held by a user."""

    id: str
    user_id: str
    badge_id: str
    created_at: datetime
    badge: BadgeResponse


class UserWithBadgesResponse(BaseModel):
    user: UserResponse
    badges: list[BadgeResponse]


class HasBadgeResponse(BaseModel):
    has_badge: bool
