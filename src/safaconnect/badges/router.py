"""Badge router, all /badges/* endpoints.

Catalogue reads are public, awards need a verified account, and
catalogue writes and award management are admin-only.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from safaconnect.auth.dependencies import get_verified_user, require_admin
from safaconnect.auth.schemas import UserResponse
from safaconnect.badges import service
from safaconnect.badges.schemas import (
    AwardBadgeRequest,
    BadgeCreate,
    BadgeResponse,
    BadgeUpdate,
    HasBadgeResponse,
    UserBadgeResponse,
    UserWithBadgesResponse,
)
from safaconnect.database import get_session
from safaconnect.db.models import User
from safaconnect.responses import ApiResponse, Page, PageParams, page_body, page_params

router = APIRouter(prefix="/badges", tags=["Badges"])


# ---------------------------------------------------------------------------
# Per-user awards
# ---------------------------------------------------------------------------


@router.post("/award", response_model=ApiResponse[UserBadgeResponse], status_code=201)
async def award(
    body: AwardBadgeRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[UserBadgeResponse]:
    user_badge, badge = await service.award_badge(db, str(body.user_id), str(body.badge_id))
    await db.commit()
    return ApiResponse(
        message="Badge awarded successfully",
        data=UserBadgeResponse(
            id=user_badge.id,
            user_id=user_badge.user_id,
            badge_id=user_badge.badge_id,
            created_at=user_badge.created_at,
            badge=BadgeResponse.model_validate(badge),
        ),
    )


@router.get("/users/{user_id}", response_model=ApiResponse[UserWithBadgesResponse])
async def user_badges(
    user_id: UUID,
    _user: User = Depends(get_verified_user),
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[UserWithBadgesResponse]:
    user, badges = await service.get_user_badges(db, str(user_id))
    return ApiResponse(
        data=UserWithBadgesResponse(
            user=UserResponse.model_validate(user),
            badges=[BadgeResponse.model_validate(b) for b in badges],
        )
    )


@router.get("/users/{user_id}/badges/{badge_id}/check", response_model=ApiResponse[HasBadgeResponse])
async def check(
    user_id: UUID,
    badge_id: UUID,
    _user: User = Depends(get_verified_user),
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[HasBadgeResponse]:
    held = await service.has_badge(db, str(user_id), str(badge_id))
    return ApiResponse(data=HasBadgeResponse(has_badge=held))


@router.delete("/users/{user_id}/badges/{badge_id}", response_model=ApiResponse[None])
async def remove(
    user_id: UUID,
    badge_id: UUID,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[None]:
    await service.remove_badge(db, str(user_id), str(badge_id))
    await db.commit()
    return ApiResponse(message="Badge removed successfully")


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------


@router.get("", response_model=ApiResponse[Page[BadgeResponse]])
async def list_badges(
    params: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[Page[BadgeResponse]]:
    badges, total = await service.list_badges(db, params)
    return ApiResponse(data=page_body([BadgeResponse.model_validate(b) for b in badges], total, params))


@router.post("", response_model=ApiResponse[BadgeResponse], status_code=201)
async def create(
    body: BadgeCreate,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[BadgeResponse]:
    badge = await service.create_badge(db, body.name, body.description, body.image_url)
    await db.commit()
    return ApiResponse(message="Badge created successfully", data=BadgeResponse.model_validate(badge))


@router.get("/{badge_id}", response_model=ApiResponse[BadgeResponse])
async def get_badge(badge_id: UUID, db: AsyncSession = Depends(get_session)) -> ApiResponse[BadgeResponse]:
    badge = await service.get_badge_or_404(db, str(badge_id))
    return ApiResponse(data=BadgeResponse.model_validate(badge))


@router.put("/{badge_id}", response_model=ApiResponse[BadgeResponse])
async def update(
    badge_id: UUID,
    body: BadgeUpdate,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[BadgeResponse]:
    badge = await service.get_badge_or_404(db, str(badge_id))
    await service.update_badge(db, badge, body.model_dump(exclude_unset=True))
    await db.commit()
    await db.refresh(badge)
    return ApiResponse(message="Badge updated successfully", data=BadgeResponse.model_validate(badge))


@router.delete("/{badge_id}", response_model=ApiResponse[None])
async def delete(
    badge_id: UUID,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[None]:
    badge = await service.get_badge_or_404(db, str(badge_id))
    await service.delete_badge(db, badge)
    await db.commit()
    return ApiResponse(message="Badge deleted successfully")


@router.get("/{badge_id}/users", response_model=ApiResponse[Page[UserResponse]])
async def badge_holders(
    badge_id: UUID,
    params: PageParams = Depends(page_params),
    _user: User = Depends(get_verified_user),
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[Page[UserResponse]]:
    users, total = await service.list_badge_holders(db, str(badge_id), params)
    return ApiResponse(data=page_body([UserResponse.model_validate(u) for u in users], total, params))
