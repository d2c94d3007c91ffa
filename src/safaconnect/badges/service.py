"""Badge catalogue and award service with duplicate prevention."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from safaconnect.auth.service import get_user_by_id
from safaconnect.db.models import Badge, User, UserBadge
from safaconnect.errors import ConflictError, NotFoundError
from safaconnect.responses import PageParams, paginate

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------


async def get_badge_or_404(db: AsyncSession, badge_id: str) -> Badge:
    result = await db.execute(select(Badge).where(Badge.id == badge_id).where(Badge.deleted_at.is_(None)))
    badge = result.scalar_one_or_none()
    if badge is None:
        msg = "Badge not found"
        raise NotFoundError(msg)
    return badge


async def list_badges(db: AsyncSession, params: PageParams) -> tuple[list[Badge], int]:
    query = select(Badge).where(Badge.deleted_at.is_(None)).order_by(Badge.created_at.desc(), Badge.id)
    return await paginate(db, query, params)


async def create_badge(db: AsyncSession, name: str, description: str | None, image_url: str | None) -> Badge:
    badge = Badge(name=name, description=description, image_url=image_url)
    db.add(badge)
    await db.flush()
    logger.info("badge_created", badge_id=badge.id, name=name)
    return badge


async def update_badge(db: AsyncSession, badge: Badge, changes: dict[str, Any]) -> Badge:
    for field, value in changes.items():
        if field == "name" and value is None:
            continue
        setattr(badge, field, value)
    await db.flush()
    return badge


async def delete_badge(db: AsyncSession, badge: Badge) -> None:
    """Soft-delete a badge. Existing awards stay but the badge is hidden."""
    badge.deleted_at = datetime.now(timezone.utc)
    await db.flush()
    logger.info("badge_deleted", badge_id=badge.id)


# ---------------------------------------------------------------------------
# Awards
# ---------------------------------------------------------------------------


async def _get_user_or_404(db: AsyncSession, user_id: str) -> User:
    user = await get_user_by_id(db, user_id)
    if user is None:
        msg = "User not found"
        raise NotFoundError(msg)
    return user


async def _find_award(db: AsyncSession, user_id: str, badge_id: str) -> UserBadge | None:
    result = await db.execute(
        select(UserBadge).where(UserBadge.user_id == user_id).where(UserBadge.badge_id == badge_id)
    )
    return result.scalar_one_or_none()


async def has_badge(db: AsyncSession, user_id: str, badge_id: str) -> bool:
    """Check if user currently holds a specific badge."""
    award = await _find_award(db, user_id, badge_id)
    return award is not None and award.deleted_at is None


async def award_badge(db: AsyncSession, user_id: str, badge_id: str) -> tuple[UserBadge, Badge]:
    """
    Award a badge to a user. A previously removed award is revived.

    Raises:
        NotFoundError: Unknown user or badge.
        ConflictError: The user already holds the badge.
    """
    await _get_user_or_404(db, user_id)
    badge = await get_badge_or_404(db, badge_id)

    award = await _find_award(db, user_id, badge_id)
    if award is not None and award.deleted_at is None:
        msg = "User already has this badge"
        raise ConflictError(msg)

    if award is None:
        award = UserBadge(user_id=user_id, badge_id=badge_id)
        db.add(award)
    else:
        award.deleted_at = None
        award.created_at = datetime.now(timezone.utc)

    try:
        await db.flush()
    except IntegrityError as e:
        # Concurrent award of the same badge
        msg = "User already has this badge"
        raise ConflictError(msg) from e

    logger.info("badge_awarded", user_id=user_id, badge_id=badge_id)
    return award, badge


async def remove_badge(db: AsyncSession, user_id: str, badge_id: str) -> None:
    """Take a badge away from a user. Raises NotFoundError if not held."""
    award = await _find_award(db, user_id, badge_id)
    if award is None or award.deleted_at is not None:
        msg = "User does not have this badge"
        raise NotFoundError(msg)
    award.deleted_at = datetime.now(timezone.utc)
    await db.flush()
    logger.info("badge_removed", user_id=user_id, badge_id=badge_id)


async def list_badge_holders(db: AsyncSession, badge_id: str, params: PageParams) -> tuple[list[User], int]:
    await get_badge_or_404(db, badge_id)
    query = (
        select(User)
        .join(UserBadge, UserBadge.user_id == User.id)
        .where(UserBadge.badge_id == badge_id)
        .where(UserBadge.deleted_at.is_(None))
        .where(User.deleted_at.is_(None))
        .order_by(UserBadge.created_at.desc(), User.id)
    )
    return await paginate(db, query, params)


async def get_user_badges(db: AsyncSession, user_id: str) -> tuple[User, list[Badge]]:
    user = await _get_user_or_404(db, user_id)
    result = await db.execute(
        select(Badge)
        .join(UserBadge, UserBadge.badge_id == Badge.id)
        .where(UserBadge.user_id == user_id)
        .where(UserBadge.deleted_at.is_(None))
        .where(Badge.deleted_at.is_(None))
        .order_by(UserBadge.created_at)
    )
    return user, list(result.scalars().all())
