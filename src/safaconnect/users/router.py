"""User management router, all /users/* endpoints."""

from __future__ import annotations

from uuid import UUID

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from safaconnect.auth import jobs
from safaconnect.auth.dependencies import get_verified_user, require_admin
from safaconnect.auth.service import authorize_password_change, prepare_new_password, register_user
from safaconnect.database import get_session
from safaconnect.db.models import User
from safaconnect.responses import ApiResponse, Page, PageParams, page_body, page_params
from safaconnect.tasks import spawn
from safaconnect.users.schemas import ChangePasswordRequest, CreateUserRequest, UpdateUserRequest, UserResponse
from safaconnect.users.service import (
    ensure_self_or_admin,
    get_user_or_404,
    list_users,
    soft_delete_user,
    update_user,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("", response_model=ApiResponse[Page[UserResponse]])
async def list_all_users(
    params: PageParams = Depends(page_params),
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[Page[UserResponse]]:
    users, total = await list_users(db, params)
    items = [UserResponse.model_validate(u) for u in users]
    return ApiResponse(data=page_body(items, total, params))


@router.post("", response_model=ApiResponse[UserResponse], status_code=201)
async def create_user(
    body: CreateUserRequest,
    background_tasks: BackgroundTasks,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[UserResponse]:
    user = await register_user(
        db,
        email=body.email,
        username=body.username,
        password=body.password,
        full_name=body.full_name,
        phone_number=body.phone_number,
        avatar_url=body.avatar_url,
        global_role=body.global_role,
        is_email_verified=body.is_email_verified,
    )
    await db.commit()
    await db.refresh(user)
    logger.info("user_created_by_admin", user_id=user.id, admin_id=admin.id)
    if not user.is_email_verified:
        spawn(background_tasks, jobs.send_welcome_email, user.id, user.email, user.full_name or user.username)
    return ApiResponse(message="User created successfully", data=UserResponse.model_validate(user))


@router.get("/me", response_model=ApiResponse[UserResponse])
async def get_me(user: User = Depends(get_verified_user)) -> ApiResponse[UserResponse]:
    return ApiResponse(data=UserResponse.model_validate(user))


@router.get("/{user_id}", response_model=ApiResponse[UserResponse])
async def get_user(
    user_id: UUID,
    actor: User = Depends(get_verified_user),
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[UserResponse]:
    ensure_self_or_admin(actor, str(user_id))
    user = await get_user_or_404(db, str(user_id))
    return ApiResponse(data=UserResponse.model_validate(user))


@router.put("/{user_id}", response_model=ApiResponse[UserResponse])
async def update(
    user_id: UUID,
    body: UpdateUserRequest,
    background_tasks: BackgroundTasks,
    actor: User = Depends(get_verified_user),
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[UserResponse]:
    """Update a profile. A new email address must be verified again."""
    ensure_self_or_admin(actor, str(user_id))
    target = await get_user_or_404(db, str(user_id))
    email_changed = await update_user(db, actor, target, body.model_dump(exclude_unset=True))
    await db.commit()
    await db.refresh(target)
    if email_changed:
        spawn(
            background_tasks,
            jobs.send_verification_email,
            target.id,
            target.email,
            target.full_name or target.username,
        )
    return ApiResponse(message="User updated successfully", data=UserResponse.model_validate(target))


@router.delete("/{user_id}", response_model=ApiResponse[None])
async def delete(
    user_id: UUID,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[None]:
    user = await get_user_or_404(db, str(user_id))
    await soft_delete_user(db, user)
    await db.commit()
    return ApiResponse(message="User deleted successfully")


@router.put("/{user_id}/password", response_model=ApiResponse[None])
async def change_password(
    user_id: UUID,
    body: ChangePasswordRequest,
    background_tasks: BackgroundTasks,
    actor: User = Depends(get_verified_user),
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[None]:
    """
    Change a password. Users must give their current password; admins can
    set another user's password without it. Sessions are revoked afterwards.
    """
    ensure_self_or_admin(actor, str(user_id))
    target = actor if actor.id == str(user_id) else await get_user_or_404(db, str(user_id))
    authorize_password_change(actor, target, body.current_password)
    password_hash = prepare_new_password(body.new_password)
    spawn(
        background_tasks,
        jobs.apply_password_change,
        target.id,
        password_hash,
        target.email,
        target.full_name or target.username,
    )
    return ApiResponse(message="Password changed successfully")
