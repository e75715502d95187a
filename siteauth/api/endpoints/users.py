# siteauth/api/endpoints/users.py
import math
from datetime import timedelta
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status

from siteauth.api.dependencies import get_current_identity, get_current_user, get_user_crud
from siteauth.core.exceptions import ValidationException
from siteauth.core.security import utcnow
from siteauth.crud.crud_user import CRUDUser
from siteauth.models.user import User as UserModel
from siteauth.schemas.user import (
    Pagination,
    ProfileUpdateRequest,
    User as UserSchema,
    UserListResponse,
    UserResponse,
    UserStats,
)
from siteauth.services.auth_service import TokenIdentity, validate_profile

router = APIRouter()

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


@router.get("/profile", response_model=UserResponse)
async def read_profile(current_user: UserModel = Depends(get_current_user)) -> Any:
    return UserResponse(user=UserSchema.model_validate(current_user))


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    body: ProfileUpdateRequest,
    current_user: UserModel = Depends(get_current_user),
    users: CRUDUser = Depends(get_user_crud),
) -> Any:
    errors = validate_profile(body.first_name, body.last_name)
    if errors:
        raise ValidationException(errors)
    updated = await users.update_profile(
        user_id=current_user.id,
        first_name=body.first_name.strip(),
        last_name=body.last_name.strip(),
    )
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return UserResponse(user=UserSchema.model_validate(updated))


@router.get("/all", response_model=UserListResponse)
async def read_users(
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    identity: TokenIdentity = Depends(get_current_identity),
    users: CRUDUser = Depends(get_user_crud),
) -> Any:
    """
    Active users, newest first. Out-of-range `page`/`limit` are clamped
    (page >= 1, 1 <= limit <= 100) rather than rejected.
    """
    page = max(1, page)
    limit = min(MAX_PAGE_SIZE, max(1, limit))
    offset = (page - 1) * limit

    page_users = await users.list_active(limit=limit, offset=offset)
    total_users = await users.count_active()
    total_pages = math.ceil(total_users / limit)

    return UserListResponse(
        users=[UserSchema.model_validate(u) for u in page_users],
        pagination=Pagination(
            current_page=page,
            total_pages=total_pages,
            total_users=total_users,
            users_per_page=limit,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        ),
    )


@router.get("/stats", response_model=UserStats)
async def read_stats(
    identity: TokenIdentity = Depends(get_current_identity),
    users: CRUDUser = Depends(get_user_crud),
) -> Any:
    now = utcnow()
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return UserStats(
        total_users=await users.count_active(),
        registered_today=await users.count_active(created_since=start_of_day),
        active_last_month=await users.count_logged_in_since(since=now - timedelta(days=30)),
        timestamp=now,
    )
