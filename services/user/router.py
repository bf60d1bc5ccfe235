"""
services/user/router.py
The signed-in user's profile and dashboard.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from shared.crud import requests as requests_crud
from shared.crud import users as users_crud
from shared.middleware.auth import require_user
from shared.models.models import RequestStatus, User
from shared.schemas.schemas import (
    DashboardResponse,
    ServiceRequestResponse,
    UserResponse,
    UserStatsResponse,
    UserUpdateRequest,
)

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(require_user)):
    """Return the currently authenticated user's profile."""
    return UserResponse.model_validate(current_user)


@router.put("/me", response_model=UserResponse)
async def update_me(
    data: UserUpdateRequest,
    current_user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Update display name and/or photo URL.
    Only fields present in the request body are written.
    """
    updates = data.model_dump(exclude_unset=True, exclude_none=True)
    if not updates:
        return UserResponse.model_validate(current_user)

    user = await users_crud.update_user_profile(db, current_user.id, **updates)
    return UserResponse.model_validate(user)


@router.get("/me/dashboard", response_model=DashboardResponse)
async def dashboard(
    status_filter: Optional[RequestStatus] = Query(None, alias="status"),
    current_user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Request counts by status plus the request list.
    The counts always cover every request; ?status= filters only the list.
    """
    stats = await users_crud.get_user_stats(db, current_user.id)
    requests = await requests_crud.list_user_requests(db, current_user.id, status=status_filter)
    return DashboardResponse(
        stats=UserStatsResponse(**stats),
        requests=[ServiceRequestResponse.model_validate(r) for r in requests],
    )
