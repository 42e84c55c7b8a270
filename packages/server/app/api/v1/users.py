"""
User administration endpoints.

Listing users is open to any signed-in account (to pick members and
assignees); stats, role changes and deactivation are system ADMIN only.
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user, require_admin
from app.core.database import get_session
from app.models.user import User
from app.services.users import (
    deactivate_user,
    get_user_or_404,
    list_users,
    update_system_role,
    user_stats,
)
from tracker_shared.schemas.common import SystemRole
from tracker_shared.schemas.users import (
    SystemRoleUpdate,
    UserListResponse,
    UserResponse,
    UserStats,
)

router = APIRouter()


@router.get("", response_model=UserListResponse)
async def list_users_endpoint(
    search: Optional[str] = None,
    role: Optional[SystemRole] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    users, pagination = await list_users(
        session, search=search, role=role, page=page, per_page=per_page
    )
    return {"data": users, "pagination": pagination}


@router.get("/stats", response_model=UserStats)
async def user_stats_endpoint(
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return await user_stats(session)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user_endpoint(
    user_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await get_user_or_404(session, user_id)


@router.put("/{user_id}/role", response_model=UserResponse)
async def update_user_role_endpoint(
    user_id: uuid.UUID,
    body: SystemRoleUpdate,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Change a user's system role. Takes effect on the user's next request."""
    target = await update_system_role(session, admin, user_id, body.role)
    await session.commit()
    return target


@router.post("/{user_id}/deactivate", response_model=UserResponse)
async def deactivate_user_endpoint(
    user_id: uuid.UUID,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    target = await deactivate_user(session, admin, user_id)
    await session.commit()
    return target
