"""
Membership store: persistence helpers for project membership rows.

Only active rows confer standing. The store does no permission checks; the
lifecycle manager in ``app.services.memberships`` owns the rules.
"""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.base import utcnow
from app.models.membership import ProjectMembership
from app.models.user import User
from tracker_shared.schemas.common import ProjectRole


async def get_active_membership(
    session: AsyncSession, project_id: uuid.UUID, user_id: uuid.UUID
) -> Optional[ProjectMembership]:
    result = await session.execute(
        select(ProjectMembership).where(
            ProjectMembership.project_id == project_id,
            ProjectMembership.user_id == user_id,
            ProjectMembership.is_active == True,  # noqa: E712
        )
    )
    return result.scalar_one_or_none()


async def get_owner_membership(
    session: AsyncSession, project_id: uuid.UUID
) -> Optional[ProjectMembership]:
    result = await session.execute(
        select(ProjectMembership).where(
            ProjectMembership.project_id == project_id,
            ProjectMembership.role == ProjectRole.OWNER.value,
            ProjectMembership.is_active == True,  # noqa: E712
        )
    )
    return result.scalar_one_or_none()


async def list_memberships(
    session: AsyncSession,
    project_id: uuid.UUID,
    *,
    include_inactive: bool = False,
) -> list[tuple[ProjectMembership, User]]:
    """Memberships of a project with their users, oldest first."""
    stmt = (
        select(ProjectMembership, User)
        .join(User, User.id == ProjectMembership.user_id)
        .where(ProjectMembership.project_id == project_id)
    )
    if not include_inactive:
        stmt = stmt.where(ProjectMembership.is_active == True)  # noqa: E712
    stmt = stmt.order_by(ProjectMembership.joined_at)
    result = await session.execute(stmt)
    return [(m, u) for m, u in result.all()]


def insert_membership(
    session: AsyncSession,
    project_id: uuid.UUID,
    user_id: uuid.UUID,
    role: ProjectRole,
) -> ProjectMembership:
    membership = ProjectMembership(
        project_id=project_id,
        user_id=user_id,
        role=role.value,
        is_active=True,
    )
    session.add(membership)
    return membership


def deactivate_membership(session: AsyncSession, membership: ProjectMembership) -> None:
    membership.is_active = False
    membership.left_at = utcnow()
    session.add(membership)
