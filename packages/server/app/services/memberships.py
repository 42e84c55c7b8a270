"""
Membership lifecycle: add, re-rank, remove, leave and ownership transfer.

Every mutation runs its own access gate first. The OWNER row is never
touched by add/update/remove/leave; the only way to move it is
``transfer_ownership``, which swaps two rows in one flush so a project is
never observed without exactly one active OWNER.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import InvalidOperation, MemberExists, MemberNotFound
from app.core.permissions import (
    ProjectAccess,
    require_member_management,
    require_project_role,
    require_role_management,
)
from app.core.roles import as_project_role
from app.models.base import utcnow
from app.models.membership import ProjectMembership
from app.models.project import Project
from app.models.user import User
from app.services.membership_store import (
    deactivate_membership,
    get_active_membership,
    get_owner_membership,
    insert_membership,
    list_memberships,
)
from app.services.projects import get_active_user_or_404, membership_to_dict
from tracker_shared.schemas.common import ProjectRole

log = structlog.get_logger()


async def _get_active_or_404(
    session: AsyncSession, project_id: uuid.UUID, user_id: uuid.UUID
) -> ProjectMembership:
    membership = await get_active_membership(session, project_id, user_id)
    if membership is None:
        raise MemberNotFound()
    return membership


def _is_owner_row(membership: ProjectMembership) -> bool:
    return as_project_role(membership.role) == ProjectRole.OWNER


async def list_members(
    session: AsyncSession,
    user: User,
    project: Project,
    *,
    include_inactive: bool = False,
) -> list[dict]:
    await require_project_role(session, user, project, ProjectRole.VIEWER)
    rows = await list_memberships(session, project.id, include_inactive=include_inactive)
    return [membership_to_dict(m, u) for m, u in rows]


async def add_member(
    session: AsyncSession,
    actor: User,
    project: Project,
    user_id: uuid.UUID,
    role: ProjectRole,
) -> ProjectMembership:
    await require_member_management(session, actor, project)

    role = as_project_role(role)
    if role == ProjectRole.OWNER:
        raise InvalidOperation("OWNER is assigned at project creation or by transfer")

    await get_active_user_or_404(session, user_id)

    if await get_active_membership(session, project.id, user_id) is not None:
        raise MemberExists()

    membership = insert_membership(session, project.id, user_id, role)
    try:
        await session.flush()
    except IntegrityError:
        # a concurrent insert won the partial unique index
        raise MemberExists() from None

    log.info(
        "member.added",
        project_id=str(project.id),
        user_id=str(user_id),
        role=role.value,
        actor_id=str(actor.id),
    )
    return membership


async def update_member_role(
    session: AsyncSession,
    actor: User,
    project: Project,
    member_id: uuid.UUID,
    new_role: ProjectRole,
) -> ProjectMembership:
    await require_role_management(session, actor, project)

    new_role = as_project_role(new_role)
    membership = await _get_active_or_404(session, project.id, member_id)

    if _is_owner_row(membership):
        raise InvalidOperation("Cannot change the role of the project owner")
    if new_role == ProjectRole.OWNER:
        raise InvalidOperation("A project has exactly one owner; use ownership transfer")

    old_role = membership.role
    membership.role = new_role.value
    session.add(membership)
    await session.flush()

    log.info(
        "member.role_updated",
        project_id=str(project.id),
        user_id=str(member_id),
        old_role=old_role,
        new_role=new_role.value,
        actor_id=str(actor.id),
    )
    return membership


async def remove_member(
    session: AsyncSession,
    actor: User,
    project: Project,
    member_id: uuid.UUID,
) -> None:
    await require_member_management(session, actor, project)

    membership = await _get_active_or_404(session, project.id, member_id)
    if _is_owner_row(membership):
        raise InvalidOperation("Cannot remove the project owner")

    deactivate_membership(session, membership)
    await session.flush()

    log.info(
        "member.removed",
        project_id=str(project.id),
        user_id=str(member_id),
        actor_id=str(actor.id),
    )


async def leave_project(session: AsyncSession, user: User, project: Project) -> None:
    """Remove the caller's own membership. Owners must transfer first."""
    membership = await _get_active_or_404(session, project.id, user.id)
    if _is_owner_row(membership):
        raise InvalidOperation("Project owner cannot leave; transfer ownership first")

    deactivate_membership(session, membership)
    await session.flush()

    log.info("member.left", project_id=str(project.id), user_id=str(user.id))


async def transfer_ownership(
    session: AsyncSession,
    actor: User,
    project: Project,
    to_user_id: uuid.UUID,
) -> ProjectAccess:
    """Hand the OWNER row's role to another active member.

    The two rows swap roles: the previous owner takes the target's old role
    and ``project.owner_id`` follows the new OWNER row.
    """
    access = await require_role_management(session, actor, project)

    target = await _get_active_or_404(session, project.id, to_user_id)
    if _is_owner_row(target):
        raise InvalidOperation("User already owns this project")

    current = await get_owner_membership(session, project.id)
    if current is None:
        raise MemberNotFound("Project has no active owner")

    current.role = target.role
    target.role = ProjectRole.OWNER.value
    project.owner_id = to_user_id
    project.updated_at = utcnow()
    session.add_all([current, target, project])
    await session.flush()

    log.info(
        "project.ownership_transferred",
        project_id=str(project.id),
        from_user_id=str(current.user_id),
        to_user_id=str(to_user_id),
        actor_id=str(actor.id),
    )
    return access
