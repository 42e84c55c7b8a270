"""
Project endpoints: CRUD, stats, board and progress, membership lifecycle,
ownership transfer.

- Creation is reserved for system ADMINs; the named owner (default: caller)
  gets the OWNER membership in the same transaction.
- Read (detail, board, progress) requires any standing, update ADMIN,
  delete (soft) OWNER.
- Membership mutations gate themselves in ``app.services.memberships``.
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import (
    ProjectContext,
    get_current_user,
    get_project_context,
    require_project_access,
    require_project_creator,
)
from app.core.database import get_session
from app.models.user import User
from app.services import memberships
from app.services.membership_store import get_active_membership
from app.services.projects import (
    create_project,
    deactivate_project,
    enrich_projects,
    get_project_detail,
    kanban_board,
    membership_to_dict,
    project_progress,
    update_project,
)
from app.services.users import get_user_or_404
from app.services.visibility import ProjectFilters, list_projects, project_stats
from tracker_shared.schemas.common import ProjectRole, ProjectStatus
from tracker_shared.schemas.projects import (
    KanbanBoard,
    OwnershipTransfer,
    ProjectCreate,
    ProjectDetail,
    ProjectListResponse,
    ProjectMemberAdd,
    ProjectMemberRead,
    ProjectMemberRoleUpdate,
    ProjectProgress,
    ProjectRead,
    ProjectStatsRead,
    ProjectUpdate,
)

router = APIRouter()


# ---------------------------------------------------------------------------
# Project CRUD
# ---------------------------------------------------------------------------


@router.get("", response_model=ProjectListResponse)
async def list_projects_endpoint(
    status: Optional[ProjectStatus] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """List the projects visible to the caller, newest first."""
    filters = ProjectFilters(status=status, search=search, page=page, per_page=per_page)
    data, pagination = await list_projects(session, user, filters)
    return {"data": data, "pagination": pagination}


@router.get("/stats", response_model=ProjectStatsRead)
async def project_stats_endpoint(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await project_stats(session, user)


@router.post("", response_model=ProjectRead, status_code=201)
async def create_project_endpoint(
    body: ProjectCreate,
    user: User = Depends(require_project_creator),
    session: AsyncSession = Depends(get_session),
):
    project = await create_project(session, user, body)
    await session.commit()
    return (await enrich_projects(session, [project]))[0]


@router.get("/{project_id}", response_model=ProjectDetail)
async def get_project_endpoint(
    ctx: ProjectContext = Depends(require_project_access(ProjectRole.VIEWER)),
    session: AsyncSession = Depends(get_session),
):
    return await get_project_detail(session, ctx.project, ctx.access)


@router.patch("/{project_id}", response_model=ProjectRead)
async def update_project_endpoint(
    body: ProjectUpdate,
    ctx: ProjectContext = Depends(require_project_access(ProjectRole.ADMIN)),
    session: AsyncSession = Depends(get_session),
):
    project = await update_project(session, ctx.project, body)
    await session.commit()
    return (await enrich_projects(session, [project]))[0]


@router.delete("/{project_id}", status_code=204)
async def delete_project_endpoint(
    ctx: ProjectContext = Depends(require_project_access(ProjectRole.OWNER)),
    session: AsyncSession = Depends(get_session),
):
    """Soft delete: the project and its tasks disappear from every listing."""
    await deactivate_project(session, ctx.project)
    await session.commit()


# ---------------------------------------------------------------------------
# Board and progress (read-only)
# ---------------------------------------------------------------------------


@router.get("/{project_id}/kanban", response_model=KanbanBoard)
async def kanban_board_endpoint(
    ctx: ProjectContext = Depends(require_project_access(ProjectRole.VIEWER)),
    session: AsyncSession = Depends(get_session),
):
    """Tasks of the project grouped into one column per status."""
    return await kanban_board(session, ctx.project)


@router.get("/{project_id}/progress", response_model=ProjectProgress)
async def project_progress_endpoint(
    ctx: ProjectContext = Depends(require_project_access(ProjectRole.VIEWER)),
    session: AsyncSession = Depends(get_session),
):
    return await project_progress(session, ctx.project)


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------


async def _member_read(session: AsyncSession, project_id: uuid.UUID, user_id: uuid.UUID):
    membership = await get_active_membership(session, project_id, user_id)
    user = await get_user_or_404(session, user_id)
    return membership_to_dict(membership, user)


@router.get("/{project_id}/members", response_model=List[ProjectMemberRead])
async def list_members_endpoint(
    include_inactive: bool = False,
    ctx: ProjectContext = Depends(get_project_context),
    session: AsyncSession = Depends(get_session),
):
    return await memberships.list_members(
        session, ctx.user, ctx.project, include_inactive=include_inactive
    )


@router.post("/{project_id}/members", response_model=ProjectMemberRead, status_code=201)
async def add_member_endpoint(
    body: ProjectMemberAdd,
    ctx: ProjectContext = Depends(get_project_context),
    session: AsyncSession = Depends(get_session),
):
    await memberships.add_member(session, ctx.user, ctx.project, body.user_id, body.role)
    await session.commit()
    return await _member_read(session, ctx.project.id, body.user_id)


@router.delete("/{project_id}/members/me", status_code=204)
async def leave_project_endpoint(
    ctx: ProjectContext = Depends(get_project_context),
    session: AsyncSession = Depends(get_session),
):
    """Leave the project. Owners must transfer ownership first."""
    await memberships.leave_project(session, ctx.user, ctx.project)
    await session.commit()


@router.patch("/{project_id}/members/{member_id}", response_model=ProjectMemberRead)
async def update_member_role_endpoint(
    member_id: uuid.UUID,
    body: ProjectMemberRoleUpdate,
    ctx: ProjectContext = Depends(get_project_context),
    session: AsyncSession = Depends(get_session),
):
    await memberships.update_member_role(
        session, ctx.user, ctx.project, member_id, body.role
    )
    await session.commit()
    return await _member_read(session, ctx.project.id, member_id)


@router.delete("/{project_id}/members/{member_id}", status_code=204)
async def remove_member_endpoint(
    member_id: uuid.UUID,
    ctx: ProjectContext = Depends(get_project_context),
    session: AsyncSession = Depends(get_session),
):
    await memberships.remove_member(session, ctx.user, ctx.project, member_id)
    await session.commit()


@router.post("/{project_id}/transfer-ownership", response_model=ProjectRead)
async def transfer_ownership_endpoint(
    body: OwnershipTransfer,
    ctx: ProjectContext = Depends(get_project_context),
    session: AsyncSession = Depends(get_session),
):
    await memberships.transfer_ownership(session, ctx.user, ctx.project, body.to_user_id)
    await session.commit()
    return (await enrich_projects(session, [ctx.project]))[0]
