"""
Project service: creation with its OWNER membership, updates, soft delete,
and the per-project task aggregates shown next to every project.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy import case, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import ProjectNotFound, UserNotFound, ValidationFailed
from app.core.permissions import ProjectAccess, check_project_creation
from app.models.base import utcnow
from app.models.project import Project
from app.models.task import Task
from app.models.user import User
from app.services.membership_store import insert_membership, list_memberships
from tracker_shared.schemas.common import ProjectRole, TaskStatus
from tracker_shared.schemas.projects import ProjectCreate, ProjectUpdate

log = structlog.get_logger()

# May be left out of an update, never set to null.
REQUIRED_PROJECT_FIELDS = ("name", "status")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def get_project_or_404(
    session: AsyncSession, project_id: uuid.UUID, *, include_inactive: bool = False
) -> Project:
    project = await session.get(Project, project_id)
    if not project or (not project.is_active and not include_inactive):
        raise ProjectNotFound()
    return project


async def get_active_user_or_404(session: AsyncSession, user_id: uuid.UUID) -> User:
    user = await session.get(User, user_id)
    if not user or not user.is_active:
        raise UserNotFound()
    return user


def progress_percent(total: int, done: int) -> float:
    if total <= 0:
        return 0.0
    return round(done / total * 100, 1)


async def task_counts_by_project(
    session: AsyncSession, project_ids: list[uuid.UUID]
) -> dict[uuid.UUID, dict[str, int]]:
    """Task totals per project, broken down by status."""
    if not project_ids:
        return {}

    stmt = (
        select(
            Task.project_id,
            func.count(Task.id).label("total"),
            func.sum(case((Task.status == TaskStatus.DONE.value, 1), else_=0)).label("done"),
            func.sum(case((Task.status == TaskStatus.IN_PROGRESS.value, 1), else_=0)).label(
                "in_progress"
            ),
            func.sum(case((Task.status == TaskStatus.TODO.value, 1), else_=0)).label("todo"),
            func.sum(case((Task.status == TaskStatus.REVIEW.value, 1), else_=0)).label("review"),
        )
        .where(Task.project_id.in_(project_ids))
        .group_by(Task.project_id)
    )
    result = await session.execute(stmt)
    return {
        row.project_id: {
            "total": row.total or 0,
            "done": row.done or 0,
            "in_progress": row.in_progress or 0,
            "todo": row.todo or 0,
            "review": row.review or 0,
        }
        for row in result
    }


def project_to_dict(project: Project, counts: Optional[dict[str, int]] = None) -> dict:
    counts = counts or {}
    total = counts.get("total", 0)
    done = counts.get("done", 0)
    return {
        "id": project.id,
        "name": project.name,
        "description": project.description,
        "status": project.status,
        "start_date": project.start_date,
        "end_date": project.end_date,
        "owner_id": project.owner_id,
        "creator_id": project.creator_id,
        "task_count": total,
        "completed_tasks": done,
        "progress": progress_percent(total, done),
        "created_at": project.created_at,
        "updated_at": project.updated_at,
    }


async def enrich_projects(session: AsyncSession, projects: list[Project]) -> list[dict]:
    """Attach task aggregates. Only call with projects the caller may see."""
    counts = await task_counts_by_project(session, [p.id for p in projects])
    return [project_to_dict(p, counts.get(p.id)) for p in projects]


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


async def create_project(
    session: AsyncSession, creator: User, req: ProjectCreate
) -> Project:
    """Create a project and its OWNER membership in the same transaction.

    The creator is recorded as ``creator_id``. An administrator may name a
    different owner; that user receives the OWNER row. Extra ``members`` join
    as MEMBER.
    """
    check_project_creation(creator)

    owner_id = req.owner_id or creator.id
    if owner_id != creator.id:
        await get_active_user_or_404(session, owner_id)

    project = Project(
        name=req.name,
        description=req.description,
        status=req.status.value,
        start_date=req.start_date,
        end_date=req.end_date,
        owner_id=owner_id,
        creator_id=creator.id,
    )
    session.add(project)
    await session.flush()

    insert_membership(session, project.id, owner_id, ProjectRole.OWNER)

    seen = {owner_id}
    for member_id in req.members:
        if member_id in seen:
            continue
        seen.add(member_id)
        await get_active_user_or_404(session, member_id)
        insert_membership(session, project.id, member_id, ProjectRole.MEMBER)

    await session.flush()

    log.info(
        "project.created",
        project_id=str(project.id),
        owner_id=str(owner_id),
        creator_id=str(creator.id),
        members=len(seen) - 1,
    )
    return project


async def update_project(
    session: AsyncSession, project: Project, req: ProjectUpdate
) -> Project:
    data = req.model_dump(exclude_unset=True)
    if not data:
        raise ValidationFailed("No fields to update")
    cleared = sorted(k for k in REQUIRED_PROJECT_FIELDS if k in data and data[k] is None)
    if cleared:
        raise ValidationFailed(f"Fields cannot be null: {', '.join(cleared)}")

    for key, value in data.items():
        if key == "status" and value is not None:
            value = value.value if hasattr(value, "value") else value
        setattr(project, key, value)

    if project.start_date and project.end_date and project.end_date < project.start_date:
        raise ValidationFailed("end_date must not be before start_date")

    project.updated_at = utcnow()
    session.add(project)
    await session.flush()

    log.info("project.updated", project_id=str(project.id), fields=sorted(data))
    return project


async def deactivate_project(session: AsyncSession, project: Project) -> None:
    """Soft delete. Memberships and tasks are kept but drop out of every listing."""
    project.is_active = False
    project.updated_at = utcnow()
    session.add(project)
    await session.flush()
    log.info("project.deactivated", project_id=str(project.id))


async def get_project_detail(
    session: AsyncSession, project: Project, access: ProjectAccess
) -> dict:
    counts = (await task_counts_by_project(session, [project.id])).get(project.id, {})
    detail = project_to_dict(project, counts)
    detail["in_progress_tasks"] = counts.get("in_progress", 0)
    detail["todo_tasks"] = counts.get("todo", 0)
    detail["my_role"] = access.role
    detail["members"] = [
        membership_to_dict(m, u) for m, u in await list_memberships(session, project.id)
    ]
    return detail


# ---------------------------------------------------------------------------
# Board and progress
# ---------------------------------------------------------------------------


async def kanban_board(session: AsyncSession, project: Project) -> dict:
    """Every task of the project, one column per status, oldest first."""
    result = await session.execute(
        select(Task).where(Task.project_id == project.id).order_by(Task.created_at)
    )
    columns: dict[str, list[Task]] = {status.value: [] for status in TaskStatus}
    for task in result.scalars():
        columns[task.status].append(task)
    return {"project_id": project.id, "columns": columns}


async def project_progress(
    session: AsyncSession, project: Project, *, recent_limit: int = 10
) -> dict:
    counts = (await task_counts_by_project(session, [project.id])).get(project.id, {})
    total = counts.get("total", 0)
    done = counts.get("done", 0)

    recent = await session.execute(
        select(Task)
        .where(Task.project_id == project.id)
        .order_by(Task.updated_at.desc())
        .limit(recent_limit)
    )
    return {
        "project_id": project.id,
        "total_tasks": total,
        "completed_tasks": done,
        "progress": progress_percent(total, done),
        "task_counts": {
            TaskStatus.TODO.value: counts.get("todo", 0),
            TaskStatus.IN_PROGRESS.value: counts.get("in_progress", 0),
            TaskStatus.REVIEW.value: counts.get("review", 0),
            TaskStatus.DONE.value: done,
        },
        "recent_activity": list(recent.scalars()),
    }


def membership_to_dict(membership, user: User) -> dict:
    return {
        "user_id": user.id,
        "name": user.name,
        "email": user.email,
        "role": membership.role,
        "is_active": membership.is_active,
        "joined_at": membership.joined_at,
        "left_at": membership.left_at,
    }
