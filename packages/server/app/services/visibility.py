"""
Visibility filter: which projects and tasks a user may list, and the
aggregates computed over exactly that set.

The per-resource resolver in ``app.core.permissions`` answers "what can this
user do here"; this module answers the same question for a whole table at
once, as SQL predicates:

- ADMIN sees every active project.
- MANAGER sees projects they own or created (while the legacy owner grant is
  enabled) plus those where they hold an active OWNER or ADMIN membership.
- USER sees projects reachable through any active membership.

Tasks follow their project, plus any task assigned to the caller. All
predicates are ``EXISTS``/``IN`` sub-selects so no row is ever duplicated.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import and_, case, exists, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.core.roles import as_system_role
from app.models.base import utcnow
from app.models.membership import ProjectMembership
from app.models.project import Project
from app.models.task import Task
from app.models.user import User
from app.services.projects import enrich_projects, progress_percent
from tracker_shared.schemas.common import (
    ProjectRole,
    ProjectStatus,
    SystemRole,
    TaskPriority,
    TaskStatus,
    TaskType,
)


@dataclass
class ProjectFilters:
    status: Optional[ProjectStatus] = None
    search: Optional[str] = None
    page: int = 1
    per_page: int = 10


@dataclass
class TaskFilters:
    project_id: Optional[uuid.UUID] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    type: Optional[TaskType] = None
    assignee_id: Optional[uuid.UUID] = None
    search: Optional[str] = None
    page: int = 1
    per_page: int = 10


def pagination(page: int, per_page: int, total: int) -> dict:
    return {
        "page": page,
        "per_page": per_page,
        "total": total,
        "total_pages": math.ceil(total / per_page) if per_page else 0,
    }


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


def _membership_exists(user_id: uuid.UUID, roles: Optional[list[ProjectRole]] = None):
    conditions = [
        ProjectMembership.project_id == Project.id,
        ProjectMembership.user_id == user_id,
        ProjectMembership.is_active == True,  # noqa: E712
    ]
    if roles:
        conditions.append(ProjectMembership.role.in_([r.value for r in roles]))
    return exists().where(and_(*conditions))


def visible_project_clause(user: User, *, legacy_owner_grant: Optional[bool] = None):
    """WHERE clause over ``Project`` selecting what ``user`` may list."""
    if legacy_owner_grant is None:
        legacy_owner_grant = get_settings().legacy_owner_grant

    role = as_system_role(user.system_role)
    active = Project.is_active == True  # noqa: E712

    if role == SystemRole.ADMIN:
        return active

    if role == SystemRole.MANAGER:
        reachable = [_membership_exists(user.id, [ProjectRole.OWNER, ProjectRole.ADMIN])]
        if legacy_owner_grant:
            reachable.append(Project.owner_id == user.id)
            reachable.append(Project.creator_id == user.id)
        return and_(active, or_(*reachable))

    return and_(active, _membership_exists(user.id))


def visible_task_clause(user: User, *, legacy_owner_grant: Optional[bool] = None):
    """WHERE clause over ``Task``: visible project, or assigned to ``user``."""
    visible_projects = select(Project.id).where(
        visible_project_clause(user, legacy_owner_grant=legacy_owner_grant)
    )
    # assigned tasks only surface while their project still exists
    live_projects = select(Project.id).where(Project.is_active == True)  # noqa: E712
    return or_(
        Task.project_id.in_(visible_projects),
        and_(Task.assignee_id == user.id, Task.project_id.in_(live_projects)),
    )


def escape_like(term: str) -> str:
    """Make ``%`` and ``_`` in user input match literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def search_clause(term: str, *columns):
    """Case-insensitive substring match on any of ``columns``."""
    pattern = f"%{escape_like(term.strip().lower())}%"
    return or_(*(func.lower(c).like(pattern, escape="\\") for c in columns))


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


async def list_projects(
    session: AsyncSession, user: User, filters: Optional[ProjectFilters] = None
) -> tuple[list[dict], dict]:
    """Visible projects, newest first, with aggregates for the page only."""
    filters = filters or ProjectFilters()
    where = [visible_project_clause(user)]
    if filters.status:
        where.append(Project.status == filters.status.value)
    if filters.search:
        where.append(search_clause(filters.search, Project.name, Project.description))

    total = (
        await session.execute(select(func.count()).select_from(Project).where(*where))
    ).scalar_one()

    stmt = (
        select(Project)
        .where(*where)
        .order_by(Project.created_at.desc())
        .offset((filters.page - 1) * filters.per_page)
        .limit(filters.per_page)
    )
    projects = list((await session.execute(stmt)).scalars().all())
    data = await enrich_projects(session, projects)
    return data, pagination(filters.page, filters.per_page, total)


async def list_tasks(
    session: AsyncSession, user: User, filters: Optional[TaskFilters] = None
) -> tuple[list[Task], dict]:
    """Visible tasks (project predicate or assignment), newest first."""
    filters = filters or TaskFilters()
    where = [visible_task_clause(user)]
    if filters.project_id:
        where.append(Task.project_id == filters.project_id)
    if filters.status:
        where.append(Task.status == filters.status.value)
    if filters.priority:
        where.append(Task.priority == filters.priority.value)
    if filters.type:
        where.append(Task.type == filters.type.value)
    if filters.assignee_id:
        where.append(Task.assignee_id == filters.assignee_id)
    if filters.search:
        where.append(search_clause(filters.search, Task.title, Task.description))

    total = (
        await session.execute(select(func.count()).select_from(Task).where(*where))
    ).scalar_one()

    stmt = (
        select(Task)
        .where(*where)
        .order_by(Task.created_at.desc())
        .offset((filters.page - 1) * filters.per_page)
        .limit(filters.per_page)
    )
    tasks = list((await session.execute(stmt)).scalars().all())
    return tasks, pagination(filters.page, filters.per_page, total)


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


def _count_where(condition):
    return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)


async def project_stats(session: AsyncSession, user: User) -> dict:
    clause = visible_project_clause(user)

    row = (
        await session.execute(
            select(
                func.count(Project.id),
                _count_where(Project.status == ProjectStatus.ACTIVE.value),
                _count_where(Project.status == ProjectStatus.COMPLETED.value),
                _count_where(Project.status == ProjectStatus.ARCHIVED.value),
            ).where(clause)
        )
    ).one()
    total, active, completed, archived = row

    # completion rate per visible project, counting only tasks in that project
    per_project = (
        await session.execute(
            select(
                func.count(Task.id),
                _count_where(Task.status == TaskStatus.DONE.value),
            )
            .select_from(Project)
            .join(Task, Task.project_id == Project.id)
            .where(clause)
            .group_by(Project.id)
        )
    ).all()
    rates = [progress_percent(t, d) for t, d in per_project if t]
    avg_completion_rate = round(sum(rates) / len(rates)) if rates else 0

    recent = list(
        (
            await session.execute(
                select(Project).where(clause).order_by(Project.created_at.desc()).limit(5)
            )
        )
        .scalars()
        .all()
    )

    return {
        "total_projects": total,
        "active_projects": active,
        "completed_projects": completed,
        "archived_projects": archived,
        "avg_completion_rate": avg_completion_rate,
        "recent_projects": await enrich_projects(session, recent),
    }


async def task_stats(
    session: AsyncSession,
    user: User,
    project_id: Optional[uuid.UUID] = None,
    *,
    now: Optional[datetime] = None,
) -> dict:
    now = now or utcnow()
    where = [visible_task_clause(user)]
    if project_id:
        where.append(Task.project_id == project_id)

    high = Task.priority.in_([TaskPriority.HIGH.value, TaskPriority.URGENT.value])
    overdue = and_(
        Task.due_date.is_not(None),
        Task.due_date < now,
        Task.status != TaskStatus.DONE.value,
    )

    row = (
        await session.execute(
            select(
                func.count(Task.id),
                _count_where(Task.status == TaskStatus.TODO.value),
                _count_where(Task.status == TaskStatus.IN_PROGRESS.value),
                _count_where(Task.status == TaskStatus.REVIEW.value),
                _count_where(Task.status == TaskStatus.DONE.value),
                _count_where(high),
                _count_where(overdue),
            ).where(*where)
        )
    ).one()
    total, todo, in_progress, review, done, high_priority, overdue_count = row

    by_priority = {p.value: 0 for p in TaskPriority}
    result = await session.execute(
        select(Task.priority, func.count(Task.id)).where(*where).group_by(Task.priority)
    )
    for priority, count in result.all():
        by_priority[priority] = count

    return {
        "total_tasks": total,
        "todo_tasks": todo,
        "in_progress_tasks": in_progress,
        "review_tasks": review,
        "done_tasks": done,
        "high_priority_tasks": high_priority,
        "overdue_tasks": overdue_count,
        "completion_rate": round(done / total * 100) if total else 0,
        "by_priority": by_priority,
    }

