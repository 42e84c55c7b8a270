"""
Task service layer: business logic for tasks.

Handles:
- Task CRUD gated on the caller's effective project role
- Direct-assignment access: an assignee may read and update their task even
  without any standing in the project
- Assignee and parent-task validation against the owning project
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import TaskNotFound, ValidationFailed
from app.core.permissions import (
    ProjectAccess,
    check_project_role,
    check_task_creation,
    require_project_role,
    resolve_project_access,
)
from app.models.base import utcnow
from app.models.comment import Comment
from app.models.project import Project
from app.models.task import Task
from app.models.user import User
from app.services.membership_store import get_active_membership
from app.services.projects import get_project_or_404
from tracker_shared.schemas.common import ProjectRole
from tracker_shared.schemas.tasks import TaskCreate, TaskUpdate

log = structlog.get_logger()

# May be left out of an update, never set to null.
REQUIRED_TASK_FIELDS = ("title", "status", "priority", "type")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def get_task_or_404(session: AsyncSession, task_id: uuid.UUID) -> tuple[Task, Project]:
    """Load a task and its project. Tasks of soft-deleted projects are gone."""
    task = await session.get(Task, task_id)
    if not task:
        raise TaskNotFound()
    project = await session.get(Project, task.project_id)
    if not project or not project.is_active:
        raise TaskNotFound()
    return task, project


def _is_assignee(task: Task, user: User) -> bool:
    return task.assignee_id is not None and task.assignee_id == user.id


async def _validate_assignee(
    session: AsyncSession, project_id: uuid.UUID, assignee_id: uuid.UUID
) -> None:
    if await get_active_membership(session, project_id, assignee_id) is None:
        raise ValidationFailed("Assignee is not a member of this project")


async def _validate_parent(
    session: AsyncSession,
    project_id: uuid.UUID,
    parent_id: uuid.UUID,
    task_id: uuid.UUID | None = None,
) -> None:
    if task_id is not None and parent_id == task_id:
        raise ValidationFailed("A task cannot be its own parent")
    parent = await session.get(Task, parent_id)
    if not parent or parent.project_id != project_id:
        raise ValidationFailed("Parent task not found in this project")


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


async def create_task(session: AsyncSession, user: User, task_in: TaskCreate) -> Task:
    check_task_creation(user)
    project = await get_project_or_404(session, task_in.project_id)
    await require_project_role(session, user, project, ProjectRole.MEMBER)

    if task_in.parent_task_id:
        await _validate_parent(session, project.id, task_in.parent_task_id)
    if task_in.assignee_id:
        await _validate_assignee(session, project.id, task_in.assignee_id)

    task = Task(
        project_id=project.id,
        title=task_in.title,
        description=task_in.description,
        status=task_in.status.value,
        priority=task_in.priority.value,
        type=task_in.type.value,
        story_points=task_in.story_points,
        due_date=task_in.due_date,
        assignee_id=task_in.assignee_id,
        creator_id=user.id,
        parent_task_id=task_in.parent_task_id,
    )
    session.add(task)
    await session.flush()

    log.info(
        "task.created",
        task_id=str(task.id),
        project_id=str(project.id),
        assignee_id=str(task.assignee_id) if task.assignee_id else None,
    )
    return task


async def get_task(
    session: AsyncSession, user: User, task_id: uuid.UUID
) -> tuple[Task, ProjectAccess]:
    """Any standing in the project, or being the assignee, grants read access."""
    task, project = await get_task_or_404(session, task_id)
    access = await resolve_project_access(session, user, project)
    if not _is_assignee(task, user):
        check_project_role(access, ProjectRole.VIEWER)
    return task, access


async def update_task(
    session: AsyncSession, user: User, task_id: uuid.UUID, task_in: TaskUpdate
) -> Task:
    task, project = await get_task_or_404(session, task_id)
    access = await resolve_project_access(session, user, project)
    if not _is_assignee(task, user):
        check_project_role(access, ProjectRole.MEMBER)

    data = task_in.model_dump(exclude_unset=True)
    if not data:
        raise ValidationFailed("No fields to update")
    cleared = sorted(k for k in REQUIRED_TASK_FIELDS if k in data and data[k] is None)
    if cleared:
        raise ValidationFailed(f"Fields cannot be null: {', '.join(cleared)}")

    if data.get("assignee_id"):
        await _validate_assignee(session, project.id, data["assignee_id"])
    if data.get("parent_task_id"):
        await _validate_parent(session, project.id, data["parent_task_id"], task.id)

    for key, value in data.items():
        if key in ("status", "priority", "type") and value is not None:
            value = value.value
        setattr(task, key, value)

    task.updated_at = utcnow()
    session.add(task)
    await session.flush()

    log.info("task.updated", task_id=str(task.id), fields=sorted(data))
    return task


async def delete_task(session: AsyncSession, user: User, task_id: uuid.UUID) -> None:
    """Hard delete, comments included. Requires project ADMIN; refused with subtasks."""
    task, project = await get_task_or_404(session, task_id)
    await require_project_role(session, user, project, ProjectRole.ADMIN)

    subtasks = (
        await session.execute(
            select(func.count(Task.id)).where(Task.parent_task_id == task.id)
        )
    ).scalar_one()
    if subtasks:
        raise ValidationFailed(
            "Cannot delete task with subtasks. Please delete subtasks first."
        )

    await session.execute(delete(Comment).where(Comment.task_id == task.id))
    await session.delete(task)
    await session.flush()
    log.info("task.deleted", task_id=str(task_id), project_id=str(project.id))
