"""
Task endpoints: CRUD, stats and comments.

- Listing returns tasks of visible projects plus tasks assigned to the caller.
- Read: any standing in the project, or the assignee.
- Update: project MEMBER or above, or the assignee.
- Delete: project ADMIN or above; tasks with subtasks are refused.
- Comments: read and post with task read access; edit and delete by the author.
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user, require_task_creator
from app.core.database import get_session
from app.models.user import User
from app.services.comments import (
    create_comment,
    delete_comment,
    list_comments,
    update_comment,
)
from app.services.tasks import create_task, delete_task, get_task, update_task
from app.services.visibility import TaskFilters, list_tasks, task_stats
from tracker_shared.schemas.comments import CommentCreate, CommentRead, CommentUpdate
from tracker_shared.schemas.common import TaskPriority, TaskStatus, TaskType
from tracker_shared.schemas.tasks import (
    TaskCreate,
    TaskListResponse,
    TaskRead,
    TaskStatsRead,
    TaskUpdate,
)

router = APIRouter()


@router.get("", response_model=TaskListResponse)
async def list_tasks_endpoint(
    project_id: Optional[uuid.UUID] = None,
    status: Optional[TaskStatus] = None,
    priority: Optional[TaskPriority] = None,
    type: Optional[TaskType] = None,
    assignee_id: Optional[uuid.UUID] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """List tasks with optional filters by project, status, priority, type, assignee."""
    filters = TaskFilters(
        project_id=project_id,
        status=status,
        priority=priority,
        type=type,
        assignee_id=assignee_id,
        search=search,
        page=page,
        per_page=per_page,
    )
    tasks, pagination = await list_tasks(session, user, filters)
    return {"data": tasks, "pagination": pagination}


@router.get("/stats", response_model=TaskStatsRead)
async def task_stats_endpoint(
    project_id: Optional[uuid.UUID] = None,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await task_stats(session, user, project_id)


@router.post("", response_model=TaskRead, status_code=201)
async def create_task_endpoint(
    task_in: TaskCreate,
    user: User = Depends(require_task_creator),
    session: AsyncSession = Depends(get_session),
):
    task = await create_task(session, user, task_in)
    await session.commit()
    return task


@router.get("/{task_id}", response_model=TaskRead)
async def get_task_endpoint(
    task_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    task, _ = await get_task(session, user, task_id)
    return task


@router.patch("/{task_id}", response_model=TaskRead)
async def update_task_endpoint(
    task_id: uuid.UUID,
    task_in: TaskUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    task = await update_task(session, user, task_id, task_in)
    await session.commit()
    return task


@router.delete("/{task_id}", status_code=204)
async def delete_task_endpoint(
    task_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await delete_task(session, user, task_id)
    await session.commit()


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


@router.get("/{task_id}/comments", response_model=List[CommentRead])
async def list_comments_endpoint(
    task_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await list_comments(session, user, task_id)


@router.post("/{task_id}/comments", response_model=CommentRead, status_code=201)
async def create_comment_endpoint(
    task_id: uuid.UUID,
    body: CommentCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    comment = await create_comment(session, user, task_id, body)
    await session.commit()
    return comment


@router.patch("/{task_id}/comments/{comment_id}", response_model=CommentRead)
async def update_comment_endpoint(
    task_id: uuid.UUID,
    comment_id: uuid.UUID,
    body: CommentUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    comment = await update_comment(session, user, task_id, comment_id, body)
    await session.commit()
    return comment


@router.delete("/{task_id}/comments/{comment_id}", status_code=204)
async def delete_comment_endpoint(
    task_id: uuid.UUID,
    comment_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await delete_comment(session, user, task_id, comment_id)
    await session.commit()
