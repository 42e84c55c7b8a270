"""Task-related Pydantic schemas for shared use across server and frontend codegen."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field
from pydantic import UUID4

from .common import Pagination, TaskPriority, TaskStatus, TaskType


# ---------------------------------------------------------------------------
# Task CRUD
# ---------------------------------------------------------------------------

class TaskBase(BaseModel):
    title: str = Field(min_length=3, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    type: TaskType = TaskType.TASK
    story_points: Optional[int] = Field(default=None, ge=1, le=21)
    due_date: Optional[datetime] = None
    assignee_id: Optional[UUID4] = None
    parent_task_id: Optional[UUID4] = None


class TaskCreate(TaskBase):
    project_id: UUID4


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=3, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    type: Optional[TaskType] = None
    story_points: Optional[int] = Field(default=None, ge=1, le=21)
    due_date: Optional[datetime] = None
    assignee_id: Optional[UUID4] = None
    parent_task_id: Optional[UUID4] = None


class TaskRead(TaskBase):
    id: UUID4
    project_id: UUID4
    creator_id: UUID4
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TaskListResponse(BaseModel):
    data: List[TaskRead]
    pagination: Pagination


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------

class TaskStatsRead(BaseModel):
    total_tasks: int
    todo_tasks: int
    in_progress_tasks: int
    review_tasks: int
    done_tasks: int
    high_priority_tasks: int
    overdue_tasks: int
    completion_rate: int
    by_priority: dict[str, int] = Field(default_factory=dict)
