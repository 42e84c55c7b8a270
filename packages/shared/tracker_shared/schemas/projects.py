from typing import Dict, List, Optional
from pydantic import BaseModel, Field
from uuid import UUID
from datetime import date, datetime
from .common import Pagination, ProjectRole, ProjectStatus, TaskStatus
from .tasks import TaskRead


class ProjectBase(BaseModel):
    name: str = Field(min_length=3, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    status: ProjectStatus = ProjectStatus.ACTIVE
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class ProjectCreate(ProjectBase):
    # Administrative creation may hand the project to another user.
    owner_id: Optional[UUID] = None
    members: List[UUID] = Field(default_factory=list)


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=3, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    status: Optional[ProjectStatus] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class ProjectRead(ProjectBase):
    id: UUID
    owner_id: UUID
    creator_id: UUID
    task_count: int = 0
    completed_tasks: int = 0
    progress: float = 0.0
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProjectListResponse(BaseModel):
    data: List[ProjectRead]
    pagination: Pagination


class ProjectMemberAdd(BaseModel):
    user_id: UUID
    role: ProjectRole = ProjectRole.MEMBER


class ProjectMemberRoleUpdate(BaseModel):
    role: ProjectRole


class OwnershipTransfer(BaseModel):
    to_user_id: UUID


class ProjectMemberRead(BaseModel):
    user_id: UUID
    name: str
    email: str
    role: ProjectRole
    is_active: bool
    joined_at: datetime
    left_at: Optional[datetime] = None


class ProjectDetail(ProjectRead):
    in_progress_tasks: int = 0
    todo_tasks: int = 0
    members: List[ProjectMemberRead] = Field(default_factory=list)
    my_role: Optional[ProjectRole] = None


class ProjectStatsRead(BaseModel):
    total_projects: int
    active_projects: int
    completed_projects: int
    archived_projects: int
    avg_completion_rate: int
    recent_projects: List[ProjectRead] = Field(default_factory=list)


class KanbanBoard(BaseModel):
    project_id: UUID
    columns: Dict[TaskStatus, List[TaskRead]]


class TaskActivity(BaseModel):
    id: UUID
    title: str
    status: TaskStatus
    assignee_id: Optional[UUID] = None
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProjectProgress(BaseModel):
    project_id: UUID
    total_tasks: int
    completed_tasks: int
    progress: float
    task_counts: Dict[TaskStatus, int]
    recent_activity: List[TaskActivity] = Field(default_factory=list)
