"""Project membership model.

Rows are never deleted: removal flips ``is_active`` and stamps ``left_at``.
Rejoining a project creates a fresh row, so the partial unique index only
covers active rows.
"""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import UUIDMixin, utcnow


class ProjectMembership(UUIDMixin, SQLModel, table=True):
    __tablename__ = "project_members"
    __table_args__ = (
        sa.Index(
            "uq_project_members_active",
            "project_id",
            "user_id",
            unique=True,
            postgresql_where=sa.text("is_active"),
            sqlite_where=sa.text("is_active = 1"),
        ),
    )

    project_id: uuid.UUID = Field(foreign_key="projects.id", nullable=False, index=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    role: str = Field(nullable=False, default="MEMBER")  # VIEWER | MEMBER | ADMIN | OWNER
    is_active: bool = Field(default=True, nullable=False)
    joined_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
    left_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
