"""Project model."""

from datetime import date
from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Project(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "projects"

    name: str = Field(nullable=False)
    description: Optional[str] = None
    status: str = Field(default="ACTIVE", nullable=False)  # ACTIVE | ARCHIVED | COMPLETED
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    # Mirrors the user holding the OWNER membership row.
    owner_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    # Audit only; never changes after creation.
    creator_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    is_active: bool = Field(default=True, nullable=False)
