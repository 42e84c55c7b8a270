"""Task comment model. Comments are flat; there are no replies."""

import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Comment(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "comments"

    task_id: uuid.UUID = Field(foreign_key="tasks.id", nullable=False, index=True)
    author_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    content: str = Field(nullable=False)
