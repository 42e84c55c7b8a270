"""Task comment schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, UUID4


class CommentCreate(BaseModel):
    content: str = Field(min_length=1, max_length=2000)


class CommentUpdate(BaseModel):
    content: str = Field(min_length=1, max_length=2000)


class CommentRead(BaseModel):
    id: UUID4
    task_id: UUID4
    author_id: UUID4
    author_name: str
    content: str
    created_at: datetime
    updated_at: datetime
