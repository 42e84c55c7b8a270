"""User model."""

from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import UUIDMixin, utcnow


class User(UUIDMixin, SQLModel, table=True):
    __tablename__ = "users"

    email: str = Field(unique=True, index=True, nullable=False)
    name: str = Field(nullable=False)
    password_hash: Optional[str] = Field(default=None)  # bcrypt hash
    system_role: str = Field(nullable=False, default="USER")  # USER | MANAGER | ADMIN
    is_active: bool = Field(default=True, nullable=False)
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
    last_login_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
