"""User and authentication schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, EmailStr, Field, UUID4

from .common import Pagination, SystemRole


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class RegisterRequest(BaseModel):
    """Self-service registration. New accounts always start as USER."""
    name: str = Field(min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class SystemRoleUpdate(BaseModel):
    """Change a user's system role (ADMIN only)."""
    role: SystemRole


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class UserResponse(BaseModel):
    """Single user response."""
    id: UUID4
    name: str
    email: str
    system_role: SystemRole
    is_active: bool
    created_at: datetime
    last_login_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class UserListResponse(BaseModel):
    data: List[UserResponse]
    pagination: Pagination


class UserStats(BaseModel):
    total_users: int
    active_users: int
    by_role: dict[str, int]
