"""
Authentication and authorization dependencies.

Supports:
- Email/Password login with bcrypt hashes
- Stateless JWT bearer tokens
- System-role dependencies (rank based and exact allowlists)
- Project-scoped dependencies that resolve the caller's effective role
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from structlog.contextvars import bind_contextvars

from app.core.config import get_settings
from app.core.database import get_session
from app.core.errors import Unauthorized
from app.core.permissions import (
    ProjectAccess,
    check_project_creation,
    check_system_role,
    check_task_creation,
    require_project_role,
)
from app.models.project import Project
from app.models.user import User
from app.services.projects import get_project_or_404
from tracker_shared.schemas.common import ProjectRole, SystemRole

settings = get_settings()

bearer_scheme = HTTPBearer(auto_error=False)

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

def hash_password(password: str) -> str:
    """Hash a password using bcrypt with cost factor 12."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=12)).decode()


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash."""
    return bcrypt.checkpw(password.encode(), hashed.encode())


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_jwt(
    user_id: uuid.UUID,
    role: str,
    *,
    expires_delta: timedelta | None = None,
) -> tuple[str, int]:
    """Create a signed JWT. Returns (token, expires_in_seconds).

    The role claim is informational only; authorization always re-reads the
    user row so role changes apply on the next request.
    """
    now = datetime.now(timezone.utc)
    delta = expires_delta or timedelta(minutes=settings.jwt_expire_minutes)
    payload = {
        "sub": str(user_id),
        "role": role,
        "iat": now,
        "exp": now + delta,
        "jti": str(uuid.uuid4()),
    }
    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    return token, int(delta.total_seconds())


def decode_jwt(token: str) -> dict:
    """Decode and verify a JWT. Raises jwt.PyJWTError on failure."""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


# ---------------------------------------------------------------------------
# Authentication dependency
# ---------------------------------------------------------------------------

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_session),
) -> User:
    """Resolve the bearer token to an active user."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise Unauthorized("Authentication required")

    try:
        payload = decode_jwt(credentials.credentials)
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Token has expired")
    except jwt.PyJWTError:
        raise Unauthorized("Invalid or expired token")

    try:
        user_id = uuid.UUID(payload["sub"])
    except (KeyError, ValueError):
        raise Unauthorized("Invalid token subject")

    user = await session.get(User, user_id)
    if not user or not user.is_active:
        raise Unauthorized("Invalid or inactive user token")

    bind_contextvars(user_id=str(user.id))
    return user


# ---------------------------------------------------------------------------
# Authorization dependencies (system roles)
# ---------------------------------------------------------------------------

def require_system_role(min_role: SystemRole):
    """Dependency factory: rank(user.system_role) >= rank(min_role)."""

    async def dependency(user: User = Depends(get_current_user)) -> User:
        check_system_role(user, min_role)
        return user

    return dependency


require_admin = require_system_role(SystemRole.ADMIN)


async def require_project_creator(user: User = Depends(get_current_user)) -> User:
    """Project creation is an exact ADMIN allowlist."""
    check_project_creation(user)
    return user


async def require_task_creator(user: User = Depends(get_current_user)) -> User:
    """Any authenticated active user; the project check happens in the service."""
    check_task_creation(user)
    return user


# ---------------------------------------------------------------------------
# Authorization dependencies (project scoped)
# ---------------------------------------------------------------------------

@dataclass
class ProjectContext:
    """Container for the caller, the target project and the resolved access."""

    user: User
    project: Project
    access: Optional[ProjectAccess] = None


async def get_project_context(
    project_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ProjectContext:
    """Load the target project without gating on it."""
    project = await get_project_or_404(session, project_id)
    return ProjectContext(user=user, project=project)


def require_project_access(min_role: ProjectRole):
    """Dependency factory: effective project role must be at least ``min_role``."""

    async def dependency(
        ctx: ProjectContext = Depends(get_project_context),
        session: AsyncSession = Depends(get_session),
    ) -> ProjectContext:
        ctx.access = await require_project_role(session, ctx.user, ctx.project, min_role)
        return ctx

    return dependency
