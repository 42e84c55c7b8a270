"""
Effective-permission resolution and access gates.

A user's power inside a project comes from one of three places, checked in
this order (first match wins):

1. System ADMIN: full (OWNER-equivalent) access everywhere, no lookup.
2. An active membership row: its project role, whatever it is. A manager
   who was explicitly demoted to VIEWER stays a VIEWER.
3. Legacy owner grant: a MANAGER who owns or created the project gets
   ADMIN-equivalent access without a membership row. Controlled by the
   ``legacy_owner_grant`` setting.

Anything else has no standing. Gates turn "no standing" into
``Unauthorized`` and "standing, but too low" into ``Forbidden``.

Nothing here is cached: every check reads current membership state.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.errors import Forbidden, Unauthorized
from app.core.roles import (
    as_project_role,
    as_system_role,
    project_rank,
    system_role_at_least,
)
from app.models.membership import ProjectMembership
from app.models.project import Project
from app.models.user import User
from app.services.membership_store import get_active_membership
from tracker_shared.schemas.common import ProjectRole, SystemRole


class AccessSource(str, Enum):
    SYSTEM_ADMIN = "system_admin"
    MEMBERSHIP = "membership"
    LEGACY_OWNER_GRANT = "legacy_owner_grant"
    NONE = "none"


@dataclass(frozen=True)
class ProjectAccess:
    """The effective role of one user in one project, and where it came from."""

    role: Optional[ProjectRole]
    source: AccessSource

    @property
    def has_standing(self) -> bool:
        return self.role is not None

    def at_least(self, min_role: ProjectRole) -> bool:
        return self.role is not None and project_rank(self.role) >= project_rank(min_role)


NO_STANDING = ProjectAccess(role=None, source=AccessSource.NONE)


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


def legacy_owner_grant_applies(user: User, project: Project) -> bool:
    """MANAGER who owns or created the project."""
    return as_system_role(user.system_role) == SystemRole.MANAGER and (
        project.owner_id == user.id or project.creator_id == user.id
    )


def resolve_effective_role(
    user: User,
    project: Project,
    membership: Optional[ProjectMembership],
    *,
    legacy_owner_grant: bool = True,
) -> ProjectAccess:
    """Pure precedence rules; ``membership`` is the caller's active row or None."""
    if as_system_role(user.system_role) == SystemRole.ADMIN:
        return ProjectAccess(role=ProjectRole.OWNER, source=AccessSource.SYSTEM_ADMIN)

    if membership is not None and membership.is_active:
        return ProjectAccess(
            role=as_project_role(membership.role), source=AccessSource.MEMBERSHIP
        )

    if legacy_owner_grant and legacy_owner_grant_applies(user, project):
        return ProjectAccess(role=ProjectRole.ADMIN, source=AccessSource.LEGACY_OWNER_GRANT)

    return NO_STANDING


async def resolve_project_access(
    session: AsyncSession,
    user: User,
    project: Project,
    *,
    legacy_owner_grant: Optional[bool] = None,
) -> ProjectAccess:
    """Look up the caller's membership and resolve their effective role."""
    if legacy_owner_grant is None:
        legacy_owner_grant = get_settings().legacy_owner_grant

    membership = None
    if as_system_role(user.system_role) != SystemRole.ADMIN:
        membership = await get_active_membership(session, project.id, user.id)

    return resolve_effective_role(
        user, project, membership, legacy_owner_grant=legacy_owner_grant
    )


# ---------------------------------------------------------------------------
# Gates
# ---------------------------------------------------------------------------


def check_system_role(user: User, min_role: SystemRole) -> None:
    """Rank comparison on the system role. Only ever raises Forbidden."""
    if not system_role_at_least(user.system_role, min_role):
        raise Forbidden(
            f"Access denied. Required role: {min_role.value}",
            required_role=min_role.value,
        )


def check_system_role_in(
    user: User, allowed: Iterable[SystemRole], message: str
) -> None:
    """Allowlist check on the system role (not rank based)."""
    allowed = list(allowed)
    if as_system_role(user.system_role) not in allowed:
        raise Forbidden(message, required_role="|".join(r.value for r in allowed))


def check_project_role(access: ProjectAccess, min_role: ProjectRole) -> None:
    if not access.has_standing:
        raise Unauthorized("You are not part of this project")
    if not access.at_least(min_role):
        raise Forbidden(
            f"Access denied. Required project role: {min_role.value}",
            required_role=min_role.value,
        )


def check_exact_project_role(access: ProjectAccess, role: ProjectRole, message: str) -> None:
    if not access.has_standing:
        raise Unauthorized("You are not part of this project")
    if access.role != role:
        raise Forbidden(message, required_role=role.value)


def check_project_creation(user: User) -> None:
    check_system_role_in(
        user, [SystemRole.ADMIN], "Only administrators can create projects"
    )


def check_task_creation(user: User) -> None:
    check_system_role_in(
        user,
        [SystemRole.USER, SystemRole.MANAGER, SystemRole.ADMIN],
        "You do not have permission to create tasks",
    )


async def require_project_role(
    session: AsyncSession, user: User, project: Project, min_role: ProjectRole
) -> ProjectAccess:
    access = await resolve_project_access(session, user, project)
    check_project_role(access, min_role)
    return access


async def require_member_management(
    session: AsyncSession, user: User, project: Project
) -> ProjectAccess:
    """MANAGER and ADMIN system roles pass; others need project OWNER or ADMIN."""
    access = await resolve_project_access(session, user, project)
    if as_system_role(user.system_role) in (SystemRole.MANAGER, SystemRole.ADMIN):
        return access
    check_project_role(access, ProjectRole.ADMIN)
    return access


async def require_role_management(
    session: AsyncSession, user: User, project: Project
) -> ProjectAccess:
    """Re-ranking members is reserved for the effective OWNER."""
    access = await resolve_project_access(session, user, project)
    check_exact_project_role(
        access, ProjectRole.OWNER, "Only project owners can update member roles"
    )
    return access
