"""
Role hierarchies.

Two fixed total orders: the system role on a user account and the role a
membership row grants inside one project. Higher rank means more
permissions. Lookups accept an enum member or its string value; anything
else raises ``InvalidRole``.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Union

from app.core.errors import InvalidRole
from tracker_shared.schemas.common import ProjectRole, SystemRole

SYSTEM_ROLE_RANK: Mapping[SystemRole, int] = MappingProxyType({
    SystemRole.USER: 1,
    SystemRole.MANAGER: 2,
    SystemRole.ADMIN: 3,
})

PROJECT_ROLE_RANK: Mapping[ProjectRole, int] = MappingProxyType({
    ProjectRole.VIEWER: 1,
    ProjectRole.MEMBER: 2,
    ProjectRole.ADMIN: 3,
    ProjectRole.OWNER: 4,
})


def as_system_role(label: Union[SystemRole, str]) -> SystemRole:
    try:
        return SystemRole(label)
    except ValueError:
        raise InvalidRole(label) from None


def as_project_role(label: Union[ProjectRole, str]) -> ProjectRole:
    try:
        return ProjectRole(label)
    except ValueError:
        raise InvalidRole(label) from None


def system_rank(label: Union[SystemRole, str]) -> int:
    return SYSTEM_ROLE_RANK[as_system_role(label)]


def project_rank(label: Union[ProjectRole, str]) -> int:
    return PROJECT_ROLE_RANK[as_project_role(label)]


def system_role_at_least(role: Union[SystemRole, str], min_role: Union[SystemRole, str]) -> bool:
    return system_rank(role) >= system_rank(min_role)


def project_role_at_least(role: Union[ProjectRole, str], min_role: Union[ProjectRole, str]) -> bool:
    return project_rank(role) >= project_rank(min_role)
