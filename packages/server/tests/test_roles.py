"""
Unit tests for the role hierarchies.
"""

from __future__ import annotations

import pytest

from app.core.errors import InvalidRole
from app.core.roles import (
    PROJECT_ROLE_RANK,
    SYSTEM_ROLE_RANK,
    as_project_role,
    project_rank,
    project_role_at_least,
    system_rank,
    system_role_at_least,
)
from tracker_shared.schemas.common import ProjectRole, SystemRole


class TestSystemRoles:
    def test_total_order(self):
        assert system_rank(SystemRole.USER) < system_rank(SystemRole.MANAGER)
        assert system_rank(SystemRole.MANAGER) < system_rank(SystemRole.ADMIN)

    def test_accepts_string_labels(self):
        assert system_rank("ADMIN") == SYSTEM_ROLE_RANK[SystemRole.ADMIN]
        assert system_role_at_least("MANAGER", SystemRole.USER)
        assert not system_role_at_least("USER", "MANAGER")

    def test_unknown_label_raises(self):
        with pytest.raises(InvalidRole) as exc:
            system_rank("SUPERUSER")
        assert exc.value.status_code == 400
        assert "SUPERUSER" in exc.value.message

    def test_legacy_project_manager_label_is_not_a_role(self):
        with pytest.raises(InvalidRole):
            system_rank("PROJECT_MANAGER")


class TestProjectRoles:
    def test_total_order(self):
        ordered = [ProjectRole.VIEWER, ProjectRole.MEMBER, ProjectRole.ADMIN, ProjectRole.OWNER]
        ranks = [project_rank(r) for r in ordered]
        assert ranks == sorted(ranks)
        assert len(set(ranks)) == 4

    def test_at_least_is_reflexive(self):
        for role in ProjectRole:
            assert project_role_at_least(role, role)

    def test_viewer_below_member(self):
        assert not project_role_at_least(ProjectRole.VIEWER, ProjectRole.MEMBER)
        assert project_role_at_least(ProjectRole.OWNER, "ADMIN")

    def test_unknown_label_raises(self):
        with pytest.raises(InvalidRole):
            project_rank("MANAGER")
        with pytest.raises(InvalidRole):
            as_project_role("")

    def test_rank_tables_are_read_only(self):
        with pytest.raises(TypeError):
            PROJECT_ROLE_RANK[ProjectRole.VIEWER] = 99  # type: ignore[index]
        with pytest.raises(TypeError):
            SYSTEM_ROLE_RANK[SystemRole.USER] = 99  # type: ignore[index]

    def test_every_enum_member_is_ranked(self):
        assert set(PROJECT_ROLE_RANK) == set(ProjectRole)
        assert set(SYSTEM_ROLE_RANK) == set(SystemRole)
