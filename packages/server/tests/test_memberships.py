"""
Tests for the membership lifecycle.

Covers:
- Project creation with its OWNER row (and administrative owner assignment)
- add / update role / remove / leave, including OWNER protection
- Duplicate adds, including one that slips past the existence check
- Ownership transfer
"""

from __future__ import annotations

import pytest
from sqlalchemy import func
from sqlmodel import select

from app.core.errors import (
    Forbidden,
    InvalidOperation,
    MemberExists,
    MemberNotFound,
    Unauthorized,
    UserNotFound,
)
from app.models.membership import ProjectMembership
from app.services import memberships
from app.services.membership_store import get_active_membership
from app.services.projects import create_project
from tracker_shared.schemas.common import ProjectRole, SystemRole
from tracker_shared.schemas.projects import ProjectCreate


async def _active_rows(session, project_id, **filters) -> int:
    stmt = select(func.count(ProjectMembership.id)).where(
        ProjectMembership.project_id == project_id,
        ProjectMembership.is_active == True,  # noqa: E712
    )
    for key, value in filters.items():
        stmt = stmt.where(getattr(ProjectMembership, key) == value)
    return (await session.execute(stmt)).scalar_one()


async def _owner_rows(session, project_id) -> int:
    return await _active_rows(session, project_id, role=ProjectRole.OWNER.value)


@pytest.fixture
async def team(make_user):
    return {
        "admin": await make_user("Ada", SystemRole.ADMIN),
        "manager": await make_user("Max", SystemRole.MANAGER),
        "owner": await make_user("Olga"),
        "alice": await make_user("Alice"),
        "bob": await make_user("Bob"),
    }


@pytest.fixture
async def project(session, team):
    project = await create_project(
        session, team["admin"], ProjectCreate(name="Apollo", owner_id=team["owner"].id)
    )
    await session.commit()
    return project


# ---------------------------------------------------------------------------
# Project creation
# ---------------------------------------------------------------------------


class TestCreateProject:
    async def test_creator_owns_by_default(self, session, team):
        project = await create_project(session, team["admin"], ProjectCreate(name="Solo"))
        await session.commit()

        assert project.owner_id == team["admin"].id
        assert project.creator_id == team["admin"].id
        row = await get_active_membership(session, project.id, team["admin"].id)
        assert row.role == ProjectRole.OWNER.value

    async def test_admin_can_name_owner(self, session, team, project):
        assert project.owner_id == team["owner"].id
        assert project.creator_id == team["admin"].id
        assert await _owner_rows(session, project.id) == 1
        assert await get_active_membership(session, project.id, team["admin"].id) is None

    async def test_initial_members_join_as_member(self, session, team):
        project = await create_project(
            session,
            team["admin"],
            ProjectCreate(
                name="Crew",
                owner_id=team["owner"].id,
                members=[team["alice"].id, team["alice"].id, team["owner"].id],
            ),
        )
        await session.commit()
        assert await _active_rows(session, project.id) == 2
        row = await get_active_membership(session, project.id, team["alice"].id)
        assert row.role == ProjectRole.MEMBER.value

    async def test_non_admin_cannot_create(self, session, team):
        with pytest.raises(Forbidden):
            await create_project(session, team["manager"], ProjectCreate(name="Nope"))

    async def test_unknown_owner(self, session, team, make_user):
        ghost = await make_user("Ghost", is_active=False)
        with pytest.raises(UserNotFound):
            await create_project(
                session, team["admin"], ProjectCreate(name="Haunted", owner_id=ghost.id)
            )


# ---------------------------------------------------------------------------
# Add / update / remove
# ---------------------------------------------------------------------------


class TestAddMember:
    async def test_owner_adds_member(self, session, team, project):
        row = await memberships.add_member(
            session, team["owner"], project, team["alice"].id, ProjectRole.MEMBER
        )
        await session.commit()
        assert row.is_active
        assert row.role == ProjectRole.MEMBER.value

    async def test_duplicate_add_rejected(self, session, team, project):
        await memberships.add_member(
            session, team["owner"], project, team["alice"].id, ProjectRole.MEMBER
        )
        await session.commit()
        with pytest.raises(MemberExists):
            await memberships.add_member(
                session, team["owner"], project, team["alice"].id, ProjectRole.MEMBER
            )
        assert await _active_rows(session, project.id, user_id=team["alice"].id) == 1

    async def test_unique_index_catches_racing_add(
        self, session_factory, team, project, monkeypatch
    ):
        async def no_active_row(*args, **kwargs):
            return None

        async with session_factory() as first, session_factory() as second:
            await memberships.add_member(
                first, team["admin"], project, team["alice"].id, ProjectRole.MEMBER
            )
            await first.commit()

            # second passed its existence check before first committed
            monkeypatch.setattr(memberships, "get_active_membership", no_active_row)
            with pytest.raises(MemberExists):
                await memberships.add_member(
                    second, team["admin"], project, team["alice"].id, ProjectRole.VIEWER
                )
            await second.rollback()

        async with session_factory() as fresh:
            assert await _active_rows(fresh, project.id, user_id=team["alice"].id) == 1
            row = await get_active_membership(fresh, project.id, team["alice"].id)
            assert row.role == ProjectRole.MEMBER.value

    async def test_cannot_add_owner(self, session, team, project):
        with pytest.raises(InvalidOperation):
            await memberships.add_member(
                session, team["owner"], project, team["alice"].id, ProjectRole.OWNER
            )

    async def test_inactive_user_not_found(self, session, team, project, make_user):
        ghost = await make_user("Ghost", is_active=False)
        with pytest.raises(UserNotFound):
            await memberships.add_member(
                session, team["owner"], project, ghost.id, ProjectRole.MEMBER
            )

    async def test_outsider_unauthorized(self, session, team, project):
        with pytest.raises(Unauthorized):
            await memberships.add_member(
                session, team["alice"], project, team["bob"].id, ProjectRole.MEMBER
            )

    async def test_member_rank_forbidden(self, session, team, project):
        await memberships.add_member(
            session, team["owner"], project, team["alice"].id, ProjectRole.MEMBER
        )
        await session.commit()
        with pytest.raises(Forbidden):
            await memberships.add_member(
                session, team["alice"], project, team["bob"].id, ProjectRole.VIEWER
            )

    async def test_system_manager_may_manage_without_standing(self, session, team, project):
        await memberships.add_member(
            session, team["manager"], project, team["bob"].id, ProjectRole.VIEWER
        )
        await session.commit()
        assert await _active_rows(session, project.id, user_id=team["bob"].id) == 1


class TestUpdateMemberRole:
    async def test_owner_promotes(self, session, team, project):
        await memberships.add_member(
            session, team["owner"], project, team["alice"].id, ProjectRole.VIEWER
        )
        row = await memberships.update_member_role(
            session, team["owner"], project, team["alice"].id, ProjectRole.ADMIN
        )
        assert row.role == ProjectRole.ADMIN.value

    async def test_project_admin_cannot_rerank(self, session, team, project):
        await memberships.add_member(
            session, team["owner"], project, team["alice"].id, ProjectRole.ADMIN
        )
        await memberships.add_member(
            session, team["owner"], project, team["bob"].id, ProjectRole.VIEWER
        )
        with pytest.raises(Forbidden):
            await memberships.update_member_role(
                session, team["alice"], project, team["bob"].id, ProjectRole.MEMBER
            )

    async def test_owner_row_is_immutable(self, session, team, project):
        with pytest.raises(InvalidOperation):
            await memberships.update_member_role(
                session, team["admin"], project, team["owner"].id, ProjectRole.ADMIN
            )
        assert await _owner_rows(session, project.id) == 1

    async def test_cannot_promote_to_owner(self, session, team, project):
        await memberships.add_member(
            session, team["owner"], project, team["alice"].id, ProjectRole.ADMIN
        )
        with pytest.raises(InvalidOperation):
            await memberships.update_member_role(
                session, team["owner"], project, team["alice"].id, ProjectRole.OWNER
            )
        assert await _owner_rows(session, project.id) == 1

    async def test_missing_member(self, session, team, project):
        with pytest.raises(MemberNotFound):
            await memberships.update_member_role(
                session, team["owner"], project, team["bob"].id, ProjectRole.MEMBER
            )


class TestRemoveMember:
    async def test_remove_is_soft(self, session, team, project):
        await memberships.add_member(
            session, team["owner"], project, team["alice"].id, ProjectRole.MEMBER
        )
        row = await get_active_membership(session, project.id, team["alice"].id)
        await memberships.remove_member(session, team["owner"], project, team["alice"].id)
        await session.commit()

        assert row.is_active is False
        assert row.left_at is not None
        assert await get_active_membership(session, project.id, team["alice"].id) is None

    async def test_owner_cannot_be_removed(self, session, team, project):
        with pytest.raises(InvalidOperation):
            await memberships.remove_member(session, team["admin"], project, team["owner"].id)
        assert await _owner_rows(session, project.id) == 1

    async def test_remove_missing(self, session, team, project):
        with pytest.raises(MemberNotFound):
            await memberships.remove_member(session, team["owner"], project, team["bob"].id)

    async def test_rejoin_creates_new_row(self, session, team, project):
        await memberships.add_member(
            session, team["owner"], project, team["alice"].id, ProjectRole.MEMBER
        )
        await memberships.remove_member(session, team["owner"], project, team["alice"].id)
        await session.commit()
        await memberships.add_member(
            session, team["owner"], project, team["alice"].id, ProjectRole.VIEWER
        )
        await session.commit()

        rows = await memberships.list_members(
            session, team["owner"], project, include_inactive=True
        )
        alice_rows = [r for r in rows if r["user_id"] == team["alice"].id]
        assert len(alice_rows) == 2
        assert sorted(r["is_active"] for r in alice_rows) == [False, True]


class TestLeaveProject:
    async def test_member_leaves(self, session, team, project):
        await memberships.add_member(
            session, team["owner"], project, team["alice"].id, ProjectRole.VIEWER
        )
        await memberships.leave_project(session, team["alice"], project)
        assert await get_active_membership(session, project.id, team["alice"].id) is None

    async def test_owner_cannot_leave(self, session, team, project):
        with pytest.raises(InvalidOperation):
            await memberships.leave_project(session, team["owner"], project)

    async def test_non_member_cannot_leave(self, session, team, project):
        with pytest.raises(MemberNotFound):
            await memberships.leave_project(session, team["bob"], project)


class TestTransferOwnership:
    async def test_roles_swap(self, session, team, project):
        await memberships.add_member(
            session, team["owner"], project, team["alice"].id, ProjectRole.MEMBER
        )
        await memberships.transfer_ownership(session, team["owner"], project, team["alice"].id)
        await session.commit()

        assert project.owner_id == team["alice"].id
        assert project.creator_id == team["admin"].id
        new_owner = await get_active_membership(session, project.id, team["alice"].id)
        old_owner = await get_active_membership(session, project.id, team["owner"].id)
        assert new_owner.role == ProjectRole.OWNER.value
        assert old_owner.role == ProjectRole.MEMBER.value
        assert await _owner_rows(session, project.id) == 1

        # the former owner may now leave
        await memberships.leave_project(session, team["owner"], project)

    async def test_only_owner_may_transfer(self, session, team, project):
        await memberships.add_member(
            session, team["owner"], project, team["alice"].id, ProjectRole.ADMIN
        )
        await memberships.add_member(
            session, team["owner"], project, team["bob"].id, ProjectRole.MEMBER
        )
        with pytest.raises(Forbidden):
            await memberships.transfer_ownership(
                session, team["alice"], project, team["bob"].id
            )

    async def test_target_must_be_member(self, session, team, project):
        with pytest.raises(MemberNotFound):
            await memberships.transfer_ownership(
                session, team["owner"], project, team["bob"].id
            )

    async def test_transfer_to_self_rejected(self, session, team, project):
        with pytest.raises(InvalidOperation):
            await memberships.transfer_ownership(
                session, team["owner"], project, team["owner"].id
            )
