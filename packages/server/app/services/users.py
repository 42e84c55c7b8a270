"""
User management service: registration, credential checks and the
administrator-only account operations.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import hash_password, verify_password
from app.core.errors import EmailTaken, InvalidOperation, Unauthorized, UserNotFound
from app.models.base import utcnow
from app.models.user import User
from app.services.visibility import pagination, search_clause
from tracker_shared.schemas.common import SystemRole
from tracker_shared.schemas.users import RegisterRequest

log = structlog.get_logger()


def _normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_user_or_404(session: AsyncSession, user_id: uuid.UUID) -> User:
    user = await session.get(User, user_id)
    if not user:
        raise UserNotFound()
    return user


async def get_user_by_email(session: AsyncSession, email: str) -> Optional[User]:
    result = await session.execute(
        select(User).where(User.email == _normalize_email(email))
    )
    return result.scalar_one_or_none()


async def register_user(
    session: AsyncSession,
    req: RegisterRequest,
    *,
    system_role: SystemRole = SystemRole.USER,
) -> User:
    """Create an account. Self-registration always yields a USER."""
    if await get_user_by_email(session, req.email):
        raise EmailTaken()

    user = User(
        email=_normalize_email(req.email),
        name=req.name.strip(),
        password_hash=hash_password(req.password),
        system_role=system_role.value,
    )
    session.add(user)
    await session.flush()

    log.info("user.registered", user_id=str(user.id), system_role=user.system_role)
    return user


async def authenticate(session: AsyncSession, email: str, password: str) -> User:
    """Verify credentials and stamp ``last_login_at``."""
    user = await get_user_by_email(session, email)
    if not user or not user.password_hash or not verify_password(password, user.password_hash):
        log.info("auth.login_failed", email=_normalize_email(email))
        raise Unauthorized("Invalid email or password")
    if not user.is_active:
        raise Unauthorized("Account is deactivated")

    user.last_login_at = utcnow()
    session.add(user)
    await session.flush()

    log.info("auth.login", user_id=str(user.id))
    return user


async def list_users(
    session: AsyncSession,
    *,
    search: Optional[str] = None,
    role: Optional[SystemRole] = None,
    page: int = 1,
    per_page: int = 10,
) -> tuple[list[User], dict]:
    where = []
    if search:
        where.append(search_clause(search, User.name, User.email))
    if role:
        where.append(User.system_role == role.value)

    total = (
        await session.execute(select(func.count()).select_from(User).where(*where))
    ).scalar_one()
    result = await session.execute(
        select(User)
        .where(*where)
        .order_by(User.created_at.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(result.scalars().all()), pagination(page, per_page, total)


async def user_stats(session: AsyncSession) -> dict:
    total = (await session.execute(select(func.count(User.id)))).scalar_one()
    active = (
        await session.execute(
            select(func.count(User.id)).where(User.is_active == True)  # noqa: E712
        )
    ).scalar_one()

    by_role = {r.value: 0 for r in SystemRole}
    result = await session.execute(
        select(User.system_role, func.count(User.id)).group_by(User.system_role)
    )
    for role, count in result.all():
        by_role[role] = count

    return {"total_users": total, "active_users": active, "by_role": by_role}


async def update_system_role(
    session: AsyncSession, actor: User, user_id: uuid.UUID, role: SystemRole
) -> User:
    user = await get_user_or_404(session, user_id)
    if user.id == actor.id and role != SystemRole.ADMIN:
        raise InvalidOperation("Administrators cannot demote themselves")

    old_role = user.system_role
    user.system_role = role.value
    session.add(user)
    await session.flush()

    log.info(
        "user.role_updated",
        user_id=str(user.id),
        old_role=old_role,
        new_role=role.value,
        actor_id=str(actor.id),
    )
    return user


async def deactivate_user(session: AsyncSession, actor: User, user_id: uuid.UUID) -> User:
    """Soft delete. Bearer tokens for the account stop working immediately."""
    user = await get_user_or_404(session, user_id)
    if user.id == actor.id:
        raise InvalidOperation("Cannot deactivate your own account")

    user.is_active = False
    session.add(user)
    await session.flush()

    log.info("user.deactivated", user_id=str(user.id), actor_id=str(actor.id))
    return user
