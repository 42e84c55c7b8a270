"""
Shared fixtures: a throwaway SQLite database per test, user factories and an
HTTP client wired to the same database.
"""

from __future__ import annotations

import os

os.environ.setdefault("TRACKER_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("TRACKER_SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")
os.environ.setdefault("TRACKER_LOG_FORMAT", "console")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

import app.models  # noqa: F401
from app.core.auth import create_jwt
from app.core.database import get_session
from app.main import app as fastapi_app
from app.models.user import User
from tracker_shared.schemas.common import SystemRole


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(session):
    """Insert a user directly. Password hashes are skipped to keep tests fast."""

    async def _make(name: str, role: SystemRole = SystemRole.USER, **kwargs) -> User:
        user = User(
            name=name,
            email=kwargs.pop("email", f"{name.lower()}@example.com"),
            system_role=role.value,
            **kwargs,
        )
        session.add(user)
        await session.commit()
        return user

    return _make


@pytest.fixture
def auth_headers():
    """Bearer header for a user, signed with the test secret."""

    def _headers(user: User) -> dict[str, str]:
        token, _ = create_jwt(user.id, user.system_role)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
async def client(session_factory):
    async def _get_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    fastapi_app.dependency_overrides[get_session] = _get_session
    async with AsyncClient(
        transport=ASGITransport(app=fastapi_app), base_url="http://test"
    ) as ac:
        yield ac
    fastapi_app.dependency_overrides.clear()
