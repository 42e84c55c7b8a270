"""
Async engine and session management for the tracker database.

Every request gets its own ``AsyncSession``. Services only flush; the
session is committed when the request (or script block) finishes cleanly
and rolled back otherwise.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from app.core.config import get_settings

settings = get_settings()


def _engine_options(database_url: str) -> dict:
    options: dict = {"echo": settings.debug, "future": True}
    # SQLite picks its own pool class; sizing only applies to server databases.
    if make_url(database_url).get_backend_name() != "sqlite":
        options.update(
            pool_pre_ping=True,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
        )
    return options


engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))

async_session_factory = sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_db():
    """Create all tables. Development only; deployments run alembic."""
    import app.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


@asynccontextmanager
async def get_session_context() -> AsyncGenerator[AsyncSession, None]:
    """Transactional session scope for scripts and the request dependency."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions."""
    async with get_session_context() as session:
        yield session
