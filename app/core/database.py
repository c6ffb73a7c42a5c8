"""Database engine and the session factory shared by routes and the cache.

Routes get a request-scoped session through ``get_session``; the cache opens
its own short-lived session per operation from ``async_session_factory``.
"""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlmodel import SQLModel

from app.core.config import get_settings


def build_engine(database_url: str) -> AsyncEngine:
    """Create the async engine; pool sizing applies to server databases only."""
    options: dict[str, Any] = {"echo": False}
    if make_url(database_url).get_backend_name() != "sqlite":
        options.update(pool_size=20, max_overflow=10, pool_pre_ping=True)
    return create_async_engine(database_url, **options)


engine = build_engine(get_settings().database_url)
async_session_factory = async_sessionmaker(engine, expire_on_commit=False)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        yield session


async def init_db() -> None:
    """Create missing tables at startup; Alembic owns schema changes."""
    import app.models  # noqa: F401  registers CacheEntry on SQLModel.metadata

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def dispose_db() -> None:
    await engine.dispose()
