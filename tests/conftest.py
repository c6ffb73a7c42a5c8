"""Shared test fixtures — async SQLite in-memory DB, cache with a fake clock, test client."""

import os

# Use litellm's bundled model cost map instead of fetching it over the network at import
# (offline, the fetch-failure warning deadlocks litellm's own logging filter under pytest).
os.environ.setdefault("LITELLM_LOCAL_MODEL_COST_MAP", "True")

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

# Import all models so metadata is populated
import app.models  # noqa: F401
from app.api.deps import get_bus, get_cache
from app.core.cache import ExpiringKeyValueCache
from app.core.database import get_session
from app.main import app
from app.services.notifications import NotificationBus


class FakeClock:
    """Manually advanced naive-UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def test_session_factory(engine):
    """Session factory bound to the test SQLite engine."""
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(test_session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with test_session_factory() as sess:
        yield sess
        await sess.rollback()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(test_session_factory, clock) -> ExpiringKeyValueCache:
    return ExpiringKeyValueCache(test_session_factory, clock=clock)


@pytest.fixture
def bus() -> NotificationBus:
    return NotificationBus()


@pytest.fixture
async def client(session, cache, bus) -> AsyncGenerator[AsyncClient, None]:
    """HTTPX async test client with DB session, cache and bus overrides."""

    async def _override_session():
        yield session

    app.dependency_overrides[get_session] = _override_session
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_bus] = lambda: bus

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
