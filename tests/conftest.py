from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from hello_api.core.database import Base
from hello_api.services.monitoring import MonitoringService


class FakeClock:
    """Manually advanced UTC clock for monitoring tests."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 1, 15, 9, 30, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def monitoring(clock):
    return MonitoringService(clock=clock)


@pytest_asyncio.fixture
async def db_engine():
    """In-memory SQLite engine for tests."""
    engine = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Async session bound to the in-memory engine."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def app_with_db(db_engine, session_factory):
    """FastAPI app wired to the in-memory test database and a fresh monitoring service."""
    import hello_api.core.database as db_module

    # Patch the module-level engine and session factory
    original_engine = db_module.engine
    original_session = db_module.async_session
    db_module.engine = db_engine
    db_module.async_session = session_factory

    from hello_api.main import app

    app.state.monitoring = MonitoringService()

    yield app

    db_module.engine = original_engine
    db_module.async_session = original_session


@pytest_asyncio.fixture
async def client(app_with_db):
    transport = ASGITransport(app=app_with_db)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
