"""Service test fixtures — file-backed SQLite, pinned clock, FastAPI test client.

Invariants:
    - Every test gets a fresh SQLite database file under tmp_path
    - get_db and get_clock are overridden so routes share the test engine and clock
    - The user_settings row exists before any test body runs

Design Decisions:
    - File database instead of :memory: so concurrent tests get separate
      connections (and real lock contention) from the same engine
    - FakeClock is advanced explicitly; durations are deterministic
"""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import invoicer.infrastructure.database as db_module
from invoicer.db.base import Base
from invoicer.infrastructure.clock import get_clock
from invoicer.infrastructure.database import DatabaseSessionManager, get_db
from invoicer.main import app
from invoicer.models.client import Client
from invoicer.models.project import Project
from invoicer.services.invoice_numbers import ensure_settings


class FakeClock:
    """Clock pinned to a start instant; tests move it forward."""

    def __init__(self, start: datetime):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: int) -> None:
        self.current += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
async def test_engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'billing.db'}", echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )
    async with factory() as session:
        await ensure_settings(session)
        await session.commit()
    return factory


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture
async def seed_client(test_db):
    client = Client(name="Acme Corp", email="billing@acme.test")
    test_db.add(client)
    await test_db.commit()
    return client


@pytest.fixture
async def seed_project(test_db, seed_client):
    project = Project(
        client_id=seed_client.id, name="Website", default_hourly_rate_cents=10000,
    )
    test_db.add(project)
    await test_db.commit()
    return project


@pytest.fixture
async def second_project(test_db, seed_client):
    project = Project(
        client_id=seed_client.id, name="Mobile App", default_hourly_rate_cents=12000,
    )
    test_db.add(project)
    await test_db.commit()
    return project


@pytest.fixture
async def client(test_engine, test_session_factory, clock):
    """FastAPI test client with DB and clock dependencies overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock

    original_manager = db_module.db_manager
    fake_manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    fake_manager.engine = test_engine
    fake_manager._session_factory = test_session_factory
    db_module.db_manager = fake_manager

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager
