"""Pytest configuration and fixtures for PackTrack tests.

Tests run against an in-memory SQLite database (aiosqlite) created fresh
for every test, with Redis caching and the background scheduler off.
"""

import os

# Must be set before packtrack.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("CACHE_ENABLED", "false")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("DEBUG", "false")

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from packtrack.database import build_engine, create_all_tables, get_db
from packtrack.main import app
from packtrack.models.batch import Batch


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine():
    """Fresh in-memory database with every table created."""
    engine = build_engine("sqlite+aiosqlite://")
    await create_all_tables(engine)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Session for service-level tests (services commit their own work)."""
    session_factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(test_engine) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with overridden database dependency."""
    session_factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ── Test Data Fixtures ───────────────────────────────────────────

@pytest_asyncio.fixture
async def planning_batch(db_session: AsyncSession) -> Batch:
    """Batch "603" in planning status (packing list still editable)."""
    batch = Batch(
        batch_id="603",
        name="Batch 603",
        items=[{"sku": "A001", "name": "Bolt M6", "quantity": 50}],
        car_vins=[],
        total_cars=0,
        status="planning",
    )
    db_session.add(batch)
    await db_session.commit()
    return batch


@pytest_asyncio.fixture
async def active_batch(db_session: AsyncSession) -> Batch:
    """Batch "604", already activated."""
    batch = Batch(
        batch_id="604",
        name="Batch 604",
        items=[],
        car_vins=[],
        total_cars=0,
        status="in_progress",
    )
    db_session.add(batch)
    await db_session.commit()
    return batch


PACKING_LIST_CSV = (
    "CASE NO,PART NO,QTY\n"
    "C1,A001,10\n"
    "C1,,5\n"
    "C2,B002,x\n"
)


@pytest.fixture
def packing_list_csv() -> str:
    """One valid row, one missing PART NO, one with an invalid QTY."""
    return PACKING_LIST_CSV


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "api: HTTP API tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "cache: Redis cache tests")
