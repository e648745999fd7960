"""Database engine, session factory, and declarative base.

Every logical collection (batch_allocations, expected_inventory,
packing_boxes, transactions, batches, ...) is a table keyed by its
composite document id, so one row is one document and row-level locks
give per-document read-modify-write transactions.

Session dependency for FastAPI:
  - get_db()  → yields an AsyncSession; services commit their own units
                of work, the dependency commits whatever is left.
"""

from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from packtrack.config import settings


def _engine_kwargs(url: str) -> dict[str, Any]:
    """Backend-specific engine options (pool sizing is PostgreSQL only)."""
    backend = make_url(url).get_backend_name()
    if backend.startswith("sqlite"):
        # In-memory SQLite must share one connection across sessions
        return {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }
    return {"pool_size": 20, "max_overflow": 10, "pool_pre_ping": True}


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    return create_async_engine(url, echo=echo, **_engine_kwargs(url))


engine = build_engine(settings.database_url, echo=settings.debug)

async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


# ── Base class ──────────────────────────────────────────────

class Base(DeclarativeBase):
    """All PackTrack tables."""
    pass


# ── Session dependency ──────────────────────────────────────

async def get_db() -> AsyncSession:
    """Yield a session for one request."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def create_all_tables(bind: AsyncEngine | None = None) -> None:
    """Create any missing tables (dev / tests / CLI)."""
    import packtrack.models  # noqa: F401  register every model on Base

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
