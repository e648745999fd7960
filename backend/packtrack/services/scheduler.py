"""Background task scheduler — daily expected-inventory reconciliation.

Uses FastAPI's lifespan context to start/stop an asyncio background loop
that fires once per day at ``RECONCILIATION_HOUR`` (UTC).  The same
lifespan owns the Redis read cache and, in development, table creation.

Configuration (.env):
    SCHEDULER_ENABLED=true
    RECONCILIATION_HOUR=2
    RECONCILIATION_AUTO_FIX=false
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

from fastapi import FastAPI

from packtrack.config import settings
from packtrack.database import async_session, create_all_tables
from packtrack.utils.cache import build_cache

logger = logging.getLogger("packtrack.scheduler")


async def run_daily_reconciliation() -> dict | None:
    """Compare expected_inventory with the ledger; optionally rebuild it."""
    from packtrack.services.expected_inventory import reconcile_expected_inventory

    logger.info("Starting daily reconciliation run")
    async with async_session() as db:
        report = await reconcile_expected_inventory(
            db, auto_fix=settings.reconciliation_auto_fix,
        )

    logger.info(
        "Daily reconciliation complete: %d ledger rows, %d mismatches%s",
        report["total_skus"],
        len(report["mismatches"]),
        " (fixed)" if report["fixed"] else "",
    )
    return report


def seconds_until(target_hour: int, now: datetime | None = None) -> float:
    """Seconds from ``now`` until the next ``target_hour``:00 UTC."""
    now = now or datetime.now(timezone.utc)
    next_run = now.replace(hour=target_hour, minute=0, second=0, microsecond=0)
    if next_run <= now:
        next_run += timedelta(days=1)
    return (next_run - now).total_seconds()


async def _scheduler_loop() -> None:
    """Sleep loop that fires reconciliation once per day."""
    while True:
        wait_seconds = seconds_until(settings.reconciliation_hour)
        logger.info("Next reconciliation run in %.0f seconds", wait_seconds)

        await asyncio.sleep(wait_seconds)

        try:
            await run_daily_reconciliation()
        except Exception:
            logger.exception("Unhandled error in daily reconciliation")

        # Small buffer to avoid running twice in the same minute
        await asyncio.sleep(60)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the cache and scheduler on startup; stop them on shutdown."""
    if settings.create_tables_on_startup:
        await create_all_tables()
        logger.info("Database tables ensured")

    app.state.cache = build_cache()

    task = None
    if settings.scheduler_enabled:
        task = asyncio.create_task(_scheduler_loop())
        logger.info("Reconciliation scheduler started")
    try:
        yield
    finally:
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            logger.info("Reconciliation scheduler stopped")
        await app.state.cache.close()
