"""Expected inventory router — the read-optimized projection.

Endpoints:
    GET  /api/expected                          Projection rows (optional ?location=)
    POST /api/expected/{sku}/{location}/sync    Resync one row from the ledger
    POST /api/expected/reconcile                Compare with the ledger (?fix=true rebuilds)
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from packtrack.database import get_db
from packtrack.schemas.allocation import (
    ExpectedInventoryOut,
    ReconcileReport,
    SyncRequest,
    SyncResult,
)
from packtrack.services.expected_inventory import (
    get_expected_inventory,
    reconcile_expected_inventory,
    sync_expected_from_batch_allocations,
)
from packtrack.utils.cache import STOCK_VIEW_PREFIXES, ReadCache, get_cache

router = APIRouter()


@router.get("", response_model=list[ExpectedInventoryOut])
async def list_expected(
    location: str | None = Query(None, description="Filter by location"),
    db: AsyncSession = Depends(get_db),
    cache: ReadCache = Depends(get_cache),
):
    key = f"expected:{location or '*'}"
    cached = await cache.get_json(key)
    if cached is not None:
        return cached

    entries = [
        ExpectedInventoryOut.model_validate(e).model_dump(mode="json")
        for e in await get_expected_inventory(db, location)
    ]
    await cache.set_json(key, entries)
    return entries


@router.post("/{sku}/{location}/sync", response_model=SyncResult)
async def sync_entry(
    sku: str,
    location: str,
    body: SyncRequest | None = None,
    db: AsyncSession = Depends(get_db),
    cache: ReadCache = Depends(get_cache),
):
    """Overwrite one projection row with the ledger total.

    Sync failures are reported as ``synced: false``, not as an error.
    """
    amount = await sync_expected_from_batch_allocations(
        db, sku, location, known_total=body.known_total if body else None,
    )
    await cache.invalidate("expected")
    return SyncResult(sku=sku, location=location, amount=amount, synced=amount is not None)


@router.post("/reconcile", response_model=ReconcileReport)
async def reconcile(
    fix: bool = Query(False, description="Rebuild mismatched rows from the ledger"),
    db: AsyncSession = Depends(get_db),
    cache: ReadCache = Depends(get_cache),
):
    report = await reconcile_expected_inventory(db, auto_fix=fix)
    if report["fixed"]:
        await cache.invalidate(*STOCK_VIEW_PREFIXES)
    return report
