"""Batch allocation ledger router.

Endpoints:
    GET  /api/allocations                            All ledger rows
    GET  /api/allocations/locations                  Location directory
    GET  /api/allocations/progress                   Allocated units per batch
    GET  /api/allocations/{sku}/{location}           One ledger row
    POST /api/allocations/{sku}/{location}/add       Add units to a batch
    POST /api/allocations/{sku}/{location}/remove    Remove units from a batch
    POST /api/allocations/zero                       Clean stock (batch / default / all)

Direct ledger edits resync the expected inventory row afterwards; use
/api/stock for changes that should also appear in the transaction log.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from packtrack.database import get_db
from packtrack.errors import NotFoundError, ValidationError
from packtrack.schemas.allocation import (
    AllocationChangeRequest,
    BatchAllocationOut,
    BatchProgressOut,
    LocationSummary,
    ZeroStockRequest,
    ZeroStockResult,
)
from packtrack.services.batch_allocation import (
    add_to_batch_allocation,
    get_all_batch_allocations,
    get_batch_allocation,
    get_batch_progress,
    get_location_directory,
    remove_from_batch_allocation,
    zero_all_stock,
    zero_default_stock,
    zero_stock_for_batch,
)
from packtrack.services.expected_inventory import sync_expected_from_batch_allocations
from packtrack.utils.cache import STOCK_VIEW_PREFIXES, ReadCache, get_cache

router = APIRouter()


@router.get("", response_model=list[BatchAllocationOut])
async def list_allocations(db: AsyncSession = Depends(get_db)):
    return await get_all_batch_allocations(db)


@router.get("/locations", response_model=list[LocationSummary])
async def list_locations(
    db: AsyncSession = Depends(get_db),
    cache: ReadCache = Depends(get_cache),
):
    cached = await cache.get_json("locations")
    if cached is not None:
        return cached
    directory = await get_location_directory(db)
    await cache.set_json("locations", directory)
    return directory


@router.get("/progress", response_model=list[BatchProgressOut])
async def batch_progress(
    db: AsyncSession = Depends(get_db),
    cache: ReadCache = Depends(get_cache),
):
    cached = await cache.get_json("progress")
    if cached is not None:
        return cached
    progress = await get_batch_progress(db)
    await cache.set_json("progress", progress)
    return progress


@router.post("/zero", response_model=ZeroStockResult)
async def zero_stock(
    body: ZeroStockRequest,
    db: AsyncSession = Depends(get_db),
    cache: ReadCache = Depends(get_cache),
):
    """Irreversible administrative reset of ledger and projection."""
    if body.scope == "batch":
        if not body.batch_id:
            raise ValidationError("batch_id is required for scope 'batch'", operation="zero stock")
        result = await zero_stock_for_batch(db, body.batch_id, body.updated_by)
    elif body.scope == "default":
        result = await zero_default_stock(db, body.updated_by)
    else:
        result = await zero_all_stock(db, body.updated_by)

    await cache.invalidate(*STOCK_VIEW_PREFIXES)
    return result


@router.get("/{sku}/{location}", response_model=BatchAllocationOut)
async def get_allocation(sku: str, location: str, db: AsyncSession = Depends(get_db)):
    allocation = await get_batch_allocation(db, sku, location)
    if allocation is None:
        raise NotFoundError(
            f"No batch allocation for {sku} at {location}", operation="get batch allocation"
        )
    return allocation


@router.post("/{sku}/{location}/add", response_model=BatchAllocationOut)
async def add_allocation(
    sku: str,
    location: str,
    body: AllocationChangeRequest,
    db: AsyncSession = Depends(get_db),
    cache: ReadCache = Depends(get_cache),
):
    row = BatchAllocationOut.model_validate(
        await add_to_batch_allocation(db, sku, location, body.batch_id, body.quantity)
    )
    await sync_expected_from_batch_allocations(db, sku, location, row.total_allocated)
    await cache.invalidate(*STOCK_VIEW_PREFIXES)
    return row


@router.post("/{sku}/{location}/remove", response_model=BatchAllocationOut)
async def remove_allocation(
    sku: str,
    location: str,
    body: AllocationChangeRequest,
    db: AsyncSession = Depends(get_db),
    cache: ReadCache = Depends(get_cache),
):
    row = BatchAllocationOut.model_validate(
        await remove_from_batch_allocation(db, sku, location, body.batch_id, body.quantity)
    )
    await sync_expected_from_batch_allocations(db, sku, location, row.total_allocated)
    await cache.invalidate(*STOCK_VIEW_PREFIXES)
    return row
