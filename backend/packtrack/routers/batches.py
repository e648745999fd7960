"""Production batch router.

Endpoints:
    GET    /api/batches                    List batches (optional ?status=)
    POST   /api/batches                    Create a batch
    GET    /api/batches/config/default     Default batch for incoming stock
    PUT    /api/batches/config/default     Change the default batch
    GET    /api/batches/{batch_id}         Single batch
    DELETE /api/batches/{batch_id}         Delete a batch and its packing boxes
    POST   /api/batches/{batch_id}/activate  Start the batch (freezes its packing list)
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from packtrack.database import get_db
from packtrack.schemas.batch import BatchConfigOut, BatchConfigUpdate, BatchCreate, BatchOut
from packtrack.services import batches as batch_service
from packtrack.utils.cache import ReadCache, get_cache

router = APIRouter()


@router.get("", response_model=list[BatchOut])
async def list_batches(
    batch_status: str | None = Query(None, alias="status", description="Filter by status"),
    db: AsyncSession = Depends(get_db),
):
    return await batch_service.list_batches(db, batch_status)


@router.post("", response_model=BatchOut, status_code=status.HTTP_201_CREATED)
async def create_batch(
    body: BatchCreate,
    db: AsyncSession = Depends(get_db),
    cache: ReadCache = Depends(get_cache),
):
    batch = await batch_service.create_batch(db, body)
    await cache.invalidate("progress")
    return batch


# ── Default batch preference ─────────────────────────────────

@router.get("/config/default", response_model=BatchConfigOut)
async def get_default_batch(db: AsyncSession = Depends(get_db)):
    return await batch_service.get_batch_config(db)


@router.put("/config/default", response_model=BatchConfigOut)
async def set_default_batch(body: BatchConfigUpdate, db: AsyncSession = Depends(get_db)):
    return await batch_service.save_batch_config(db, body.active_batch, body.updated_by)


# ── Single batch ─────────────────────────────────────────────

@router.get("/{batch_id}", response_model=BatchOut)
async def get_batch(batch_id: str, db: AsyncSession = Depends(get_db)):
    return await batch_service.get_batch(db, batch_id)


@router.delete("/{batch_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_batch(
    batch_id: str,
    db: AsyncSession = Depends(get_db),
    cache: ReadCache = Depends(get_cache),
):
    await batch_service.delete_batch(db, batch_id)
    await cache.invalidate("progress")


@router.post("/{batch_id}/activate", response_model=BatchOut)
async def activate_batch(batch_id: str, db: AsyncSession = Depends(get_db)):
    return await batch_service.activate_batch(db, batch_id)
