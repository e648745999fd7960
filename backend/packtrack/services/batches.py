"""Production batches and the default-batch preference.

Activating a batch (status ``in_progress``) freezes its packing list;
the set of activated batches is also what operators may pick as the
default batch for incoming scans.
"""

import logging
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from packtrack.errors import (
    AlreadyExistsError,
    BatchLockedError,
    NotFoundError,
    ValidationError,
    map_store_error,
)
from packtrack.models.batch import BATCH_ACTIVE_STATUS, Batch, BatchConfig
from packtrack.models.batch_allocation import DEFAULT_BATCH
from packtrack.models.packing_box import PackingBox, ScanEvent
from packtrack.schemas.batch import BatchConfigOut, BatchCreate

logger = logging.getLogger(__name__)

CONFIG_ID = "default"


# ── Batches ──────────────────────────────────────────────────

async def create_batch(db: AsyncSession, data: BatchCreate) -> Batch:
    if await db.get(Batch, data.batch_id) is not None:
        raise AlreadyExistsError(
            f"Batch {data.batch_id} already exists", operation="create batch"
        )

    batch = Batch(
        batch_id=data.batch_id,
        name=data.name or f"Batch {data.batch_id}",
        items=[item.model_dump() for item in data.items],
        car_vins=list(data.car_vins),
        car_type=data.car_type,
        total_cars=data.total_cars or len(data.car_vins),
        status=data.status,
    )
    try:
        db.add(batch)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise map_store_error(e, "create batch", {"batch_id": data.batch_id}) from e

    logger.info(f"Created batch {batch.batch_id} ({len(batch.items)} packing-list lines)")
    return batch


async def get_batch(db: AsyncSession, batch_id: str) -> Batch:
    try:
        batch = await db.get(Batch, batch_id, populate_existing=True)
    except SQLAlchemyError as e:
        raise map_store_error(e, "get batch", {"batch_id": batch_id}) from e
    if batch is None:
        raise NotFoundError(f"Batch not found: {batch_id}", operation="get batch")
    return batch


async def list_batches(db: AsyncSession, status: str | None = None) -> list[Batch]:
    stmt = select(Batch).order_by(Batch.batch_id)
    if status:
        stmt = stmt.where(Batch.status == status)
    try:
        result = await db.execute(stmt)
    except SQLAlchemyError as e:
        raise map_store_error(e, "list batches") from e
    return list(result.scalars().all())


async def activate_batch(db: AsyncSession, batch_id: str) -> Batch:
    """Move a batch to ``in_progress``; its packing list becomes read-only."""
    batch = await get_batch(db, batch_id)
    if batch.status == BATCH_ACTIVE_STATUS:
        return batch
    if batch.status != "planning":
        raise ValidationError(
            f"Only planning batches can be activated (batch {batch_id} is {batch.status})",
            operation="activate batch",
        )

    batch.status = BATCH_ACTIVE_STATUS
    batch.updated_at = datetime.utcnow()
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise map_store_error(e, "activate batch", {"batch_id": batch_id}) from e

    logger.info(f"Batch {batch_id} activated")
    return batch


async def delete_batch(db: AsyncSession, batch_id: str) -> None:
    """Delete a batch with its packing boxes and their scan history.

    Ledger stock attributed to the batch is left alone; use the
    clean-stock operations for that.
    """
    batch = await get_batch(db, batch_id)
    if batch.is_locked:
        raise BatchLockedError(batch_id, operation="delete batch")

    box_ids = select(PackingBox.id).where(PackingBox.batch_id == batch_id)
    try:
        await db.execute(delete(ScanEvent).where(ScanEvent.box_id.in_(box_ids)))
        await db.execute(delete(PackingBox).where(PackingBox.batch_id == batch_id))
        await db.delete(batch)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise map_store_error(e, "delete batch", {"batch_id": batch_id}) from e

    logger.info(f"Deleted batch {batch_id} and its packing boxes")


# ── Default batch preference ─────────────────────────────────

async def get_activated_batches(db: AsyncSession) -> list[str]:
    try:
        result = await db.execute(
            select(Batch.batch_id)
            .where(Batch.status == BATCH_ACTIVE_STATUS)
            .order_by(Batch.batch_id)
        )
    except SQLAlchemyError as e:
        raise map_store_error(e, "get activated batches") from e
    batches = [row[0] for row in result.all()]
    logger.debug("Found %d activated batches", len(batches))
    return batches


async def get_batch_config(db: AsyncSession) -> BatchConfigOut:
    """The default batch for new stock plus the batches one may choose.

    A stored preference only applies while that batch is still activated;
    otherwise the first activated batch is used, then ``DEFAULT``.
    """
    available = await get_activated_batches(db)
    stored = await db.get(BatchConfig, CONFIG_ID, populate_existing=True)

    active = available[0] if available else DEFAULT_BATCH
    if stored and stored.active_batch in available:
        active = stored.active_batch

    return BatchConfigOut(
        active_batch=active,
        available_batches=available,
        updated_by=stored.updated_by if stored else "system",
        updated_at=stored.updated_at if stored else None,
    )


async def save_batch_config(db: AsyncSession, active_batch: str, updated_by: str) -> BatchConfigOut:
    available = await get_activated_batches(db)
    if active_batch != DEFAULT_BATCH and active_batch not in available:
        raise ValidationError(
            f"Batch {active_batch} is not activated",
            operation="save batch config",
        )

    try:
        config = await db.get(BatchConfig, CONFIG_ID, populate_existing=True)
        if config is None:
            config = BatchConfig(id=CONFIG_ID)
            db.add(config)
        config.active_batch = active_batch
        config.updated_by = updated_by
        config.updated_at = datetime.utcnow()
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise map_store_error(e, "save batch config") from e

    logger.info(f"Default batch preference set to {active_batch} by {updated_by}")
    return await get_batch_config(db)
