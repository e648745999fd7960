"""Batch allocation ledger — per-batch stock at each (SKU, location).

Every mutation is a single-row read-modify-write: the row is read with
``SELECT ... FOR UPDATE`` and written back in the same transaction, so
concurrent scans against the same SKU/location are serialized by the
database rather than by the application.  ``total_allocated`` is
recomputed from ``allocations`` before every write.

The ledger never touches the expected_inventory projection or the
transaction log; orchestrating callers (services.stock_flow) do that.
The clean-stock operations at the bottom are the exception: they are
administrative resets that resync both layers themselves.
"""

import logging
from collections import defaultdict
from typing import Callable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from packtrack.errors import InsufficientStockError, PackTrackError, map_store_error
from packtrack.models.batch import Batch
from packtrack.models.batch_allocation import (
    DEFAULT_BATCH,
    BatchAllocation,
    allocation_doc_id,
)

logger = logging.getLogger(__name__)

AllocationMutator = Callable[[dict[str, int]], dict[str, int]]


def total_of(allocations: dict[str, int]) -> int:
    return sum(int(q) for q in allocations.values())


async def _locked_allocation(db: AsyncSession, doc_id: str) -> BatchAllocation | None:
    result = await db.execute(
        select(BatchAllocation)
        .where(BatchAllocation.id == doc_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _mutate_allocation(
    db: AsyncSession,
    sku: str,
    location: str,
    mutate: AllocationMutator,
    *,
    operation: str,
    create: bool = True,
) -> BatchAllocation | None:
    """Apply ``mutate`` to one ledger row inside its own transaction.

    Returns the committed row, or None when the row does not exist and
    ``create`` is False.  Validation errors raised by ``mutate`` roll
    back (releasing the row lock) and propagate unchanged.
    """
    doc_id = allocation_doc_id(sku, location)
    context = {"sku": sku, "location": location}

    # Two attempts only to absorb a concurrent first insert of the row
    for attempt in (1, 2):
        try:
            row = await _locked_allocation(db, doc_id)
            if row is None:
                if not create:
                    await db.rollback()
                    return None
                row = BatchAllocation(
                    id=doc_id, sku=sku, location=location,
                    allocations={}, total_allocated=0,
                )
                db.add(row)

            updated = mutate(dict(row.allocations or {}))
            row.allocations = updated
            row.total_allocated = total_of(updated)
            await db.commit()
            return row
        except PackTrackError:
            await db.rollback()
            raise
        except IntegrityError as e:
            await db.rollback()
            if attempt == 2:
                raise map_store_error(e, operation, context) from e
            logger.info(f"Allocation {doc_id} created concurrently, retrying as update")
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Error during {operation} for {doc_id}: {e}")
            raise map_store_error(e, operation, context) from e
    return None  # unreachable


# ── Reads ────────────────────────────────────────────────────

async def get_batch_allocation(
    db: AsyncSession, sku: str, location: str,
) -> BatchAllocation | None:
    try:
        return await db.get(
            BatchAllocation, allocation_doc_id(sku, location), populate_existing=True
        )
    except SQLAlchemyError as e:
        raise map_store_error(e, "get batch allocation", {"sku": sku, "location": location}) from e


async def get_all_batch_allocations(db: AsyncSession) -> list[BatchAllocation]:
    """Full ledger scan, most recently updated first."""
    try:
        result = await db.execute(
            select(BatchAllocation).order_by(BatchAllocation.last_updated.desc())
        )
    except SQLAlchemyError as e:
        raise map_store_error(e, "get batch allocations") from e
    allocations = list(result.scalars().all())
    logger.debug("Retrieved %d batch allocations", len(allocations))
    return allocations


# ── Mutations ────────────────────────────────────────────────

async def add_to_batch_allocation(
    db: AsyncSession,
    sku: str,
    location: str,
    batch_id: str,
    quantity: int,
) -> BatchAllocation:
    """Increment ``allocations[batch_id]`` by ``quantity``.

    Creates the (SKU, location) row on first use.  No sign check is made
    here; callers pass positive deltas for add semantics.
    """
    def _add(allocations: dict[str, int]) -> dict[str, int]:
        allocations[batch_id] = int(allocations.get(batch_id, 0)) + quantity
        return allocations

    row = await _mutate_allocation(
        db, sku, location, _add, operation="add to batch allocation",
    )
    logger.info(
        f"Added {quantity} of {sku} to batch {batch_id} at {location}",
        extra={"sku": sku, "location": location, "batch_id": batch_id,
               "total_allocated": row.total_allocated},
    )
    return row


async def remove_from_batch_allocation(
    db: AsyncSession,
    sku: str,
    location: str,
    batch_id: str,
    quantity: int,
) -> BatchAllocation:
    """Decrement ``allocations[batch_id]`` by ``quantity``.

    The availability check runs against the locked read, so two
    concurrent removals can never drive a batch below zero.  A batch
    whose quantity reaches zero is dropped from the mapping.

    Raises:
        InsufficientStockError: ``quantity`` exceeds the batch's allocation
            (including when the row does not exist).  Nothing is written.
    """
    def _remove(allocations: dict[str, int]) -> dict[str, int]:
        available = int(allocations.get(batch_id, 0))
        if quantity > available:
            raise InsufficientStockError(
                batch_id, available, quantity,
                operation="remove from batch allocation",
                context={"sku": sku, "location": location},
            )
        remaining = available - quantity
        if remaining > 0:
            allocations[batch_id] = remaining
        else:
            allocations.pop(batch_id, None)
        return allocations

    row = await _mutate_allocation(
        db, sku, location, _remove,
        operation="remove from batch allocation", create=False,
    )
    if row is None:
        raise InsufficientStockError(
            batch_id, 0, quantity,
            operation="remove from batch allocation",
            context={"sku": sku, "location": location},
        )
    logger.info(
        f"Removed {quantity} of {sku} from batch {batch_id} at {location}",
        extra={"sku": sku, "location": location, "batch_id": batch_id,
               "total_allocated": row.total_allocated},
    )
    return row


async def remove_from_largest_batches(
    db: AsyncSession,
    sku: str,
    location: str,
    quantity: int,
) -> tuple[BatchAllocation, dict[str, int]]:
    """Remove ``quantity`` units spread over batches, largest first.

    Used when the caller does not know which batch the units came from
    (waste and loss reports).  Runs as one locked mutation, so either the
    full quantity is taken or nothing is.

    Returns:
        The committed row and the quantity taken from each batch.
    """
    taken: dict[str, int] = {}

    def _remove(allocations: dict[str, int]) -> dict[str, int]:
        available = total_of(allocations)
        if quantity > available:
            raise InsufficientStockError(
                "(all batches)", available, quantity,
                operation="remove from largest batches",
                context={"sku": sku, "location": location},
            )
        taken.clear()
        remaining = quantity
        for batch_id, amount in sorted(allocations.items(), key=lambda kv: -int(kv[1])):
            if remaining <= 0:
                break
            take = min(int(amount), remaining)
            if take <= 0:
                continue
            taken[batch_id] = take
            remaining -= take
            if int(amount) - take > 0:
                allocations[batch_id] = int(amount) - take
            else:
                allocations.pop(batch_id)
        return allocations

    row = await _mutate_allocation(
        db, sku, location, _remove,
        operation="remove from largest batches", create=False,
    )
    if row is None:
        raise InsufficientStockError(
            "(all batches)", 0, quantity,
            operation="remove from largest batches",
            context={"sku": sku, "location": location},
        )
    logger.info(
        f"Removed {quantity} of {sku} at {location} across batches {taken}",
        extra={"sku": sku, "location": location, "total_allocated": row.total_allocated},
    )
    return row, dict(taken)


async def set_batch_allocation(
    db: AsyncSession,
    sku: str,
    location: str,
    batch_id: str,
    new_quantity: int,
    updated_by: str | None = None,
) -> BatchAllocation:
    """Set one batch's quantity to an absolute value; zero or less drops the entry."""
    def _set(allocations: dict[str, int]) -> dict[str, int]:
        if new_quantity > 0:
            allocations[batch_id] = new_quantity
        else:
            allocations.pop(batch_id, None)
        return allocations

    row = await _mutate_allocation(
        db, sku, location, _set, operation="update batch allocation",
    )
    logger.info(
        "Batch allocation set: %s @ %s batch %s = %d (total %d) by %s",
        sku, location, batch_id, max(0, new_quantity), row.total_allocated, updated_by,
    )
    return row


# ── Analysis ─────────────────────────────────────────────────

async def get_batch_progress(db: AsyncSession) -> list[dict]:
    """Allocated units per production batch against its packing list."""
    allocations = await get_all_batch_allocations(db)

    batch_totals: dict[str, int] = defaultdict(int)
    for allocation in allocations:
        for batch_id, amount in (allocation.allocations or {}).items():
            if batch_id != DEFAULT_BATCH:
                batch_totals[batch_id] += int(amount)

    expected: dict[str, int] = {}
    if batch_totals:
        result = await db.execute(
            select(Batch).where(Batch.batch_id.in_(list(batch_totals)))
        )
        for batch in result.scalars().all():
            expected[batch.batch_id] = sum(int(i.get("quantity", 0)) for i in batch.items or [])

    progress = []
    for batch_id in sorted(batch_totals):
        total_expected = expected.get(batch_id, 0)
        total_allocated = batch_totals[batch_id]
        pct = round(total_allocated / total_expected * 100, 2) if total_expected else 0.0
        progress.append({
            "batch_id": batch_id,
            "total_expected": total_expected,
            "total_allocated": total_allocated,
            "completion_percentage": pct,
        })
    return progress


async def get_location_directory(db: AsyncSession) -> list[dict]:
    """Locations that hold (or held) stock, with SKU count and units."""
    allocations = await get_all_batch_allocations(db)

    directory: dict[str, dict] = {}
    for allocation in allocations:
        entry = directory.setdefault(
            allocation.location,
            {"location": allocation.location, "sku_count": 0, "total_units": 0},
        )
        if allocation.total_allocated > 0:
            entry["sku_count"] += 1
            entry["total_units"] += allocation.total_allocated

    # logistics first, then production zones in numeric order
    def _order(loc: str):
        if loc == "logistics":
            return (0, 0, loc)
        suffix = loc.rsplit("_", 1)[-1]
        return (1, int(suffix) if suffix.isdigit() else 0, loc)

    return [directory[loc] for loc in sorted(directory, key=_order)]


# ── Clean stock ──────────────────────────────────────────────

async def _zero_where(
    db: AsyncSession,
    select_qty: Callable[[BatchAllocation], int],
    mutate: AllocationMutator,
    operation: str,
) -> dict:
    from packtrack.services.expected_inventory import sync_expected_from_batch_allocations

    skus_affected = 0
    total_zeroed = 0
    targets = [
        (a.sku, a.location)
        for a in await get_all_batch_allocations(db)
        if select_qty(a) > 0
    ]
    for sku, location in targets:
        before: dict[str, int] = {}

        def _capture_and_mutate(allocations: dict[str, int]) -> dict[str, int]:
            before["total"] = total_of(allocations)
            return mutate(allocations)

        row = await _mutate_allocation(
            db, sku, location, _capture_and_mutate, operation=operation, create=False,
        )
        if row is None:
            continue
        zeroed = before["total"] - row.total_allocated
        if zeroed <= 0:
            continue
        skus_affected += 1
        total_zeroed += zeroed
        await sync_expected_from_batch_allocations(db, sku, location, row.total_allocated)

    return {"skus_affected": skus_affected, "total_zeroed": total_zeroed}


async def zero_stock_for_batch(db: AsyncSession, batch_id: str, updated_by: str) -> dict:
    """Drop one batch from every ledger row and resync the projection."""
    def _drop(allocations: dict[str, int]) -> dict[str, int]:
        allocations.pop(batch_id, None)
        return allocations

    result = await _zero_where(
        db, lambda a: int((a.allocations or {}).get(batch_id, 0)), _drop,
        operation="zero stock for batch",
    )
    logger.info("Zeroed stock for batch %s by %s: %s", batch_id, updated_by, result)
    return result


async def zero_default_stock(db: AsyncSession, updated_by: str) -> dict:
    """Drop all stock not attributed to a production batch."""
    return await zero_stock_for_batch(db, DEFAULT_BATCH, updated_by)


async def zero_all_stock(db: AsyncSession, updated_by: str) -> dict:
    """Reset every ledger row to empty.  Irreversible."""
    result = await _zero_where(
        db, lambda a: a.total_allocated, lambda _allocations: {},
        operation="zero all stock",
    )
    logger.warning("ZEROED ALL STOCK by %s: %s", updated_by, result)
    return result
