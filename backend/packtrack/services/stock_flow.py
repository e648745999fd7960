"""Orchestrated stock changes — ledger, transaction log, projection.

Every flow runs the same forward-only sequence:

  1. validate (raise before anything is written)
  2. mutate the batch allocation ledger       ← must succeed
  3. append the transaction log entry         ← best effort
  4. resync expected_inventory                ← best effort

Only step 2 decides whether the change happened.  Failures in steps 3-4
are logged and returned as ``warnings``; they are never rolled back into
the ledger, and a later reconciliation run repairs a stale projection.

Each step commits on its own, and a rollback expires the session's ORM
state, so ledger rows are snapshotted into schemas immediately after the
ledger commit.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from packtrack.config import settings
from packtrack.errors import PackTrackError, ValidationError
from packtrack.models.batch_allocation import DEFAULT_BATCH
from packtrack.models.transaction import TransactionType
from packtrack.models.waste_report import WasteReport
from packtrack.schemas.allocation import BatchAllocationOut
from packtrack.schemas.packing_box import PackingBoxOut
from packtrack.schemas.stock import (
    ScanInRequest,
    StockAdjustmentRequest,
    StockChangeResult,
    TransferRequest,
    WasteReportRequest,
)
from packtrack.schemas.transaction import TransactionCreate
from packtrack.services.batch_allocation import (
    add_to_batch_allocation,
    get_batch_allocation,
    remove_from_batch_allocation,
    remove_from_largest_batches,
    set_batch_allocation,
)
from packtrack.services.expected_inventory import sync_expected_from_batch_allocations
from packtrack.services.packing_boxes import apply_scan
from packtrack.services.transactions import record_transaction

logger = logging.getLogger(__name__)


# ── Best-effort steps ────────────────────────────────────────

async def _log_transaction(
    db: AsyncSession, data: TransactionCreate, result: StockChangeResult,
) -> str | None:
    try:
        txn = await record_transaction(db, data)
    except PackTrackError as e:
        logger.error(
            f"Transaction log failed after ledger update: {e.message}",
            extra={"sku": data.sku, "location": data.location},
        )
        result.warnings.append(f"Transaction log failed: {e.message}")
        return None
    result.transaction_ids.append(txn.id)
    return txn.id


async def _sync(
    db: AsyncSession,
    sku: str,
    location: str,
    known_total: int,
    item_name: str | None,
    result: StockChangeResult,
) -> None:
    amount = await sync_expected_from_batch_allocations(
        db, sku, location, known_total=known_total, item_name=item_name,
    )
    result.synced_amounts[location] = amount
    if amount is None:
        result.warnings.append(f"Expected inventory sync failed for {sku} @ {location}")


# ── Flows ────────────────────────────────────────────────────

async def adjust_stock(db: AsyncSession, req: StockAdjustmentRequest) -> StockChangeResult:
    """Set, add to, or subtract from one batch's stock at one location."""
    current = await get_batch_allocation(db, req.sku, req.location)
    current_qty = int((current.allocations or {}).get(req.batch_id, 0)) if current else 0

    if req.mode == "SET_TO":
        delta = req.quantity - current_qty
    elif req.mode == "ADD":
        delta = req.quantity
    else:
        delta = -req.quantity

    if delta == 0:
        raise ValidationError(
            "Adjustment does not change stock", operation="adjust stock",
            context={"sku": req.sku, "location": req.location, "batch_id": req.batch_id},
        )
    if current_qty + delta < 0:
        raise ValidationError(
            f"Adjustment would leave batch {req.batch_id} negative "
            f"({current_qty} {delta:+d})",
            operation="adjust stock",
        )

    if req.mode == "SET_TO":
        row = await set_batch_allocation(
            db, req.sku, req.location, req.batch_id, req.quantity, req.performed_by,
        )
    elif delta > 0:
        row = await add_to_batch_allocation(db, req.sku, req.location, req.batch_id, delta)
    else:
        row = await remove_from_batch_allocation(db, req.sku, req.location, req.batch_id, -delta)
    allocation = BatchAllocationOut.model_validate(row)

    result = StockChangeResult(allocation=allocation)
    notes = f"[{req.mode}] {req.reason}"
    if req.notes:
        notes = f"{notes} | {req.notes}"
    await _log_transaction(db, TransactionCreate(
        sku=req.sku,
        item_name=req.item_name,
        amount=delta,
        previous_amount=allocation.total_allocated - delta,
        location=req.location,
        transaction_type=TransactionType.ADJUSTMENT,
        performed_by=req.performed_by,
        notes=notes,
        batch_id=req.batch_id,
    ), result)
    await _sync(db, req.sku, req.location, allocation.total_allocated, req.item_name, result)

    logger.info(
        "Stock adjusted: %s @ %s batch %s %+d by %s",
        req.sku, req.location, req.batch_id, delta, req.performed_by,
    )
    return result


def _waste_notes(req: WasteReportRequest) -> str:
    notes = f"[{req.type}] {req.reason or 'No reason given'}"
    if req.rejection_reasons:
        notes += f" | Rejection: {', '.join(req.rejection_reasons)}"
    return notes


async def report_waste(db: AsyncSession, req: WasteReportRequest) -> StockChangeResult:
    """Write off wasted, lost or defective units.

    With a batch the units come from that batch only; without one they
    are taken from the largest batches at the location first.
    """
    if req.batch_id:
        row = await remove_from_batch_allocation(
            db, req.sku, req.location, req.batch_id, req.quantity,
        )
        taken = {req.batch_id: req.quantity}
    else:
        row, taken = await remove_from_largest_batches(db, req.sku, req.location, req.quantity)
    allocation = BatchAllocationOut.model_validate(row)

    result = StockChangeResult(allocation=allocation)
    notes = _waste_notes(req)
    batch_label = req.batch_id or (next(iter(taken)) if len(taken) == 1 else None)
    if not req.batch_id and len(taken) > 1:
        notes += " | Batches: " + ", ".join(f"{b}={q}" for b, q in taken.items())

    transaction_id = await _log_transaction(db, TransactionCreate(
        sku=req.sku,
        item_name=req.item_name,
        amount=-req.quantity,
        previous_amount=allocation.total_allocated + req.quantity,
        location=req.location,
        transaction_type=TransactionType.ADJUSTMENT,
        performed_by=req.performed_by,
        notes=notes,
        batch_id=batch_label,
    ), result)

    try:
        db.add(WasteReport(
            sku=req.sku,
            item_name=req.item_name,
            quantity=req.quantity,
            location=req.location,
            type=req.type,
            reason=req.reason,
            detailed_reason=notes,
            batch_id=batch_label,
            transaction_id=transaction_id,
            reported_by=req.performed_by,
        ))
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to store waste report for {req.sku} @ {req.location}: {e}")
        result.warnings.append("Waste report could not be stored")

    await _sync(db, req.sku, req.location, allocation.total_allocated, req.item_name, result)

    logger.info(
        "%s reported: %d x %s @ %s by %s (batches %s)",
        req.type, req.quantity, req.sku, req.location, req.performed_by, taken,
    )
    return result


async def transfer_stock(db: AsyncSession, req: TransferRequest) -> StockChangeResult:
    """Move a batch quantity from one location to another."""
    if req.from_location == req.to_location:
        raise ValidationError(
            "Source and destination locations must differ", operation="transfer stock",
        )

    source = BatchAllocationOut.model_validate(await remove_from_batch_allocation(
        db, req.sku, req.from_location, req.batch_id, req.quantity,
    ))
    try:
        destination = BatchAllocationOut.model_validate(await add_to_batch_allocation(
            db, req.sku, req.to_location, req.batch_id, req.quantity,
        ))
    except PackTrackError:
        # Put the units back so a failed transfer does not lose stock
        logger.error(
            "Transfer of %d %s to %s failed, restoring source %s",
            req.quantity, req.sku, req.to_location, req.from_location,
        )
        await add_to_batch_allocation(
            db, req.sku, req.from_location, req.batch_id, req.quantity,
        )
        raise

    result = StockChangeResult(allocation=destination)
    for location, amount, total in (
        (req.from_location, -req.quantity, source.total_allocated),
        (req.to_location, req.quantity, destination.total_allocated),
    ):
        await _log_transaction(db, TransactionCreate(
            sku=req.sku,
            item_name=req.item_name,
            amount=amount,
            previous_amount=total - amount,
            location=location,
            from_location=req.from_location,
            to_location=req.to_location,
            transaction_type=(
                TransactionType.TRANSFER_OUT if amount < 0 else TransactionType.TRANSFER_IN
            ),
            performed_by=req.performed_by,
            notes=req.notes,
            batch_id=req.batch_id,
        ), result)

    await _sync(db, req.sku, req.from_location, source.total_allocated, req.item_name, result)
    await _sync(db, req.sku, req.to_location, destination.total_allocated, req.item_name, result)

    logger.info(
        f"Transferred {req.quantity} {req.sku} (batch {req.batch_id}) "
        f"{req.from_location} → {req.to_location}"
    )
    return result


async def scan_in(db: AsyncSession, req: ScanInRequest) -> StockChangeResult:
    """Receive scanned units into a location.

    Production-batch scans with a case number are first applied to the
    packing box; a strict-mode rejection there stops the flow before the
    ledger is touched.  ``DEFAULT`` scans have no box.
    """
    location = req.location or settings.default_receiving_location

    box = None
    if req.batch_id != DEFAULT_BATCH and req.case_no:
        box = PackingBoxOut.model_validate(await apply_scan(
            db, req.batch_id, req.case_no, req.sku, req.quantity,
            req.performed_by, source="scan_in",
        ))

    allocation = BatchAllocationOut.model_validate(await add_to_batch_allocation(
        db, req.sku, location, req.batch_id, req.quantity,
    ))

    result = StockChangeResult(allocation=allocation, box=box)
    notes = f"Scan-in, case {req.case_no}" if req.case_no else "Scan-in"
    await _log_transaction(db, TransactionCreate(
        sku=req.sku,
        item_name=req.item_name,
        amount=req.quantity,
        previous_amount=allocation.total_allocated - req.quantity,
        location=location,
        to_location=location,
        transaction_type=TransactionType.TRANSFER_IN,
        performed_by=req.performed_by,
        notes=notes,
        batch_id=req.batch_id,
    ), result)
    await _sync(db, req.sku, location, allocation.total_allocated, req.item_name, result)
    return result
