"""Expected inventory projection — Layer 1, synced from the ledger.

``sync_expected_from_batch_allocations`` is the only write path used by
stock flows.  It overwrites (never increments) the projection row for one
(SKU, location) with the ledger total.  Sync is best effort: failures are
logged and swallowed, because the ledger mutation that triggered it has
already committed and is authoritative.

``reconcile_expected_inventory`` compares the whole projection with the
ledger and can rebuild it; the background scheduler runs it daily.
"""

import logging
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from packtrack.errors import PackTrackError, map_store_error
from packtrack.models.batch_allocation import allocation_doc_id
from packtrack.models.expected_inventory import ExpectedInventory
from packtrack.services.batch_allocation import (
    get_all_batch_allocations,
    get_batch_allocation,
    total_of,
)

logger = logging.getLogger(__name__)

SYNC_ACTOR = "SYSTEM_SYNC"
RECONCILIATION_ACTOR = "SYSTEM_RECONCILIATION"


async def _write_entry(
    db: AsyncSession,
    sku: str,
    location: str,
    amount: int,
    counted_by: str,
    item_name: str | None = None,
) -> None:
    """Overwrite one projection row; a zero amount removes the row."""
    doc_id = allocation_doc_id(sku, location)
    entry = await db.get(ExpectedInventory, doc_id, populate_existing=True)

    if amount > 0:
        if entry is None:
            db.add(ExpectedInventory(
                id=doc_id,
                sku=sku,
                item_name=item_name or sku,
                location=location,
                amount=amount,
                counted_by=counted_by,
                timestamp=datetime.utcnow(),
            ))
        else:
            entry.amount = amount
            entry.counted_by = counted_by
            entry.timestamp = datetime.utcnow()
            if item_name:
                entry.item_name = item_name
    elif entry is not None:
        await db.delete(entry)


async def sync_expected_from_batch_allocations(
    db: AsyncSession,
    sku: str,
    location: str,
    known_total: int | None = None,
    item_name: str | None = None,
) -> int | None:
    """Resync one (SKU, location) projection row from the ledger.

    Args:
        known_total: total the caller already has from the ledger write;
            skips the re-read when given.

    Returns:
        The amount written, or None if the sync failed (logged, not raised).
    """
    try:
        if known_total is None:
            allocation = await get_batch_allocation(db, sku, location)
            final_amount = total_of(allocation.allocations or {}) if allocation else 0
        else:
            final_amount = known_total

        await _write_entry(db, sku, location, final_amount, SYNC_ACTOR, item_name)
        await db.commit()
    except (PackTrackError, SQLAlchemyError) as e:
        await db.rollback()
        logger.error(
            f"Layer sync failed for {sku} @ {location}: {e}",
            extra={"sku": sku, "location": location},
            exc_info=True,
        )
        return None

    logger.debug("Synced expected inventory %s @ %s = %d", sku, location, final_amount)
    return final_amount


# ── Reads ────────────────────────────────────────────────────

async def get_expected_inventory(
    db: AsyncSession, location: str | None = None,
) -> list[ExpectedInventory]:
    stmt = select(ExpectedInventory).order_by(
        ExpectedInventory.location, ExpectedInventory.sku
    )
    if location:
        stmt = stmt.where(ExpectedInventory.location == location)
    try:
        result = await db.execute(stmt)
    except SQLAlchemyError as e:
        raise map_store_error(e, "get expected inventory") from e
    return list(result.scalars().all())


async def get_expected_entry(
    db: AsyncSession, sku: str, location: str,
) -> ExpectedInventory | None:
    try:
        return await db.get(
            ExpectedInventory, allocation_doc_id(sku, location), populate_existing=True
        )
    except SQLAlchemyError as e:
        raise map_store_error(e, "get expected inventory entry") from e


# ── Reconciliation ───────────────────────────────────────────

async def reconcile_expected_inventory(db: AsyncSession, auto_fix: bool = False) -> dict:
    """Compare the projection against ledger totals.

    Reports three kinds of mismatch: a ledger total with no projection
    row, an amount difference, and a projection row with no ledger row.
    With ``auto_fix`` the projection is rebuilt from the ledger.
    """
    calculated: dict[str, dict] = {}
    for allocation in await get_all_batch_allocations(db):
        calculated[allocation.id] = {
            "sku": allocation.sku,
            "location": allocation.location,
            "amount": total_of(allocation.allocations or {}),
        }

    current = {e.id: e for e in await get_expected_inventory(db)}

    mismatches: list[dict] = []
    matches = 0
    for doc_id, calc in calculated.items():
        entry = current.get(doc_id)
        stored = entry.amount if entry else 0
        if stored == calc["amount"]:
            matches += 1
            continue
        mismatches.append({
            "sku": calc["sku"],
            "location": calc["location"],
            "expected_amount": stored,
            "calculated_amount": calc["amount"],
            "diff": calc["amount"] - stored,
        })

    for doc_id, entry in current.items():
        if doc_id not in calculated:
            mismatches.append({
                "sku": entry.sku,
                "location": entry.location,
                "expected_amount": entry.amount,
                "calculated_amount": 0,
                "diff": -entry.amount,
            })

    logger.info(
        "Inventory reconciliation: %d ledger rows, %d matches, %d mismatches",
        len(calculated), matches, len(mismatches),
    )
    for m in mismatches:
        logger.info(
            "  %s at %s: expected=%d calculated=%d diff=%+d",
            m["sku"], m["location"], m["expected_amount"],
            m["calculated_amount"], m["diff"],
        )

    fixed = False
    if auto_fix and mismatches:
        try:
            orphan_ids = [doc_id for doc_id in current if doc_id not in calculated]
            if orphan_ids:
                await db.execute(
                    delete(ExpectedInventory).where(ExpectedInventory.id.in_(orphan_ids))
                )
            for m in mismatches:
                if allocation_doc_id(m["sku"], m["location"]) in calculated:
                    await _write_entry(
                        db, m["sku"], m["location"], m["calculated_amount"],
                        RECONCILIATION_ACTOR,
                    )
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            raise map_store_error(e, "rebuild expected inventory") from e
        fixed = True
        logger.info("Rebuilt expected inventory for %d mismatches", len(mismatches))

    return {
        "total_skus": len(calculated),
        "matches": matches,
        "mismatches": mismatches,
        "fixed": fixed,
    }
