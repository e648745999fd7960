"""Packing box reconciliation — expected vs scanned quantities per case.

Two scan policies exist:

flexible (default)
    Scans are never rejected.  An unknown case is auto-created with an
    empty packing list, and the status is derived from aggregate totals
    only, so a box can be ``complete`` while individual SKUs are off as
    long as the totals balance.

strict
    The earlier per-SKU policy: unknown boxes, SKUs not on the box's
    packing list, and scans that would push a SKU past its expected
    quantity are rejected; ``complete`` needs every SKU to match exactly.

Packing-list imports replace every box of a batch and are refused once
the batch is activated.
"""

import logging
from collections import defaultdict
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from packtrack.config import settings
from packtrack.errors import (
    BatchLockedError,
    NotFoundError,
    PackTrackError,
    ValidationError,
    map_store_error,
)
from packtrack.models.batch import Batch
from packtrack.models.packing_box import PackingBox, ScanEvent, box_doc_id
from packtrack.schemas.packing_box import ColumnMapping, ImportStats, SkippedRow
from packtrack.utils.csv_import import (
    coerce_positive_int,
    detect_header_row,
    normalize_header,
    parse_csv_rows,
)

logger = logging.getLogger(__name__)

SCAN_MODE_FLEXIBLE = "flexible"
SCAN_MODE_STRICT = "strict"

REQUIRED_HEADERS = {"caseno": "CASE NO", "partno": "PART NO", "qty": "QTY"}


# ── Status ───────────────────────────────────────────────────

def compute_status(
    expected_by_sku: dict[str, int],
    scanned_by_sku: dict[str, int],
    mode: str = SCAN_MODE_FLEXIBLE,
) -> str:
    """Derive a box status from its expected and scanned quantities."""
    expected_total = sum(expected_by_sku.values())
    scanned_total = sum(scanned_by_sku.values())

    if mode == SCAN_MODE_STRICT:
        for sku, scanned in scanned_by_sku.items():
            if scanned > expected_by_sku.get(sku, 0):
                return "over_scanned"
        if scanned_total == 0:
            return "not_started"
        if scanned_total < expected_total:
            return "in_progress"
        for sku, expected in expected_by_sku.items():
            if scanned_by_sku.get(sku, 0) != expected:
                return "in_progress"
        return "complete"

    if scanned_total == 0:
        return "not_started"
    if expected_total > 0 and scanned_total > expected_total:
        return "over_scanned"
    if expected_total > 0 and scanned_total >= expected_total:
        return "complete"
    # Includes unplanned boxes (nothing expected, something scanned)
    return "in_progress"


# ── Reads ────────────────────────────────────────────────────

async def list_boxes(db: AsyncSession, batch_id: str) -> list[PackingBox]:
    try:
        result = await db.execute(
            select(PackingBox)
            .where(PackingBox.batch_id == batch_id)
            .order_by(PackingBox.case_no)
        )
    except SQLAlchemyError as e:
        raise map_store_error(e, "list packing boxes", {"batch_id": batch_id}) from e
    return list(result.scalars().all())


async def get_box(db: AsyncSession, batch_id: str, case_no: str) -> PackingBox | None:
    try:
        return await db.get(
            PackingBox, box_doc_id(batch_id, case_no), populate_existing=True
        )
    except SQLAlchemyError as e:
        raise map_store_error(e, "get packing box", {"batch_id": batch_id}) from e


async def list_scan_events(db: AsyncSession, batch_id: str, case_no: str) -> list[ScanEvent]:
    result = await db.execute(
        select(ScanEvent)
        .where(ScanEvent.box_id == box_doc_id(batch_id, case_no))
        .order_by(ScanEvent.timestamp)
    )
    return list(result.scalars().all())


# ── Scanning ─────────────────────────────────────────────────

async def _locked_box(db: AsyncSession, doc_id: str) -> PackingBox | None:
    result = await db.execute(
        select(PackingBox)
        .where(PackingBox.id == doc_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def _check_strict_scan(box: PackingBox, sku: str, qty: int) -> None:
    expected = int((box.expected_by_sku or {}).get(sku, 0))
    if expected <= 0:
        raise ValidationError(f"SKU {sku} not in box {box.case_no}")
    current = int((box.scanned_by_sku or {}).get(sku, 0))
    if current + qty > expected:
        raise ValidationError(
            f"Exceeds expected for {sku} in box {box.case_no}. "
            f"Available: {expected - current}, requested: {qty}"
        )


async def _append_scan_event(
    db: AsyncSession, box: PackingBox, sku: str, qty: int, user_email: str, source: str,
) -> None:
    """Best-effort audit record; never undoes the scan."""
    try:
        db.add(ScanEvent(
            box_id=box.id, sku=sku, qty=qty,
            user_email=user_email, source=source,
            timestamp=datetime.utcnow(),
        ))
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.warning(f"Failed to append scan event for box {box.id}: {e}")


async def apply_scan(
    db: AsyncSession,
    batch_id: str,
    case_no: str,
    sku: str,
    qty: int,
    user_email: str,
    source: str = "scanner",
    mode: str | None = None,
) -> PackingBox:
    """Record ``qty`` scanned units of ``sku`` against one box.

    The box row is locked for the read-modify-write, so concurrent scans
    on the same box never lose an increment.  Store failures propagate
    as PackTrackError subclasses; there is no automatic retry.
    """
    mode = mode or settings.scan_mode
    if mode not in (SCAN_MODE_FLEXIBLE, SCAN_MODE_STRICT):
        raise ValidationError(f"Unknown scan mode: {mode}", operation="apply scan")
    if qty <= 0:
        raise ValidationError(
            f"Scan quantity must be positive, got {qty}", operation="apply scan",
        )
    doc_id = box_doc_id(batch_id, case_no)
    context = {"batch_id": batch_id, "case_no": case_no, "sku": sku}

    box = None
    for attempt in (1, 2):
        try:
            box = await _locked_box(db, doc_id)
            if box is None:
                if mode == SCAN_MODE_STRICT:
                    raise NotFoundError(f"Box not found: {case_no}", operation="apply scan")
                box = PackingBox(
                    id=doc_id, batch_id=batch_id, case_no=case_no,
                    expected_by_sku={}, scanned_by_sku={},
                    expected_qty=0, scanned_qty=0, status="not_started",
                )
                db.add(box)
                logger.info(f"Auto-created packing box {doc_id} on first scan")
            elif mode == SCAN_MODE_STRICT:
                _check_strict_scan(box, sku, qty)

            expected = dict(box.expected_by_sku or {})
            scanned = dict(box.scanned_by_sku or {})
            scanned[sku] = int(scanned.get(sku, 0)) + qty

            box.scanned_by_sku = scanned
            box.expected_qty = sum(expected.values())
            box.scanned_qty = sum(scanned.values())
            box.status = compute_status(expected, scanned, mode)
            box.updated_at = datetime.utcnow()
            await db.commit()
            break
        except PackTrackError:
            await db.rollback()
            raise
        except IntegrityError as e:
            await db.rollback()
            if attempt == 2:
                raise map_store_error(e, "apply scan", context) from e
            logger.info(f"Packing box {doc_id} created concurrently, retrying scan")
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Scan transaction failed for {doc_id}: {e}")
            raise map_store_error(e, "apply scan", context) from e

    logger.info(
        "Scan applied: box %s sku %s +%d → %d/%d (%s)",
        doc_id, sku, qty, box.scanned_qty, box.expected_qty, box.status,
    )

    # Detach so a failed audit write cannot expire the committed box
    db.expunge(box)
    await _append_scan_event(db, box, sku, qty, user_email, source)
    return box


# ── Imports ──────────────────────────────────────────────────

def _cell(row: list[str], idx: int) -> str:
    return row[idx].strip() if idx < len(row) else ""


def _group_rows(
    data_rows: list[list[str]],
    case_idx: int,
    sku_idx: int,
    qty_idx: int,
    stats: ImportStats,
) -> dict[str, dict[str, int]]:
    """Group valid rows by case number, summing quantity per SKU.

    Invalid rows are recorded on ``stats`` and skipped.
    """
    grouped: dict[str, dict[str, int]] = defaultdict(dict)
    min_width = max(case_idx, sku_idx, qty_idx) + 1

    for row_number, row in enumerate(data_rows, start=1):
        stats.total_rows += 1

        case_no, sku, qty_raw = (_cell(row, i) for i in (case_idx, sku_idx, qty_idx))
        qty = coerce_positive_int(qty_raw)

        if len(row) < min_width and not (case_no and sku and qty_raw):
            reason = f"Row has {len(row)} columns, expected at least {min_width}"
        elif not case_no:
            reason = "Missing CASE NO"
        elif not sku:
            reason = "Missing PART NO"
        elif qty is None:
            reason = f"Invalid QTY '{qty_raw}' (must be a positive whole number)"
        else:
            box = grouped[case_no]
            box[sku] = box.get(sku, 0) + qty
            continue

        stats.skipped_rows += 1
        stats.errors.append(f"Row {row_number}: {reason}")
        stats.skipped_details.append(SkippedRow(
            row_number=row_number,
            row_data=row,
            reason=reason,
            extracted_values={"case_no": case_no, "part_no": sku, "qty": qty_raw},
        ))

    return dict(grouped)


async def _load_unlocked_batch(db: AsyncSession, batch_id: str) -> Batch | None:
    """Return the batch (if any), raising when its packing list is frozen."""
    batch = await db.get(Batch, batch_id, populate_existing=True)
    if batch is not None and batch.is_locked:
        raise BatchLockedError(batch_id, operation="import packing list")
    return batch


async def _replace_boxes(
    db: AsyncSession,
    batch_id: str,
    batch: Batch | None,
    grouped: dict[str, dict[str, int]],
) -> int:
    """Delete every box of the batch and create the imported ones."""
    now = datetime.utcnow()
    existing_ids = select(PackingBox.id).where(PackingBox.batch_id == batch_id)

    try:
        await db.execute(delete(ScanEvent).where(ScanEvent.box_id.in_(existing_ids)))
        await db.execute(delete(PackingBox).where(PackingBox.batch_id == batch_id))

        expected_total = 0
        sku_totals: dict[str, int] = defaultdict(int)
        for case_no, expected_by_sku in grouped.items():
            box_total = sum(expected_by_sku.values())
            expected_total += box_total
            for sku, qty in expected_by_sku.items():
                sku_totals[sku] += qty
            db.add(PackingBox(
                id=box_doc_id(batch_id, case_no),
                batch_id=batch_id,
                case_no=case_no,
                expected_by_sku=expected_by_sku,
                scanned_by_sku={},
                expected_qty=box_total,
                scanned_qty=0,
                status="not_started",
                created_at=now,
                updated_at=now,
            ))

        if batch is not None:
            names = {i.get("sku"): i.get("name") for i in batch.items or []}
            batch.items = [
                {"sku": sku, "name": names.get(sku) or sku, "quantity": qty}
                for sku, qty in sorted(sku_totals.items())
            ]
            batch.updated_at = now

        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise map_store_error(e, "replace packing boxes", {"batch_id": batch_id}) from e

    return expected_total


async def _import_grouped(
    db: AsyncSession,
    batch_id: str,
    data_rows: list[list[str]],
    case_idx: int,
    sku_idx: int,
    qty_idx: int,
    batch: Batch | None,
) -> ImportStats:
    stats = ImportStats()
    grouped = _group_rows(data_rows, case_idx, sku_idx, qty_idx, stats)
    expected_total = await _replace_boxes(db, batch_id, batch, grouped)
    stats.boxes = len(grouped)

    logger.info(
        "Packing list imported",
        extra={"batch_id": batch_id, "boxes": stats.boxes,
               "expected_total": expected_total, "skipped_rows": stats.skipped_rows},
    )
    return stats


async def import_packing_list_for_batch(
    db: AsyncSession, batch_id: str, csv_text: str,
) -> ImportStats:
    """Replace a batch's boxes from a ``CASE NO, PART NO, QTY`` CSV."""
    try:
        batch = await _load_unlocked_batch(db, batch_id)
    except BatchLockedError as e:
        logger.warning(f"Packing list import rejected: {e.message}")
        return ImportStats(errors=[e.message])

    rows = parse_csv_rows(csv_text)
    if not rows:
        return ImportStats(errors=["Empty CSV"])

    header = [normalize_header(h) for h in rows[0]]
    missing = [label for key, label in REQUIRED_HEADERS.items() if key not in header]
    if missing:
        data_count = len(rows) - 1
        return ImportStats(
            total_rows=data_count,
            skipped_rows=data_count,
            errors=[
                "Missing required headers: CASE NO, PART NO, QTY (case-insensitive); "
                f"not found: {', '.join(missing)}"
            ],
        )

    return await _import_grouped(
        db, batch_id, rows[1:],
        header.index("caseno"), header.index("partno"), header.index("qty"),
        batch,
    )


async def import_packing_list_with_mapping(
    db: AsyncSession,
    batch_id: str,
    csv_text: str,
    mapping: ColumnMapping,
    header_row_index: int | None = None,
) -> ImportStats:
    """Replace a batch's boxes using explicit column indexes.

    The header row is auto-detected within the first rows when
    ``header_row_index`` is not given; rows above it (titles, supplier
    banners) are ignored.  Without a detectable header every row is data.
    """
    try:
        batch = await _load_unlocked_batch(db, batch_id)
    except BatchLockedError as e:
        logger.warning(f"Packing list import rejected: {e.message}")
        return ImportStats(errors=[e.message])

    rows = parse_csv_rows(csv_text)
    if not rows:
        return ImportStats(errors=["Empty CSV"])

    if header_row_index is None:
        header_row_index = detect_header_row(rows)
    data_start = header_row_index + 1 if header_row_index is not None else 0

    return await _import_grouped(
        db, batch_id, rows[data_start:],
        mapping.case_no_index, mapping.part_no_index, mapping.qty_index,
        batch,
    )
