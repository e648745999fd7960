"""Packing box router — packing-list imports and box scanning.

Endpoints:
    GET  /api/packing-boxes/template                       CSV template download
    POST /api/packing-boxes/{batch_id}/import              Upload CASE NO / PART NO / QTY CSV
    POST /api/packing-boxes/{batch_id}/import-mapped       Upload CSV with explicit column indexes
    GET  /api/packing-boxes/{batch_id}                     Boxes of a batch
    GET  /api/packing-boxes/{batch_id}/{case_no}           One box
    GET  /api/packing-boxes/{batch_id}/{case_no}/scans     Scan history of a box
    POST /api/packing-boxes/{batch_id}/{case_no}/scan      Apply a scan

Imports replace every box of the batch and always answer 200 with an
ImportStats body; row problems and a locked batch are reported in
``errors`` rather than as HTTP errors.
"""

import io

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from packtrack.database import get_db
from packtrack.errors import NotFoundError, ValidationError
from packtrack.schemas.packing_box import (
    ColumnMapping,
    ImportStats,
    PackingBoxOut,
    ScanEventOut,
    ScanRequest,
)
from packtrack.services import packing_boxes as box_service
from packtrack.utils.cache import ReadCache, get_cache
from packtrack.utils.csv_import import decode_upload, generate_template_csv

router = APIRouter()

TEMPLATE_HEADERS = ["CASE NO", "PART NO", "QTY"]
TEMPLATE_SAMPLE = [["C-001", "A001", "20"], ["C-001", "B002", "4"], ["C-002", "A001", "20"]]


def _csv_response(csv_text: str, filename: str) -> StreamingResponse:
    return StreamingResponse(
        io.BytesIO(csv_text.encode("utf-8")),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


async def _read_upload(file: UploadFile) -> str:
    content = await file.read()
    try:
        return decode_upload(content)
    except UnicodeDecodeError:
        raise ValidationError("File must be UTF-8 encoded CSV", operation="import packing list")


@router.get("/template")
async def packing_list_template():
    return _csv_response(
        generate_template_csv(TEMPLATE_HEADERS, TEMPLATE_SAMPLE), "packing_list_template.csv"
    )


# ── Imports ──────────────────────────────────────────────────

@router.post("/{batch_id}/import", response_model=ImportStats)
async def import_packing_list(
    batch_id: str,
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    cache: ReadCache = Depends(get_cache),
):
    csv_text = await _read_upload(file)
    stats = await box_service.import_packing_list_for_batch(db, batch_id, csv_text)
    # Accepted imports rewrite batch items even when every row was skipped
    await cache.invalidate("progress")
    return stats


@router.post("/{batch_id}/import-mapped", response_model=ImportStats)
async def import_packing_list_mapped(
    batch_id: str,
    file: UploadFile = File(...),
    case_no_index: int = Form(..., ge=0),
    part_no_index: int = Form(..., ge=0),
    qty_index: int = Form(..., ge=0),
    header_row_index: int | None = Form(None, ge=0),
    db: AsyncSession = Depends(get_db),
    cache: ReadCache = Depends(get_cache),
):
    csv_text = await _read_upload(file)
    mapping = ColumnMapping(
        case_no_index=case_no_index, part_no_index=part_no_index, qty_index=qty_index,
    )
    stats = await box_service.import_packing_list_with_mapping(
        db, batch_id, csv_text, mapping, header_row_index,
    )
    # Accepted imports rewrite batch items even when every row was skipped
    await cache.invalidate("progress")
    return stats


# ── Boxes ────────────────────────────────────────────────────

@router.get("/{batch_id}", response_model=list[PackingBoxOut])
async def list_boxes(batch_id: str, db: AsyncSession = Depends(get_db)):
    return await box_service.list_boxes(db, batch_id)


@router.get("/{batch_id}/{case_no}", response_model=PackingBoxOut)
async def get_box(batch_id: str, case_no: str, db: AsyncSession = Depends(get_db)):
    box = await box_service.get_box(db, batch_id, case_no)
    if box is None:
        raise NotFoundError(f"Box not found: {case_no}", operation="get packing box")
    return box


@router.get("/{batch_id}/{case_no}/scans", response_model=list[ScanEventOut])
async def list_scans(batch_id: str, case_no: str, db: AsyncSession = Depends(get_db)):
    return await box_service.list_scan_events(db, batch_id, case_no)


@router.post("/{batch_id}/{case_no}/scan", response_model=PackingBoxOut)
async def scan_box(
    batch_id: str,
    case_no: str,
    body: ScanRequest,
    db: AsyncSession = Depends(get_db),
):
    """Record scanned units; over-scans are accepted and flagged by status."""
    return await box_service.apply_scan(
        db, batch_id, case_no, body.sku, body.qty, body.user_email, body.source,
    )
