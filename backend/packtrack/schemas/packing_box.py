"""Pydantic schemas for packing boxes, scans, and packing-list imports."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class PackingBoxOut(BaseModel):
    id: str
    batch_id: str
    case_no: str
    expected_by_sku: dict[str, int]
    scanned_by_sku: dict[str, int]
    expected_qty: int
    scanned_qty: int
    status: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class ScanRequest(BaseModel):
    """Payload for POST /api/packing-boxes/{batch_id}/{case_no}/scan."""
    sku: str = Field(..., min_length=1)
    qty: int = Field(..., ge=1)
    user_email: str
    source: str = "scanner"


class ScanEventOut(BaseModel):
    id: str
    box_id: str
    sku: str
    qty: int
    user_email: str | None = None
    source: str
    timestamp: datetime

    model_config = {"from_attributes": True}


# ── Imports ─────────────────────────────────────────────────

class ColumnMapping(BaseModel):
    """Explicit zero-based column indexes for a mapped packing-list import."""
    case_no_index: int = Field(..., ge=0)
    part_no_index: int = Field(..., ge=0)
    qty_index: int = Field(..., ge=0)


class SkippedRow(BaseModel):
    row_number: int
    row_data: list[str]
    reason: str
    extracted_values: dict[str, Any] = Field(default_factory=dict)


class ImportStats(BaseModel):
    boxes: int = 0
    total_rows: int = 0
    skipped_rows: int = 0
    errors: list[str] = Field(default_factory=list)
    skipped_details: list[SkippedRow] = Field(default_factory=list)
