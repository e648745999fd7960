"""Pydantic schemas for the orchestrated stock-change flows."""

from typing import Literal

from pydantic import BaseModel, Field

from packtrack.models.batch_allocation import DEFAULT_BATCH
from packtrack.schemas.allocation import BatchAllocationOut
from packtrack.schemas.packing_box import PackingBoxOut


class StockAdjustmentRequest(BaseModel):
    """Set / add / subtract stock of one batch at one location."""
    sku: str
    item_name: str | None = None
    location: str
    batch_id: str = DEFAULT_BATCH
    mode: Literal["SET_TO", "ADD", "SUBTRACT"]
    quantity: int = Field(..., ge=0)
    reason: str = Field(..., min_length=1)
    notes: str | None = None
    performed_by: str


class WasteReportRequest(BaseModel):
    """Report wasted, lost, or defective units at a location."""
    sku: str
    item_name: str | None = None
    location: str
    quantity: int = Field(..., ge=1)
    type: Literal["WASTE", "LOST", "DEFECT"]
    reason: str | None = None
    rejection_reasons: list[str] = Field(default_factory=list)
    # None = take from the largest batches first
    batch_id: str | None = None
    performed_by: str


class TransferRequest(BaseModel):
    """Move a batch quantity between two locations."""
    sku: str
    item_name: str | None = None
    from_location: str
    to_location: str
    batch_id: str = DEFAULT_BATCH
    quantity: int = Field(..., ge=1)
    notes: str | None = None
    performed_by: str


class ScanInRequest(BaseModel):
    """Receive scanned units of a batch into a location."""
    sku: str
    item_name: str | None = None
    batch_id: str = DEFAULT_BATCH
    case_no: str | None = None
    quantity: int = Field(..., ge=1)
    location: str | None = None  # None = settings.default_receiving_location
    performed_by: str


class StockChangeResult(BaseModel):
    """Outcome of an orchestrated stock change.

    The ledger mutation is authoritative: once it committed the change
    succeeded, even if the transaction log or the projection sync failed
    (those failures are listed in ``warnings``).
    """
    allocation: BatchAllocationOut | None = None
    transaction_ids: list[str] = Field(default_factory=list)
    synced_amounts: dict[str, int | None] = Field(default_factory=dict)
    box: PackingBoxOut | None = None
    warnings: list[str] = Field(default_factory=list)
