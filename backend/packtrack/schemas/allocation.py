"""Pydantic schemas for the batch allocation ledger and projection."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator


# ── Ledger (Layer 2) ────────────────────────────────────────

class BatchAllocationOut(BaseModel):
    sku: str
    location: str
    allocations: dict[str, int]
    total_allocated: int
    created_at: datetime | None = None
    last_updated: datetime | None = None

    model_config = {"from_attributes": True}

    @field_validator("allocations", mode="before")
    @classmethod
    def _coerce_allocations(cls, v):
        # Rows written by older clients may hold floats or nulls
        return {str(k): int(q or 0) for k, q in (v or {}).items()}


class AllocationChangeRequest(BaseModel):
    """Payload for POST /api/allocations/{sku}/{location}/add|remove."""
    batch_id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)


class ZeroStockRequest(BaseModel):
    """Payload for POST /api/allocations/zero."""
    scope: str = Field(..., pattern="^(batch|default|all)$")
    batch_id: str | None = None
    updated_by: str


class ZeroStockResult(BaseModel):
    skus_affected: int
    total_zeroed: int


class BatchProgressOut(BaseModel):
    batch_id: str
    total_expected: int
    total_allocated: int
    completion_percentage: float


class LocationSummary(BaseModel):
    location: str
    sku_count: int
    total_units: int


# ── Projection (Layer 1) ────────────────────────────────────

class ExpectedInventoryOut(BaseModel):
    sku: str
    item_name: str | None = None
    location: str
    amount: int
    counted_by: str | None = None
    timestamp: datetime | None = None

    model_config = {"from_attributes": True}


class SyncRequest(BaseModel):
    known_total: int | None = Field(None, ge=0)


class SyncResult(BaseModel):
    sku: str
    location: str
    amount: int | None
    synced: bool


class ReconcileMismatch(BaseModel):
    sku: str
    location: str
    expected_amount: int
    calculated_amount: int
    diff: int


class ReconcileReport(BaseModel):
    total_skus: int
    matches: int
    mismatches: list[ReconcileMismatch]
    fixed: bool
