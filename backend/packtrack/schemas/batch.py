"""Pydantic schemas for production batches."""

from datetime import datetime

from pydantic import BaseModel, Field


class BatchItem(BaseModel):
    sku: str
    name: str | None = None
    quantity: int = Field(..., ge=0)


class BatchCreate(BaseModel):
    """Payload for POST /api/batches."""
    batch_id: str = Field(..., min_length=1, max_length=100)
    name: str | None = None
    items: list[BatchItem] = Field(default_factory=list)
    car_vins: list[str] = Field(default_factory=list)
    car_type: str | None = None
    total_cars: int = Field(0, ge=0)
    status: str = Field("planning", pattern="^(planning|in_progress|completed|problematic)$")


class BatchOut(BaseModel):
    batch_id: str
    name: str | None = None
    items: list[BatchItem]
    car_vins: list[str]
    car_type: str | None = None
    total_cars: int
    status: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BatchConfigOut(BaseModel):
    active_batch: str
    available_batches: list[str]
    updated_by: str | None = None
    updated_at: datetime | None = None


class BatchConfigUpdate(BaseModel):
    active_batch: str
    updated_by: str
