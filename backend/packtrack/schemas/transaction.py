"""Pydantic schemas for the transaction log."""

from datetime import datetime

from pydantic import BaseModel, Field

from packtrack.models.transaction import TransactionStatus, TransactionType


class TransactionCreate(BaseModel):
    sku: str
    item_name: str | None = None
    amount: int
    previous_amount: int = 0
    location: str
    from_location: str | None = None
    to_location: str | None = None
    transaction_type: TransactionType
    status: TransactionStatus = TransactionStatus.COMPLETED
    performed_by: str | None = None
    notes: str | None = None
    batch_id: str | None = None


class TransactionOut(BaseModel):
    id: str
    sku: str
    item_name: str | None = None
    amount: int
    previous_amount: int
    new_amount: int
    location: str
    from_location: str | None = None
    to_location: str | None = None
    transaction_type: str
    status: str
    performed_by: str | None = None
    approved_by: str | None = None
    notes: str | None = None
    batch_id: str | None = None
    timestamp: datetime

    model_config = {"from_attributes": True}


class TransactionStatusUpdate(BaseModel):
    """Payload for PATCH /api/transactions/{id}/status."""
    status: TransactionStatus
    approved_by: str | None = Field(None, max_length=255)
