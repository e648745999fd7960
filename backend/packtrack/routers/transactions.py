"""Transaction log router.

Endpoints:
    GET   /api/transactions                 List entries with filters
    GET   /api/transactions/{id}            Single entry
    PATCH /api/transactions/{id}/status     Approve or cancel a pending entry
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from packtrack.database import get_db
from packtrack.schemas.common import PaginatedResponse
from packtrack.schemas.transaction import TransactionOut, TransactionStatusUpdate
from packtrack.services import transactions as txn_service

router = APIRouter()


@router.get("", response_model=PaginatedResponse[TransactionOut])
async def list_transactions(
    sku: str | None = Query(None),
    location: str | None = Query(None),
    batch_id: str | None = Query(None),
    transaction_type: str | None = Query(None, description="count, transfer_in, ..."),
    txn_status: str | None = Query(None, alias="status"),
    date_from: datetime | None = Query(None),
    date_to: datetime | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    items, total = await txn_service.list_transactions(
        db,
        sku=sku,
        location=location,
        batch_id=batch_id,
        transaction_type=transaction_type,
        status=txn_status,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
    )
    return PaginatedResponse(
        items=[TransactionOut.model_validate(t) for t in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{transaction_id}", response_model=TransactionOut)
async def get_transaction(transaction_id: str, db: AsyncSession = Depends(get_db)):
    return await txn_service.get_transaction(db, transaction_id)


@router.patch("/{transaction_id}/status", response_model=TransactionOut)
async def update_status(
    transaction_id: str,
    body: TransactionStatusUpdate,
    db: AsyncSession = Depends(get_db),
):
    return await txn_service.update_transaction_status(
        db, transaction_id, body.status, body.approved_by,
    )
