"""Transaction log — append-only record of stock-affecting events.

Entries are written once by the stock flows and never edited, except for
the approval workflow: a ``pending`` entry may move to ``completed`` or
``cancelled`` exactly once.
"""

import logging
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from packtrack.errors import NotFoundError, ValidationError, map_store_error
from packtrack.models.transaction import Transaction, TransactionStatus
from packtrack.schemas.transaction import TransactionCreate

logger = logging.getLogger(__name__)

_ALLOWED_STATUS_CHANGES = {
    TransactionStatus.PENDING.value: {
        TransactionStatus.COMPLETED.value,
        TransactionStatus.CANCELLED.value,
    },
}


async def record_transaction(db: AsyncSession, data: TransactionCreate) -> Transaction:
    """Append one entry; ``new_amount`` is derived as previous + amount."""
    txn = Transaction(
        sku=data.sku,
        item_name=data.item_name,
        batch_id=data.batch_id,
        amount=data.amount,
        previous_amount=data.previous_amount,
        new_amount=data.previous_amount + data.amount,
        location=data.location,
        from_location=data.from_location,
        to_location=data.to_location,
        transaction_type=data.transaction_type.value,
        status=data.status.value,
        performed_by=data.performed_by,
        notes=data.notes,
        timestamp=datetime.utcnow(),
    )
    try:
        db.add(txn)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise map_store_error(e, "record transaction", {"sku": data.sku}) from e

    logger.info(
        "Transaction %s: %s %s %+d at %s (%d → %d)",
        txn.id, txn.transaction_type, txn.sku, txn.amount,
        txn.location, txn.previous_amount, txn.new_amount,
    )
    return txn


async def get_transaction(db: AsyncSession, transaction_id: str) -> Transaction:
    try:
        txn = await db.get(Transaction, transaction_id, populate_existing=True)
    except SQLAlchemyError as e:
        raise map_store_error(e, "get transaction") from e
    if txn is None:
        raise NotFoundError(
            f"Transaction not found: {transaction_id}", operation="get transaction"
        )
    return txn


async def list_transactions(
    db: AsyncSession,
    *,
    sku: str | None = None,
    location: str | None = None,
    batch_id: str | None = None,
    transaction_type: str | None = None,
    status: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Transaction], int]:
    """Newest first, with the unpaginated total for the filter."""
    filters = []
    if sku:
        filters.append(Transaction.sku == sku)
    if location:
        filters.append(Transaction.location == location)
    if batch_id:
        filters.append(Transaction.batch_id == batch_id)
    if transaction_type:
        filters.append(Transaction.transaction_type == transaction_type)
    if status:
        filters.append(Transaction.status == status)
    if date_from:
        filters.append(Transaction.timestamp >= date_from)
    if date_to:
        filters.append(Transaction.timestamp <= date_to)

    try:
        total = (await db.execute(
            select(func.count(Transaction.id)).where(*filters)
        )).scalar() or 0
        result = await db.execute(
            select(Transaction)
            .where(*filters)
            .order_by(Transaction.timestamp.desc())
            .limit(limit)
            .offset(offset)
        )
    except SQLAlchemyError as e:
        raise map_store_error(e, "list transactions") from e
    return list(result.scalars().all()), total


async def update_transaction_status(
    db: AsyncSession,
    transaction_id: str,
    new_status: TransactionStatus,
    approved_by: str | None = None,
) -> Transaction:
    """Approve or cancel a pending entry.

    Raises:
        NotFoundError: unknown id.
        ValidationError: the entry is not pending, or the target status
            is not completed/cancelled.
    """
    txn = await get_transaction(db, transaction_id)
    allowed = _ALLOWED_STATUS_CHANGES.get(txn.status, set())
    if new_status.value not in allowed:
        raise ValidationError(
            f"Cannot change transaction status from {txn.status} to {new_status.value}",
            operation="update transaction status",
            context={"transaction_id": transaction_id},
        )

    txn.status = new_status.value
    if approved_by:
        txn.approved_by = approved_by
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise map_store_error(e, "update transaction status") from e

    logger.info(f"Transaction {transaction_id} marked {new_status.value} by {approved_by}")
    return txn
