"""Transaction — immutable log of every stock-affecting event.

``previous_amount``/``new_amount`` are a point-in-time snapshot taken when
the event is recorded (``new_amount = previous_amount + amount``); they
are never recomputed.  The only permitted mutation is the approval
workflow status change ``pending → completed | cancelled``.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from packtrack.database import Base


class TransactionType(str, enum.Enum):
    COUNT = "count"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"
    ADJUSTMENT = "adjustment"
    INITIAL_STOCK = "initial_stock"


class TransactionStatus(str, enum.Enum):
    COMPLETED = "completed"
    PENDING = "pending"
    CANCELLED = "cancelled"


class Transaction(Base):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )

    # ── What moved ───────────────────────────────────────────
    sku: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    item_name: Mapped[str | None] = mapped_column(String(255))
    batch_id: Mapped[str | None] = mapped_column(String(100), index=True)

    # ── Snapshot ─────────────────────────────────────────────
    amount: Mapped[int] = mapped_column(Integer, nullable=False)  # signed delta
    previous_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    new_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # ── Where ────────────────────────────────────────────────
    location: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    from_location: Mapped[str | None] = mapped_column(String(100))
    to_location: Mapped[str | None] = mapped_column(String(100))

    # ── Classification ───────────────────────────────────────
    transaction_type: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(30), default=TransactionStatus.COMPLETED.value, index=True
    )

    # ── Metadata ─────────────────────────────────────────────
    performed_by: Mapped[str | None] = mapped_column(String(255))
    approved_by: Mapped[str | None] = mapped_column(String(255))
    notes: Mapped[str | None] = mapped_column(Text)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False, index=True
    )
