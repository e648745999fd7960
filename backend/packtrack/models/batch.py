"""Batch — a production run with its packing list and VIN plan.

Lifecycle:  planning → in_progress → completed | problematic

Once a batch is activated (``in_progress``) its packing list is frozen:
packing-list imports against it are rejected without touching any box.
"""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from packtrack.database import Base

BATCH_ACTIVE_STATUS = "in_progress"


class Batch(Base):
    __tablename__ = "batches"

    # Human batch number, e.g. "603"
    batch_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(255))

    # [{"sku": "A001", "name": "Bolt M6", "quantity": 120}, ...]
    items: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    car_vins: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    car_type: Mapped[str | None] = mapped_column(String(100))
    total_cars: Mapped[int] = mapped_column(Integer, default=0)

    # planning | in_progress | completed | problematic
    status: Mapped[str] = mapped_column(String(30), default="planning", index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    @property
    def is_locked(self) -> bool:
        return self.status == BATCH_ACTIVE_STATUS


class BatchConfig(Base):
    """Stored default-batch preference (single row, id ``default``)."""
    __tablename__ = "batch_config"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default="default")
    active_batch: Mapped[str | None] = mapped_column(String(100))
    updated_by: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
