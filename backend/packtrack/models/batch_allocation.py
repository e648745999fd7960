"""BatchAllocation — the authoritative per-batch stock ledger ("Layer 2").

One row per (SKU, location), keyed by the composite id ``{sku}_{location}``.
``allocations`` maps a batch id (including the ``DEFAULT`` sentinel for
stock not yet attributed to a production batch) to a non-negative
quantity.  ``total_allocated`` is always the sum of those quantities and
is recomputed on every write.

Rows are created on the first allocation for a (SKU, location) pair and
are never hard-deleted in normal operation; a row may sit at zero.
"""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from packtrack.database import Base

DEFAULT_BATCH = "DEFAULT"


def allocation_doc_id(sku: str, location: str) -> str:
    return f"{sku}_{location}"


class BatchAllocation(Base):
    __tablename__ = "batch_allocations"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    sku: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    # logistics | production_zone_<n>
    location: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    # {"603": 30, "DEFAULT": 12}
    allocations: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    total_allocated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, index=True
    )
