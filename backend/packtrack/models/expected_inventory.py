"""ExpectedInventory — read-optimized per-(SKU, location) totals ("Layer 1").

Derived from BatchAllocation.total_allocated by explicit sync calls after
every ledger mutation.  It is an overwrite (last writer wins) and is not
kept transactionally consistent with the ledger; a failed sync leaves it
stale until the next sync or reconciliation run.
"""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from packtrack.database import Base


class ExpectedInventory(Base):
    __tablename__ = "expected_inventory"

    # Same composite id as the matching batch_allocations row
    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    sku: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    item_name: Mapped[str | None] = mapped_column(String(255))
    location: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # SYSTEM_SYNC | SYSTEM_RECONCILIATION
    counted_by: Mapped[str | None] = mapped_column(String(100))
    timestamp: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
