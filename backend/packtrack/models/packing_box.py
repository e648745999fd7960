"""PackingBox — one physical shipping case of a production batch.

Tracks, per SKU, how many units the packing list says the case holds
(``expected_by_sku``) against how many were actually scanned
(``scanned_by_sku``).  ``expected_qty``/``scanned_qty`` are the aggregate
totals and ``status`` is derived from them on every scan.

Boxes are created in bulk by a packing-list import (which replaces every
box of the batch) or on the first scan of an unknown case in flexible
mode.  They are only mutated through the transactional scan operation.

Status:  not_started → in_progress → complete → over_scanned
"""

import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from packtrack.database import Base


def box_doc_id(batch_id: str, case_no: str) -> str:
    return f"{batch_id}_{case_no}"


class PackingBox(Base):
    __tablename__ = "packing_boxes"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    batch_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    case_no: Mapped[str] = mapped_column(String(100), nullable=False)

    # ── Quantities ───────────────────────────────────────────
    expected_by_sku: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    scanned_by_sku: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    expected_qty: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    scanned_qty: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # not_started | in_progress | complete | over_scanned
    status: Mapped[str] = mapped_column(String(30), default="not_started", index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # ── Relationships ────────────────────────────────────────
    # Scans are written by box_id and deleted in bulk with their box
    scans = relationship(
        "ScanEvent", back_populates="box",
        passive_deletes=True, order_by="ScanEvent.timestamp",
    )


class ScanEvent(Base):
    """Append-only audit record of one scan against a box."""
    __tablename__ = "packing_box_scans"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    box_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("packing_boxes.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    sku: Mapped[str] = mapped_column(String(100), nullable=False)
    qty: Mapped[int] = mapped_column(Integer, nullable=False)
    user_email: Mapped[str | None] = mapped_column(String(255))
    # scanner | manual | scan_in
    source: Mapped[str] = mapped_column(String(30), default="scanner")
    timestamp: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    box = relationship("PackingBox", back_populates="scans")
