"""WasteReport — one waste / lost / defect report against stock."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from packtrack.database import Base


class WasteReport(Base):
    __tablename__ = "waste_reports"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    sku: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    item_name: Mapped[str | None] = mapped_column(String(255))
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    location: Mapped[str] = mapped_column(String(100), nullable=False)

    # WASTE | LOST | DEFECT
    type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    reason: Mapped[str | None] = mapped_column(Text)
    # "[DEFECT] scratched | Rejection: paint, dent"
    detailed_reason: Mapped[str | None] = mapped_column(Text)

    batch_id: Mapped[str | None] = mapped_column(String(100), index=True)
    transaction_id: Mapped[str | None] = mapped_column(String(36))
    reported_by: Mapped[str | None] = mapped_column(String(255))
    reported_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, index=True
    )
