"""Aggregate model imports for table creation and Alembic auto-detection."""

from packtrack.models.batch import Batch, BatchConfig  # noqa: F401
from packtrack.models.batch_allocation import BatchAllocation  # noqa: F401
from packtrack.models.expected_inventory import ExpectedInventory  # noqa: F401
from packtrack.models.packing_box import PackingBox, ScanEvent  # noqa: F401
from packtrack.models.transaction import Transaction  # noqa: F401
from packtrack.models.waste_report import WasteReport  # noqa: F401

__all__ = [
    "Batch", "BatchConfig",
    "BatchAllocation", "ExpectedInventory",
    "PackingBox", "ScanEvent",
    "Transaction", "WasteReport",
]
