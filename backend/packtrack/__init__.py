"""PackTrack — batch allocation ledger and packing box reconciliation."""

__version__ = "0.1.0"
