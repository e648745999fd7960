"""Initial stock ledger, projection, packing box, and transaction tables.

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def upgrade() -> None:
    # ── Ledger (Layer 2) ─────────────────────────────────────
    op.create_table(
        "batch_allocations",
        sa.Column("id", sa.String(255), primary_key=True),  # {sku}_{location}
        sa.Column("sku", sa.String(100), nullable=False),
        sa.Column("location", sa.String(100), nullable=False),
        sa.Column("allocations", sa.JSON(), nullable=False),
        sa.Column("total_allocated", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("last_updated", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_batch_allocations_sku", "batch_allocations", ["sku"])
    op.create_index("ix_batch_allocations_location", "batch_allocations", ["location"])
    op.create_index("ix_batch_allocations_last_updated", "batch_allocations", ["last_updated"])

    # ── Projection (Layer 1) ─────────────────────────────────
    op.create_table(
        "expected_inventory",
        sa.Column("id", sa.String(255), primary_key=True),
        sa.Column("sku", sa.String(100), nullable=False),
        sa.Column("item_name", sa.String(255)),
        sa.Column("location", sa.String(100), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("counted_by", sa.String(100)),
        sa.Column("timestamp", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_expected_inventory_sku", "expected_inventory", ["sku"])
    op.create_index("ix_expected_inventory_location", "expected_inventory", ["location"])

    # ── Batches ──────────────────────────────────────────────
    op.create_table(
        "batches",
        sa.Column("batch_id", sa.String(100), primary_key=True),
        sa.Column("name", sa.String(255)),
        sa.Column("items", sa.JSON(), nullable=False),
        sa.Column("car_vins", sa.JSON(), nullable=False),
        sa.Column("car_type", sa.String(100)),
        sa.Column("total_cars", sa.Integer(), server_default="0"),
        sa.Column("status", sa.String(30), server_default="planning"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_batches_status", "batches", ["status"])

    op.create_table(
        "batch_config",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("active_batch", sa.String(100)),
        sa.Column("updated_by", sa.String(255)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )

    # ── Packing boxes ────────────────────────────────────────
    op.create_table(
        "packing_boxes",
        sa.Column("id", sa.String(255), primary_key=True),  # {batch_id}_{case_no}
        sa.Column("batch_id", sa.String(100), nullable=False),
        sa.Column("case_no", sa.String(100), nullable=False),
        sa.Column("expected_by_sku", sa.JSON(), nullable=False),
        sa.Column("scanned_by_sku", sa.JSON(), nullable=False),
        sa.Column("expected_qty", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("scanned_qty", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(30), server_default="not_started"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_packing_boxes_batch_id", "packing_boxes", ["batch_id"])
    op.create_index("ix_packing_boxes_status", "packing_boxes", ["status"])

    op.create_table(
        "packing_box_scans",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "box_id", sa.String(255),
            sa.ForeignKey("packing_boxes.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("sku", sa.String(100), nullable=False),
        sa.Column("qty", sa.Integer(), nullable=False),
        sa.Column("user_email", sa.String(255)),
        sa.Column("source", sa.String(30), server_default="scanner"),
        sa.Column("timestamp", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_packing_box_scans_box_id", "packing_box_scans", ["box_id"])

    # ── Transaction log ──────────────────────────────────────
    op.create_table(
        "transactions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("sku", sa.String(100), nullable=False),
        sa.Column("item_name", sa.String(255)),
        sa.Column("batch_id", sa.String(100)),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("previous_amount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("new_amount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("location", sa.String(100), nullable=False),
        sa.Column("from_location", sa.String(100)),
        sa.Column("to_location", sa.String(100)),
        sa.Column("transaction_type", sa.String(30), nullable=False),
        sa.Column("status", sa.String(30), server_default="completed"),
        sa.Column("performed_by", sa.String(255)),
        sa.Column("approved_by", sa.String(255)),
        sa.Column("notes", sa.Text()),
        sa.Column("timestamp", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_transactions_sku", "transactions", ["sku"])
    op.create_index("ix_transactions_batch_id", "transactions", ["batch_id"])
    op.create_index("ix_transactions_location", "transactions", ["location"])
    op.create_index("ix_transactions_transaction_type", "transactions", ["transaction_type"])
    op.create_index("ix_transactions_status", "transactions", ["status"])
    op.create_index("ix_transactions_timestamp", "transactions", ["timestamp"])

    op.create_table(
        "waste_reports",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("sku", sa.String(100), nullable=False),
        sa.Column("item_name", sa.String(255)),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("location", sa.String(100), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("reason", sa.Text()),
        sa.Column("detailed_reason", sa.Text()),
        sa.Column("batch_id", sa.String(100)),
        sa.Column("transaction_id", sa.String(36)),
        sa.Column("reported_by", sa.String(255)),
        sa.Column("reported_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_waste_reports_sku", "waste_reports", ["sku"])
    op.create_index("ix_waste_reports_type", "waste_reports", ["type"])
    op.create_index("ix_waste_reports_batch_id", "waste_reports", ["batch_id"])
    op.create_index("ix_waste_reports_reported_at", "waste_reports", ["reported_at"])


def downgrade() -> None:
    op.drop_table("waste_reports")
    op.drop_table("transactions")
    op.drop_table("packing_box_scans")
    op.drop_table("packing_boxes")
    op.drop_table("batch_config")
    op.drop_table("batches")
    op.drop_table("expected_inventory")
    op.drop_table("batch_allocations")
