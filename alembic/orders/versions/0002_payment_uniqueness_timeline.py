"""one order per payment, state versioning, and order timeline

Revision ID: 0002_payment_uniqueness_timeline
Revises: 0001_orders
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "0002_payment_uniqueness_timeline"
down_revision = "0001_orders"
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Fails if duplicate payment rows already exist; resolve those by hand first.
    op.create_index("ix_orders_razorpay_payment_id", "orders", ["razorpay_payment_id"], unique=True)
    op.create_index("ix_orders_tracking_id", "orders", ["tracking_id"], unique=True)

    op.add_column("orders", sa.Column("razorpay_order_id", sa.String(), nullable=True))
    op.create_index("ix_orders_razorpay_order_id", "orders", ["razorpay_order_id"])
    op.add_column(
        "orders",
        sa.Column("state_version", sa.Integer(), nullable=False, server_default=sa.text("0")),
    )
    op.alter_column("orders", "state_version", server_default=None)

    op.create_table(
        "order_timeline",
        sa.Column("timeline_id", sa.String(), nullable=False),
        sa.Column("order_id", sa.String(), nullable=False),
        sa.Column("field", sa.String(), nullable=False),
        sa.Column("from_state", sa.String(), nullable=True),
        sa.Column("to_state", sa.String(), nullable=False),
        sa.Column("reason", sa.String(), nullable=False),
        sa.Column("actor", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("timeline_id"),
    )
    op.create_index("ix_order_timeline_order_id", "order_timeline", ["order_id"])


def downgrade() -> None:
    op.drop_index("ix_order_timeline_order_id", table_name="order_timeline")
    op.drop_table("order_timeline")
    op.drop_column("orders", "state_version")
    op.drop_index("ix_orders_razorpay_order_id", table_name="orders")
    op.drop_column("orders", "razorpay_order_id")
    op.drop_index("ix_orders_tracking_id", table_name="orders")
    op.drop_index("ix_orders_razorpay_payment_id", table_name="orders")
