"""Create order tracking tables

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers
revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("first_name", sa.String(128), nullable=True),
        sa.Column("last_name", sa.String(128), nullable=True),
        sa.Column("role", sa.String(16), nullable=False, server_default="EMPLOYEE"),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "customers",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(256), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("phone", sa.String(64), nullable=True),
        sa.Column("address", sa.Text, nullable=True),
        sa.Column("preferences", sa.JSON, nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_customers_email", "customers", ["email"], unique=True)

    op.create_table(
        "orders",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("tracking_id", sa.String(64), nullable=False),
        sa.Column(
            "customer_id", sa.String(64), sa.ForeignKey("customers.id"), nullable=False
        ),
        sa.Column(
            "assigned_to_id", sa.String(64), sa.ForeignKey("users.id"), nullable=True
        ),
        sa.Column("invoice_number", sa.String(64), nullable=True),
        sa.Column("order_type", sa.String(16), nullable=False, server_default="FRAME"),
        sa.Column(
            "status", sa.String(32), nullable=False, server_default="ORDER_PROCESSED"
        ),
        sa.Column("priority", sa.String(16), nullable=False, server_default="MEDIUM"),
        sa.Column("complexity", sa.Integer, nullable=False, server_default="5"),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("estimated_hours", sa.Float, nullable=False),
        sa.Column("actual_hours", sa.Float, nullable=True),
        sa.Column("price", sa.Float, nullable=False, server_default="0"),
        sa.Column("deposit", sa.Float, nullable=False, server_default="0"),
        sa.Column("dimensions", sa.JSON, nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("internal_notes", sa.Text, nullable=True),
        sa.Column("artwork_images", sa.JSON, nullable=False),
        sa.Column("artwork_location", sa.String(256), nullable=True),
        sa.Column(
            "artwork_received", sa.Boolean, nullable=False, server_default=sa.false()
        ),
        sa.Column("artwork_received_date", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("picked_up_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_orders_tracking_id", "orders", ["tracking_id"], unique=True)
    op.create_index("ix_orders_customer_id", "orders", ["customer_id"])
    op.create_index("ix_orders_status", "orders", ["status"])
    op.create_index("ix_orders_priority", "orders", ["priority"])
    op.create_index("ix_orders_due_date", "orders", ["due_date"])
    op.create_index("ix_orders_status_due", "orders", ["status", "due_date"])
    op.create_index(
        "ix_orders_customer_created", "orders", ["customer_id", "created_at"]
    )

    op.create_table(
        "materials",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("order_id", sa.String(64), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("subtype", sa.String(128), nullable=True),
        sa.Column("quantity", sa.Integer, nullable=False, server_default="1"),
        sa.Column("unit", sa.String(32), nullable=False, server_default="piece"),
        sa.Column("ordered", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("arrived", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("supplier", sa.String(128), nullable=True),
        sa.Column("cost", sa.Float, nullable=True),
        sa.Column("ordered_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("arrived_date", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_materials_order_id", "materials", ["order_id"])

    op.create_table(
        "status_history",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("order_id", sa.String(64), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("sequence", sa.Integer, nullable=False, server_default="1"),
        sa.Column("from_status", sa.String(32), nullable=True),
        sa.Column("to_status", sa.String(32), nullable=False),
        sa.Column("changed_by", sa.String(64), nullable=False),
        sa.Column("reason", sa.Text, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "ix_status_history_order_seq", "status_history", ["order_id", "sequence"]
    )
    op.create_index("ix_status_history_created_at", "status_history", ["created_at"])


def downgrade() -> None:
    op.drop_table("status_history")
    op.drop_table("materials")
    op.drop_table("orders")
    op.drop_table("customers")
    op.drop_table("users")
