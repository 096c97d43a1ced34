"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00
"""
from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    rules = op.create_table(
        "compliance_rules",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("state_code", sa.String(8), nullable=False, unique=True),
        sa.Column("min_age", sa.Integer, nullable=False, server_default="21"),
        sa.Column("max_daily_thc_mg", sa.Float),
        sa.Column("must_verify_age", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(256), nullable=False, unique=True),
        sa.Column("name", sa.String(128)),
        sa.Column("date_of_birth", sa.Date),
        sa.Column("age_verified", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "stores",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("state_code", sa.String(8)),
        sa.Column("city", sa.String(128)),
        sa.Column("timezone", sa.String(64)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_stores_state_code", "stores", ["state_code"])

    op.create_table(
        "products",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(256), nullable=False),
        sa.Column("category", sa.String(64)),
        sa.Column("thc_mg_per_unit", sa.Float),
        sa.Column("thc_percent", sa.Float),
        sa.Column("default_price", sa.Float, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "orders",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("store_id", sa.String(36), sa.ForeignKey("stores.id"), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("payment_method", sa.String(32), nullable=False),
        sa.Column("notes", sa.String(512)),
        sa.Column("idempotency_key", sa.String(128)),
        sa.Column("subtotal", sa.Float, nullable=False),
        sa.Column("tax", sa.Float, nullable=False),
        sa.Column("total", sa.Float, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("user_id", "idempotency_key", name="uq_orders_user_idempotency"),
    )
    op.create_index("ix_orders_user_created", "orders", ["user_id", "created_at"])

    op.create_table(
        "order_items",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("order_id", sa.String(36), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", sa.String(36), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("quantity", sa.Integer, nullable=False),
        sa.Column("unit_price", sa.Float, nullable=False),
        sa.Column("line_total", sa.Float, nullable=False),
    )
    op.create_index("ix_order_items_order_id", "order_items", ["order_id"])

    # example limits per state
    op.bulk_insert(rules, [
        {"state_code": "MI", "min_age": 21, "max_daily_thc_mg": 2500, "must_verify_age": True},
        {"state_code": "AZ", "min_age": 21, "max_daily_thc_mg": 1000, "must_verify_age": True},
        {"state_code": "CA", "min_age": 21, "max_daily_thc_mg": 8000, "must_verify_age": True},
    ])

def downgrade():
    op.drop_index("ix_order_items_order_id", table_name="order_items")
    op.drop_table("order_items")

    op.drop_index("ix_orders_user_created", table_name="orders")
    op.drop_table("orders")

    op.drop_table("products")

    op.drop_index("ix_stores_state_code", table_name="stores")
    op.drop_table("stores")

    op.drop_table("users")
    op.drop_table("compliance_rules")
