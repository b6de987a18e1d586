"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-17 12:00:00

"""
from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

ORDER_STATUSES = ("pending", "processing", "completed", "canceled")
PAYMENT_STATUSES = ("unpaid", "paid", "expired")


def upgrade() -> None:
    op.create_table(
        "products",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("price", sa.BigInteger(), nullable=False),
        sa.Column("stock", sa.Integer(), nullable=False),
        sa.Column("is_available", sa.Boolean(), nullable=False),
        sa.Column("is_auto_delivery", sa.Boolean(), nullable=False),
        sa.Column("requires_delivery_data", sa.Boolean(), nullable=False),
        sa.Column("checkout_fields", sa.JSON(), nullable=False),
        sa.Column("custom_label", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        "orders",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("product_id", sa.String(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("subtotal", sa.BigInteger(), nullable=False),
        sa.Column("admin_fee", sa.BigInteger(), nullable=False),
        sa.Column("service_fee", sa.BigInteger(), nullable=False),
        sa.Column("tax_amount", sa.BigInteger(), nullable=False),
        sa.Column("total_price", sa.BigInteger(), nullable=False),
        sa.Column("status", sa.Enum(*ORDER_STATUSES, name="order_status", native_enum=False), nullable=False),
        sa.Column("payment_status", sa.Enum(*PAYMENT_STATUSES, name="payment_status", native_enum=False), nullable=False),
        sa.Column("user_email", sa.String(), nullable=False),
        sa.Column("customer_details", sa.JSON(), nullable=False),
        sa.Column("delivery_data", sa.Text(), nullable=True),
        sa.Column("midtrans_token", sa.String(), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_orders_product_id", "orders", ["product_id"])
    op.create_index("ix_orders_user_email", "orders", ["user_email"])
    op.create_index("ix_orders_status_expires_at", "orders", ["status", "expires_at"])

    op.create_table(
        "inventory_items",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("product_id", sa.String(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_used", sa.Boolean(), nullable=False),
        sa.Column("claimed_by_order_id", sa.String(), sa.ForeignKey("orders.id"), nullable=True),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_inventory_items_claimed_by_order_id", "inventory_items", ["claimed_by_order_id"])
    op.create_index("ix_inventory_items_product_unused", "inventory_items", ["product_id", "is_used"])

    op.create_table(
        "shop_settings",
        sa.Column("key", sa.String(), primary_key=True),
        sa.Column("value", sa.JSON(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("shop_settings")
    op.drop_index("ix_inventory_items_product_unused", table_name="inventory_items")
    op.drop_index("ix_inventory_items_claimed_by_order_id", table_name="inventory_items")
    op.drop_table("inventory_items")
    op.drop_index("ix_orders_status_expires_at", table_name="orders")
    op.drop_index("ix_orders_user_email", table_name="orders")
    op.drop_index("ix_orders_product_id", table_name="orders")
    op.drop_table("orders")
    op.drop_table("products")
