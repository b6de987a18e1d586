from sqlalchemy import (
    Table, Column, String, Integer, BigInteger, Boolean, Text, Enum, DateTime, JSON, MetaData, ForeignKey, Index
)
from sqlalchemy.sql import func

from storefront.domain.models import OrderStatus, PaymentStatus

metadata = MetaData()


def _values(enum_cls):
    return [member.value for member in enum_cls]


products_tbl = Table(
    "products",
    metadata,
    Column("id", String, primary_key=True),
    Column("name", String, nullable=False),
    Column("price", BigInteger, nullable=False),
    Column("stock", Integer, nullable=False, default=0),
    Column("is_available", Boolean, nullable=False, default=True),
    Column("is_auto_delivery", Boolean, nullable=False, default=False),
    Column("requires_delivery_data", Boolean, nullable=False, default=False),
    Column("checkout_fields", JSON, nullable=False),
    Column("custom_label", String, nullable=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now())
)


orders_tbl = Table(
    "orders",
    metadata,
    Column("id", String, primary_key=True),
    Column("product_id", String, ForeignKey("products.id"), nullable=False, index=True),
    Column("quantity", Integer, nullable=False),
    Column("subtotal", BigInteger, nullable=False),
    Column("admin_fee", BigInteger, nullable=False, default=0),
    Column("service_fee", BigInteger, nullable=False, default=0),
    Column("tax_amount", BigInteger, nullable=False, default=0),
    Column("total_price", BigInteger, nullable=False),
    Column(
        "status",
        Enum(OrderStatus, name="order_status", native_enum=False, values_callable=_values),
        nullable=False,
        default=OrderStatus.PENDING
    ),
    Column(
        "payment_status",
        Enum(PaymentStatus, name="payment_status", native_enum=False, values_callable=_values),
        nullable=False,
        default=PaymentStatus.UNPAID
    ),
    Column("user_email", String, nullable=False, index=True),
    Column("customer_details", JSON, nullable=False),
    Column("delivery_data", Text, nullable=True),
    Column("midtrans_token", String, nullable=True),
    Column("expires_at", DateTime(timezone=True), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False)
)

Index("ix_orders_status_expires_at", orders_tbl.c.status, orders_tbl.c.expires_at)


inventory_items_tbl = Table(
    "inventory_items",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("product_id", String, ForeignKey("products.id"), nullable=False),
    Column("content", Text, nullable=False),
    Column("is_used", Boolean, nullable=False, default=False),
    Column("claimed_by_order_id", String, ForeignKey("orders.id"), nullable=True, index=True),
    Column("claimed_at", DateTime(timezone=True), nullable=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now())
)

Index("ix_inventory_items_product_unused", inventory_items_tbl.c.product_id, inventory_items_tbl.c.is_used)


shop_settings_tbl = Table(
    "shop_settings",
    metadata,
    Column("key", String, primary_key=True),
    Column("value", JSON, nullable=False),
    Column("updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
)
