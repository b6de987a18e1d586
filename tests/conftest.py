import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest
from sqlalchemy import select

from storefront.application.interfaces import PaymentsService
from storefront.database import make_async_engine
from storefront.domain.exceptions import PaymentGatewayError
from storefront.domain.models import Order, OrderStatus, PaymentStatus, Product
from storefront.infrastructure.db_schema import metadata, inventory_items_tbl
from storefront.infrastructure.unit_of_work import UnitOfWork


class FakePayments(PaymentsService):
    """Платежный шлюз в памяти: запоминает запросы, выдает токены"""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: List[dict] = []

    async def create_session(self, order_id, gross_amount, item_details, customer_details) -> dict:
        self.calls.append({
            "order_id": order_id,
            "gross_amount": gross_amount,
            "item_details": item_details,
            "customer_details": customer_details,
        })
        if self.fail:
            raise PaymentGatewayError("Midtrans ошибка: 500")
        return {"token": f"snap-{order_id}", "redirect_url": f"https://pay.example/{order_id}"}


@pytest.fixture
async def session_factory(tmp_path):
    engine, factory = make_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'storefront.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    yield factory
    await engine.dispose()


@pytest.fixture
def uow(session_factory):
    return UnitOfWork(session_factory)


@pytest.fixture
def payments():
    return FakePayments()


async def create_product(uow, *, auto: bool = True, stock: int = 0, price: int = 10000, **extra) -> Product:
    product = Product(
        id=extra.pop("id", f"prod-{uuid.uuid4().hex[:8]}"),
        name=extra.pop("name", "Diamonds x100"),
        price=price,
        stock=stock,
        is_auto_delivery=auto,
        **extra
    )
    async with uow() as tx:
        await tx.products.create(product)
        await tx.commit()
    return product


async def add_items(uow, product_id: str, contents: List[str]) -> None:
    async with uow() as tx:
        added = await tx.inventory.add_items(product_id, contents)
        await tx.products.adjust_stock(product_id, added)
        await tx.commit()


async def create_order(
    uow,
    product: Product,
    quantity: int = 1,
    *,
    expires_at: Optional[datetime] = None,
    status: OrderStatus = OrderStatus.PENDING,
    payment_status: PaymentStatus = PaymentStatus.UNPAID,
    email: str = "buyer@example.com",
) -> Order:
    now = datetime.now(timezone.utc)
    subtotal = product.price * quantity
    order = Order(
        id=str(uuid.uuid4()),
        product_id=product.id,
        quantity=quantity,
        subtotal=subtotal,
        admin_fee=0,
        service_fee=0,
        tax_amount=0,
        total_price=subtotal,
        status=status,
        payment_status=payment_status,
        user_email=email,
        customer_details={"target_id": "12345", "phone": ""},
        expires_at=expires_at or now + timedelta(minutes=30),
        created_at=now,
        updated_at=now,
    )
    async with uow() as tx:
        await tx.orders.create(order)
        await tx.commit()
    return order


async def get_order(uow, order_id: str) -> Order:
    async with uow() as tx:
        return await tx.orders.get_by_id(order_id)


async def get_product(uow, product_id: str) -> Product:
    async with uow() as tx:
        return await tx.products.get_by_id(product_id)


async def all_items(session_factory, product_id: str):
    async with session_factory() as session:
        result = await session.execute(
            select(inventory_items_tbl)
            .where(inventory_items_tbl.c.product_id == product_id)
            .order_by(inventory_items_tbl.c.id)
        )
        return result.fetchall()
