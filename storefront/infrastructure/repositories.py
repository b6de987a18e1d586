from typing import Optional, List, Sequence
from datetime import datetime, timezone
from sqlalchemy import select, insert, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.domain.models import (
    Order, OrderStatus, PaymentStatus, Product, InventoryItem, FeeSettings, OPEN_STATUSES
)
from storefront.domain.exceptions import InsufficientInventoryError
from storefront.infrastructure.db_schema import orders_tbl, products_tbl, inventory_items_tbl, shop_settings_tbl
from storefront.application.interfaces import (
    OrderRepository, ProductRepository, InventoryRepository, SettingsRepository
)

FEE_SETTINGS_KEY = "fee_settings"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite отдает naive datetime; в БД все пишется в UTC"""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SQLAlchemyOrderRepository(OrderRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        result = await self._session.execute(
            select(orders_tbl).where(orders_tbl.c.id == order_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def get_for_update(self, order_id: str) -> Optional[Order]:
        """Чтение с блокировкой строки заказа до конца транзакции (Postgres)"""
        result = await self._session.execute(
            select(orders_tbl).where(orders_tbl.c.id == order_id).with_for_update()
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def list_by_email(self, email: str, limit: int = 50) -> List[Order]:
        result = await self._session.execute(
            select(orders_tbl)
            .where(orders_tbl.c.user_email == email)
            .order_by(orders_tbl.c.created_at.desc())
            .limit(limit)
        )
        return [self._to_domain(row) for row in result.fetchall()]

    async def create(self, order: Order) -> None:
        stmt = insert(orders_tbl).values(
            id=order.id,
            product_id=order.product_id,
            quantity=order.quantity,
            subtotal=order.subtotal,
            admin_fee=order.admin_fee,
            service_fee=order.service_fee,
            tax_amount=order.tax_amount,
            total_price=order.total_price,
            status=order.status,
            payment_status=order.payment_status,
            user_email=order.user_email,
            customer_details=order.customer_details,
            delivery_data=order.delivery_data,
            midtrans_token=order.midtrans_token,
            expires_at=order.expires_at,
            created_at=order.created_at,
            updated_at=order.updated_at
        )
        await self._session.execute(stmt)

    async def update_payment_token(self, order_id: str, token: str) -> None:
        stmt = (
            update(orders_tbl)
            .where(orders_tbl.c.id == order_id)
            .values(
                midtrans_token=token,
                updated_at=_utcnow()
            )
        )
        await self._session.execute(stmt)

    async def mark_paid(self, order_id: str) -> bool:
        """pending -> processing/paid. Повтор ничего не меняет."""
        stmt = (
            update(orders_tbl)
            .where(
                orders_tbl.c.id == order_id,
                orders_tbl.c.status == OrderStatus.PENDING
            )
            .values(
                status=OrderStatus.PROCESSING,
                payment_status=PaymentStatus.PAID,
                expires_at=None,
                updated_at=_utcnow()
            )
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def complete(self, order_id: str, delivery_data: Optional[str], from_statuses: Sequence[OrderStatus]) -> bool:
        """Условный переход в completed: выигрывает только один конкурент"""
        stmt = (
            update(orders_tbl)
            .where(
                orders_tbl.c.id == order_id,
                orders_tbl.c.status.in_(list(from_statuses))
            )
            .values(
                status=OrderStatus.COMPLETED,
                payment_status=PaymentStatus.PAID,
                delivery_data=delivery_data,
                expires_at=None,
                updated_at=_utcnow()
            )
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def cancel(
        self,
        order_id: str,
        from_statuses: Sequence[OrderStatus] = OPEN_STATUSES,
        payment_status: Optional[PaymentStatus] = None,
        overdue_at: Optional[datetime] = None
    ) -> bool:
        conditions = [
            orders_tbl.c.id == order_id,
            orders_tbl.c.status.in_(list(from_statuses))
        ]
        if overdue_at is not None:
            conditions.append(orders_tbl.c.payment_status == PaymentStatus.UNPAID)
            conditions.append(orders_tbl.c.expires_at <= overdue_at)

        values = dict(status=OrderStatus.CANCELED, expires_at=None, updated_at=_utcnow())
        if payment_status is not None:
            values["payment_status"] = payment_status

        result = await self._session.execute(
            update(orders_tbl).where(*conditions).values(**values)
        )
        return result.rowcount == 1

    async def list_overdue(self, now: datetime, limit: int = 100) -> List[str]:
        result = await self._session.execute(
            select(orders_tbl.c.id)
            .where(
                orders_tbl.c.status == OrderStatus.PENDING,
                orders_tbl.c.payment_status == PaymentStatus.UNPAID,
                orders_tbl.c.expires_at <= now
            )
            .order_by(orders_tbl.c.expires_at.asc())
            .limit(limit)
        )
        return [row.id for row in result.fetchall()]

    async def list_awaiting_delivery(self, product_id: Optional[str] = None, limit: int = 50) -> List[Order]:
        """Оплаченные, но не выданные заказы товаров с автовыдачей"""
        stmt = (
            select(orders_tbl)
            .join(products_tbl, products_tbl.c.id == orders_tbl.c.product_id)
            .where(
                orders_tbl.c.status == OrderStatus.PROCESSING,
                orders_tbl.c.payment_status == PaymentStatus.PAID,
                products_tbl.c.is_auto_delivery.is_(True)
            )
            .order_by(orders_tbl.c.created_at.asc())
            .limit(limit)
        )
        if product_id is not None:
            stmt = stmt.where(orders_tbl.c.product_id == product_id)
        result = await self._session.execute(stmt)
        return [self._to_domain(row) for row in result.fetchall()]

    async def list_products_awaiting_delivery(self, limit: int = 50) -> List[str]:
        """Товары, у которых есть и ожидающие выдачи заказы, и свободные единицы"""
        has_items = (
            select(inventory_items_tbl.c.id)
            .where(
                inventory_items_tbl.c.product_id == orders_tbl.c.product_id,
                inventory_items_tbl.c.is_used.is_(False)
            )
            .exists()
        )
        result = await self._session.execute(
            select(orders_tbl.c.product_id)
            .join(products_tbl, products_tbl.c.id == orders_tbl.c.product_id)
            .where(
                orders_tbl.c.status == OrderStatus.PROCESSING,
                orders_tbl.c.payment_status == PaymentStatus.PAID,
                products_tbl.c.is_auto_delivery.is_(True),
                has_items
            )
            .group_by(orders_tbl.c.product_id)
            .order_by(func.min(orders_tbl.c.created_at).asc())
            .limit(limit)
        )
        return [row.product_id for row in result.fetchall()]

    def _to_domain(self, row) -> Order:
        """Трансформация DB → Domain"""
        return Order(
            id=row.id,
            product_id=row.product_id,
            quantity=row.quantity,
            subtotal=row.subtotal,
            admin_fee=row.admin_fee,
            service_fee=row.service_fee,
            tax_amount=row.tax_amount,
            total_price=row.total_price,
            status=OrderStatus(row.status),
            payment_status=PaymentStatus(row.payment_status),
            user_email=row.user_email,
            customer_details=row.customer_details or {},
            delivery_data=row.delivery_data,
            midtrans_token=row.midtrans_token,
            expires_at=_aware(row.expires_at),
            created_at=_aware(row.created_at),
            updated_at=_aware(row.updated_at)
        )


class SQLAlchemyProductRepository(ProductRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, product_id: str) -> Optional[Product]:
        result = await self._session.execute(
            select(products_tbl).where(products_tbl.c.id == product_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def create(self, product: Product) -> None:
        stmt = insert(products_tbl).values(
            id=product.id,
            name=product.name,
            price=product.price,
            stock=product.stock,
            is_available=product.is_available,
            is_auto_delivery=product.is_auto_delivery,
            requires_delivery_data=product.requires_delivery_data,
            checkout_fields=product.checkout_fields,
            custom_label=product.custom_label
        )
        await self._session.execute(stmt)

    async def reserve_stock(self, product_id: str, quantity: int) -> bool:
        """Атомарное списание: UPDATE ... WHERE stock >= quantity"""
        result = await self._session.execute(
            update(products_tbl)
            .where(
                products_tbl.c.id == product_id,
                products_tbl.c.stock >= quantity
            )
            .values(stock=products_tbl.c.stock - quantity)
        )
        return result.rowcount == 1

    async def adjust_stock(self, product_id: str, delta: int) -> None:
        await self._session.execute(
            update(products_tbl)
            .where(products_tbl.c.id == product_id)
            .values(stock=products_tbl.c.stock + delta)
        )

    def _to_domain(self, row) -> Product:
        return Product(
            id=row.id,
            name=row.name,
            price=row.price,
            stock=row.stock,
            is_available=row.is_available,
            is_auto_delivery=row.is_auto_delivery,
            requires_delivery_data=row.requires_delivery_data,
            checkout_fields=list(row.checkout_fields or []),
            custom_label=row.custom_label,
            created_at=_aware(row.created_at)
        )


class SQLAlchemyInventoryRepository(InventoryRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def add_items(self, product_id: str, contents: List[str]) -> int:
        if not contents:
            return 0
        await self._session.execute(
            insert(inventory_items_tbl),
            [
                {"product_id": product_id, "content": content, "is_used": False}
                for content in contents
            ]
        )
        return len(contents)

    async def claim(self, product_id: str, order_id: str, quantity: int) -> List[InventoryItem]:
        """Захват quantity свободных единиц одним UPDATE ... RETURNING.

        Подзапрос блокирует строки (FOR UPDATE SKIP LOCKED на Postgres), внешнее
        условие is_used = false повторно проверяет их под блокировкой. Если
        вернулось меньше quantity строк, то InsufficientInventoryError; вызывающий
        обязан откатить транзакцию, частичный захват не сохраняется.
        """
        candidates = (
            select(inventory_items_tbl.c.id)
            .where(
                inventory_items_tbl.c.product_id == product_id,
                inventory_items_tbl.c.is_used.is_(False)
            )
            .order_by(inventory_items_tbl.c.id.asc())
            .limit(quantity)
            .with_for_update(skip_locked=True)
        )
        stmt = (
            update(inventory_items_tbl)
            .where(
                inventory_items_tbl.c.id.in_(candidates),
                inventory_items_tbl.c.is_used.is_(False)
            )
            .values(
                is_used=True,
                claimed_by_order_id=order_id,
                claimed_at=_utcnow()
            )
            .returning(
                inventory_items_tbl.c.id,
                inventory_items_tbl.c.product_id,
                inventory_items_tbl.c.content,
                inventory_items_tbl.c.is_used,
                inventory_items_tbl.c.claimed_by_order_id,
                inventory_items_tbl.c.claimed_at
            )
        )
        result = await self._session.execute(stmt)
        items = sorted((self._to_domain(row) for row in result.fetchall()), key=lambda item: item.id)
        if len(items) < quantity:
            raise InsufficientInventoryError(len(items), quantity)
        return items

    async def count_available(self, product_id: str) -> int:
        result = await self._session.execute(
            select(func.count())
            .select_from(inventory_items_tbl)
            .where(
                inventory_items_tbl.c.product_id == product_id,
                inventory_items_tbl.c.is_used.is_(False)
            )
        )
        return result.scalar_one()

    async def list_by_order(self, order_id: str) -> List[InventoryItem]:
        result = await self._session.execute(
            select(inventory_items_tbl)
            .where(inventory_items_tbl.c.claimed_by_order_id == order_id)
            .order_by(inventory_items_tbl.c.id.asc())
        )
        return [self._to_domain(row) for row in result.fetchall()]

    def _to_domain(self, row) -> InventoryItem:
        return InventoryItem(
            id=row.id,
            product_id=row.product_id,
            content=row.content,
            is_used=row.is_used,
            claimed_by_order_id=row.claimed_by_order_id,
            claimed_at=_aware(row.claimed_at)
        )


class SQLAlchemySettingsRepository(SettingsRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_fee_settings(self) -> Optional[FeeSettings]:
        result = await self._session.execute(
            select(shop_settings_tbl.c.value).where(shop_settings_tbl.c.key == FEE_SETTINGS_KEY)
        )
        value = result.scalar_one_or_none()
        return FeeSettings(**value) if value else None

    async def save_fee_settings(self, fees: FeeSettings) -> None:
        result = await self._session.execute(
            update(shop_settings_tbl)
            .where(shop_settings_tbl.c.key == FEE_SETTINGS_KEY)
            .values(value=fees.model_dump())
        )
        if result.rowcount == 0:
            await self._session.execute(
                insert(shop_settings_tbl).values(key=FEE_SETTINGS_KEY, value=fees.model_dump())
            )
