import logging
from typing import List, Optional
from pydantic import BaseModel

from storefront.domain.models import Order, Product
from storefront.domain.exceptions import DomainException, OrderNotFoundError
from storefront.application.expire_orders import ExpireOrdersUseCase

logger = logging.getLogger(__name__)


class OrderDetails(BaseModel):
    order: Order
    product: Optional[Product] = None


async def _expire_quietly(expire_orders: ExpireOrdersUseCase, order_id: str) -> bool:
    """Ленивая отмена при чтении. Ошибка записи не мешает отдать заказ."""
    try:
        return await expire_orders.expire_order(order_id)
    except DomainException as e:
        logger.warning(f"Не удалось отменить просроченный заказ {order_id} при чтении: {e}")
        return False


class GetOrderUseCase:
    def __init__(self, unit_of_work, expire_orders: ExpireOrdersUseCase):
        self._uow = unit_of_work
        self._expire_orders = expire_orders

    async def __call__(self, order_id: str) -> OrderDetails:
        # Просроченный заказ отменяется при чтении, не дожидаясь фонового воркера
        await _expire_quietly(self._expire_orders, order_id)

        async with self._uow() as uow:
            order = await uow.orders.get_by_id(order_id)
            if not order:
                raise OrderNotFoundError(f"Заказ {order_id} не найден")
            product = await uow.products.get_by_id(order.product_id)
            return OrderDetails(order=order, product=product)


class ListOrdersByEmailUseCase:
    def __init__(self, unit_of_work, expire_orders: ExpireOrdersUseCase):
        self._uow = unit_of_work
        self._expire_orders = expire_orders

    async def __call__(self, email: str) -> List[Order]:
        async with self._uow() as uow:
            orders = await uow.orders.list_by_email(email)

        refreshed = False
        for order in orders:
            if order.is_overdue(self._expire_orders.now()):
                refreshed |= await _expire_quietly(self._expire_orders, order.id)

        if not refreshed:
            return orders
        async with self._uow() as uow:
            return await uow.orders.list_by_email(email)
