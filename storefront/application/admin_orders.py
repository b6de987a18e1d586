import logging
from typing import Optional

from storefront.domain.models import Order, OrderStatus, OPEN_STATUSES
from storefront.domain.exceptions import OrderNotFoundError, InvalidOrderStateError, ValidationError
from storefront.application.fulfillment import restore_manual_stock

logger = logging.getLogger(__name__)


class CompleteOrderUseCase:
    """Ручная выдача: администратор вносит данные и закрывает оплаченный заказ"""

    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, order_id: str, delivery_data: Optional[str]) -> Order:
        delivery_data = (delivery_data or "").strip() or None

        async with self._uow() as uow:
            order = await uow.orders.get_by_id(order_id)
            if not order:
                raise OrderNotFoundError(f"Заказ {order_id} не найден")

            product = await uow.products.get_by_id(order.product_id)
            if product and product.requires_delivery_data and not delivery_data:
                raise ValidationError("Для этого товара нужны данные выдачи")

            completed = await uow.orders.complete(
                order_id, delivery_data, from_statuses=(OrderStatus.PROCESSING,)
            )
            if not completed:
                raise InvalidOrderStateError(
                    f"Заказ {order_id} нельзя выполнить (status: {order.status.value})"
                )
            await uow.commit()
            logger.info(f"Заказ {order_id} выполнен вручную")
            return await uow.orders.get_by_id(order_id)


class CancelOrderUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, order_id: str) -> Order:
        async with self._uow() as uow:
            order = await uow.orders.get_by_id(order_id)
            if not order:
                raise OrderNotFoundError(f"Заказ {order_id} не найден")

            canceled = await uow.orders.cancel(order_id, from_statuses=OPEN_STATUSES)
            if not canceled:
                raise InvalidOrderStateError(
                    f"Заказ {order_id} нельзя отменить (status: {order.status.value})"
                )

            product = await uow.products.get_by_id(order.product_id)
            await restore_manual_stock(uow, product, order.quantity)
            await uow.commit()
            logger.info(f"Заказ {order_id} отменен администратором")
            return await uow.orders.get_by_id(order_id)
