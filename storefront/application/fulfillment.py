import logging
from enum import Enum
from typing import Optional

from storefront.domain.models import Order, Product, OPEN_STATUSES
from storefront.domain.exceptions import InsufficientInventoryError

logger = logging.getLogger(__name__)


class DeliveryResult(str, Enum):
    DELIVERED = "delivered"
    AWAITING_STOCK = "awaiting_stock"
    LOST_RACE = "lost_race"


async def deliver_order(uow, order: Order) -> DeliveryResult:
    """Автовыдача: захват единиц, completed + delivery_data и списание остатка.

    Все в одной транзакции uow: либо коммитится целиком, либо откатывается.
    Строка заказа блокируется до захвата единиц, поэтому повторные вызовы по
    одному заказу ждут друг друга и не держат чужие единицы. Заказ закрывается
    условным UPDATE (status in pending/processing), так что выигрывает один.
    """
    locked = await uow.orders.get_for_update(order.id)
    if not locked or not locked.can_be_delivered():
        await uow.rollback()
        logger.info(f"Заказ {order.id} уже закрыт другим обработчиком")
        return DeliveryResult.LOST_RACE

    try:
        items = await uow.inventory.claim(order.product_id, order.id, order.quantity)
    except InsufficientInventoryError as e:
        await uow.rollback()
        logger.warning(f"Заказ {order.id} ждет пополнения: {e}")
        return DeliveryResult.AWAITING_STOCK

    delivery_data = "\n".join(item.content for item in items)
    completed = await uow.orders.complete(order.id, delivery_data, from_statuses=OPEN_STATUSES)
    if not completed:
        await uow.rollback()
        logger.info(f"Заказ {order.id} уже закрыт другим обработчиком, захват откатан")
        return DeliveryResult.LOST_RACE

    await uow.products.adjust_stock(order.product_id, -order.quantity)
    await uow.commit()
    logger.info(f"Заказ {order.id} выдан автоматически ({len(items)} шт.)")
    return DeliveryResult.DELIVERED


async def restore_manual_stock(uow, product: Optional[Product], quantity: int) -> None:
    """Возврат остатка, списанного при оформлении (только для ручной выдачи)"""
    if product is None or product.is_auto_delivery:
        return
    await uow.products.adjust_stock(product.id, quantity)
    logger.info(f"Остаток товара {product.id} восстановлен на {quantity}")


class RedeliverPaidOrdersUseCase:
    """Повторная попытка выдачи оплаченных заказов, которым не хватило единиц.

    Без product_id обходит только товары, у которых есть свободные единицы,
    так что заказы товаров без остатка не загораживают остальные.
    """

    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, product_id: Optional[str] = None, limit: int = 50) -> int:
        if product_id is not None:
            product_ids = [product_id]
        else:
            async with self._uow() as uow:
                product_ids = await uow.orders.list_products_awaiting_delivery(limit=limit)

        delivered = 0
        for pid in product_ids:
            delivered += await self._redeliver_product(pid, limit)
        return delivered

    async def _redeliver_product(self, product_id: str, limit: int) -> int:
        async with self._uow() as uow:
            orders = await uow.orders.list_awaiting_delivery(product_id=product_id, limit=limit)

        if not orders:
            return 0

        logger.info(f"Повторная выдача по товару {product_id}: {len(orders)} заказов в ожидании")
        delivered = 0
        for order in orders:
            async with self._uow() as uow:
                result = await deliver_order(uow, order)
            if result == DeliveryResult.DELIVERED:
                delivered += 1
            elif result == DeliveryResult.AWAITING_STOCK:
                # Очередь по времени создания: после первой нехватки товар пропускаем
                break
        return delivered
