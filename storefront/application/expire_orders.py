import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from storefront.domain.models import OrderStatus, PaymentStatus
from storefront.application.fulfillment import restore_manual_stock

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExpireOrdersUseCase:
    """Отмена заказов, у которых истекло окно оплаты.

    Отмена выполняется условным UPDATE (pending/unpaid и expires_at <= now), поэтому
    гонка с поздним вебхуком заканчивается ровно одним победителем.
    """

    def __init__(self, unit_of_work, clock: Optional[Callable[[], datetime]] = None):
        self._uow = unit_of_work
        self._clock = clock or utcnow

    def now(self) -> datetime:
        return self._clock()

    async def expire_order(self, order_id: str) -> bool:
        now = self.now()
        async with self._uow() as uow:
            order = await uow.orders.get_by_id(order_id)
            if not order or not order.is_overdue(now):
                return False

            canceled = await uow.orders.cancel(
                order_id,
                from_statuses=(OrderStatus.PENDING,),
                payment_status=PaymentStatus.EXPIRED,
                overdue_at=now
            )
            if not canceled:
                return False

            product = await uow.products.get_by_id(order.product_id)
            await restore_manual_stock(uow, product, order.quantity)
            await uow.commit()

        logger.info(f"Заказ {order_id} отменен: окно оплаты истекло")
        return True

    async def __call__(self, limit: int = 100) -> int:
        """Обрабатывает просроченные заказы. Возвращает количество отмененных."""
        async with self._uow() as uow:
            overdue = await uow.orders.list_overdue(self.now(), limit=limit)

        expired = 0
        for order_id in overdue:
            if await self.expire_order(order_id):
                expired += 1
        return expired
