import logging
from enum import Enum
from pydantic import BaseModel
from typing import Optional

from storefront.domain.models import Order, OrderStatus, PaymentStatus, Product, OPEN_STATUSES
from storefront.domain.gateway import map_transaction_status, PaymentSignal
from storefront.domain.exceptions import OrderNotFoundError
from storefront.application.fulfillment import deliver_order, restore_manual_stock, DeliveryResult

logger = logging.getLogger(__name__)


class PaymentNotificationDTO(BaseModel):
    order_id: str
    transaction_status: str
    fraud_status: Optional[str] = None


class ReconcileOutcome(str, Enum):
    COMPLETED = "completed"
    PROCESSING = "processing"
    AWAITING_STOCK = "awaiting_stock"
    CANCELED = "canceled"
    HELD = "held"
    UNCHANGED = "unchanged"
    IGNORED = "ignored"


class ProcessPaymentNotificationUseCase:
    """Обработка уведомлений платежного шлюза.

    Шлюз доставляет уведомления как минимум один раз, возможно повторно и
    параллельно. Каждая запись в заказ выполняется условным UPDATE по текущему статусу,
    так что повтор ничего не меняет, а отмененный заказ не воскресает.
    """

    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, dto: PaymentNotificationDTO) -> ReconcileOutcome:
        logger.info(
            f"Уведомление по заказу {dto.order_id}: "
            f"transaction_status={dto.transaction_status}, fraud_status={dto.fraud_status}"
        )
        transition = map_transaction_status(dto.transaction_status, dto.fraud_status)

        async with self._uow() as uow:
            order = await uow.orders.get_by_id(dto.order_id)
            if not order:
                logger.error(f"Заказ {dto.order_id} из уведомления не найден")
                raise OrderNotFoundError(f"Заказ {dto.order_id} не найден")

            product = await uow.products.get_by_id(order.product_id)

            if transition.is_paid:
                outcome = await self._apply_paid(uow, order, product)
            elif transition.is_failed:
                outcome = await self._apply_failed(uow, order, product)
            elif transition.signal == PaymentSignal.CHALLENGE:
                logger.warning(f"Заказ {order.id}: платеж на проверке (fraud challenge), ждем решения")
                outcome = ReconcileOutcome.HELD
            else:
                outcome = ReconcileOutcome.UNCHANGED

        logger.info(f"Уведомление по заказу {dto.order_id} обработано: {outcome.value}")
        return outcome

    async def _apply_paid(self, uow, order: Order, product: Optional[Product]) -> ReconcileOutcome:
        if order.status == OrderStatus.CANCELED:
            # Деньги пришли после отмены: нужен ручной возврат
            logger.warning(f"Оплата по отмененному заказу {order.id}, заказ не восстанавливается")
        if order.is_terminal():
            return self._terminal_outcome(order)

        auto_delivery = product is not None and product.is_auto_delivery
        if auto_delivery:
            result = await deliver_order(uow, order)
            if result == DeliveryResult.DELIVERED:
                return ReconcileOutcome.COMPLETED
            if result == DeliveryResult.LOST_RACE:
                return await self._reread_outcome(uow, order.id)

        if order.can_be_paid():
            marked = await uow.orders.mark_paid(order.id)
            await uow.commit()
            if not marked:
                return await self._reread_outcome(uow, order.id)
            logger.info(f"Заказ {order.id} оплачен (processing/paid)")

        return ReconcileOutcome.AWAITING_STOCK if auto_delivery else ReconcileOutcome.PROCESSING

    async def _apply_failed(self, uow, order: Order, product: Optional[Product]) -> ReconcileOutcome:
        if not order.can_be_cancelled():
            return self._terminal_outcome(order)

        canceled = await uow.orders.cancel(order.id, OPEN_STATUSES, payment_status=PaymentStatus.EXPIRED)
        if not canceled:
            await uow.rollback()
            return await self._reread_outcome(uow, order.id)

        await restore_manual_stock(uow, product, order.quantity)
        await uow.commit()
        logger.info(f"Заказ {order.id} отменен по уведомлению шлюза")
        return ReconcileOutcome.CANCELED

    async def _reread_outcome(self, uow, order_id: str) -> ReconcileOutcome:
        order = await uow.orders.get_by_id(order_id)
        return self._terminal_outcome(order)

    def _terminal_outcome(self, order: Order) -> ReconcileOutcome:
        if order.status == OrderStatus.CANCELED:
            logger.info(f"Заказ {order.id} уже отменен, уведомление проигнорировано")
            return ReconcileOutcome.IGNORED
        if order.status == OrderStatus.COMPLETED:
            logger.info(f"Заказ {order.id} уже выполнен")
            return ReconcileOutcome.UNCHANGED
        return ReconcileOutcome.UNCHANGED
