import logging
from pydantic import BaseModel, Field
from datetime import datetime, timedelta, timezone
from typing import Optional
import uuid

from storefront.domain.models import Order, OrderStatus, PaymentStatus, Product, FeeSettings
from storefront.domain.pricing import calculate_pricing, build_item_details
from storefront.domain.exceptions import (
    ValidationError, ProductNotFoundError, InsufficientStockError, PaymentGatewayError
)
from storefront.application.interfaces import PaymentsService


logger = logging.getLogger(__name__)

DEFAULT_CONTACT_EMAIL = "no-reply@storefront.local"


class CreateOrderDTO(BaseModel):
    product_id: str
    quantity: int = 1
    fields: dict[str, str] = Field(default_factory=dict)
    email: Optional[str] = None


class CheckoutResult(BaseModel):
    order: Order
    token: str
    redirect_url: Optional[str] = None


def _value(fields: dict, name: str) -> str:
    return (fields.get(name) or "").strip()


def build_customer_details(fields: dict) -> dict:
    details = {
        "target_id": (
            _value(fields, "user_id") or _value(fields, "phone")
            or _value(fields, "email") or _value(fields, "custom") or "N/A"
        ),
        "phone": _value(fields, "phone") or _value(fields, "user_id"),
    }
    if _value(fields, "server_id"):
        details["server_id"] = _value(fields, "server_id")
    if _value(fields, "custom"):
        details["custom"] = _value(fields, "custom")
    return details


class CreateOrderUseCase:
    def __init__(
        self,
        unit_of_work,
        payments_service: PaymentsService,
        default_fees: FeeSettings,
        payment_window: timedelta = timedelta(minutes=30)
    ):
        self._uow = unit_of_work
        self._payments = payments_service
        self._default_fees = default_fees
        self._payment_window = payment_window

    async def __call__(self, order_data: CreateOrderDTO) -> CheckoutResult:
        logger.info(f"Оформление заказа: товар {order_data.product_id}, количество {order_data.quantity}")

        if order_data.quantity < 1:
            raise ValidationError("Количество должно быть не меньше 1")

        # 1. Заказ и резерв остатка в одной транзакции, до любых сетевых вызовов
        async with self._uow() as uow:
            product = await uow.products.get_by_id(order_data.product_id)
            if not product or not product.is_available:
                raise ProductNotFoundError(f"Товар {order_data.product_id} не найден")

            missing = [name for name in product.checkout_fields if not _value(order_data.fields, name)]
            if missing:
                raise ValidationError(f"Не заполнены поля: {', '.join(missing)}")

            fees = await uow.settings.get_fee_settings() or self._default_fees
            pricing = calculate_pricing(product.price, order_data.quantity, fees)
            item_details = build_item_details(product, order_data.quantity, pricing, fees)

            await self._hold_stock(uow, product, order_data.quantity)

            email = (order_data.email or _value(order_data.fields, "email") or DEFAULT_CONTACT_EMAIL).strip()
            now = datetime.now(timezone.utc)
            order = Order(
                id=str(uuid.uuid4()),
                product_id=product.id,
                quantity=order_data.quantity,
                subtotal=pricing.subtotal,
                admin_fee=pricing.admin_fee,
                service_fee=pricing.service_fee,
                tax_amount=pricing.tax_amount,
                total_price=pricing.total_price,
                status=OrderStatus.PENDING,
                payment_status=PaymentStatus.UNPAID,
                user_email=email,
                customer_details=build_customer_details(order_data.fields),
                expires_at=now + self._payment_window,
                created_at=now,
                updated_at=now
            )
            await uow.orders.create(order)
            await uow.commit()
        logger.info(f"Заказ создан: {order.id}, сумма {order.total_price}")

        # 2. Платежная сессия. При ошибке заказ остается pending/unpaid и уйдет в отмену по таймауту
        try:
            session = await self._payments.create_session(
                order_id=order.id,
                gross_amount=order.total_price,
                item_details=item_details,
                customer_details={
                    "email": email,
                    "first_name": email.split("@")[0],
                    "phone": order.customer_details.get("phone", "")
                }
            )
        except PaymentGatewayError as e:
            logger.error(f"Не удалось создать платежную сессию для {order.id}: {e}")
            raise

        async with self._uow() as uow:
            await uow.orders.update_payment_token(order.id, session["token"])
            await uow.commit()
        order.midtrans_token = session["token"]

        return CheckoutResult(order=order, token=session["token"], redirect_url=session.get("redirect_url"))

    async def _hold_stock(self, uow, product: Product, quantity: int) -> None:
        if product.is_auto_delivery:
            # Единицы захватываются только после оплаты, здесь лишь проверка
            if product.stock < quantity:
                raise InsufficientStockError(product.stock, quantity)
            return
        if not await uow.products.reserve_stock(product.id, quantity):
            raise InsufficientStockError(product.stock, quantity)
