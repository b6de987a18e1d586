import logging
from datetime import timedelta
from typing import List, Optional
from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.database import get_session_factory
from storefront.presentation.schemas import (
    CreateOrderRequest, OrderResponse, CheckoutResponse, PaymentNotificationRequest,
    PaymentNotificationResponse, CompleteOrderRequest, RestockRequest, RestockResponse,
    FeeSettingsSchema, ErrorResponse
)
from storefront.application.create_order import CreateOrderUseCase, CreateOrderDTO
from storefront.application.get_order import GetOrderUseCase, ListOrdersByEmailUseCase
from storefront.application.expire_orders import ExpireOrdersUseCase
from storefront.application.process_payment import ProcessPaymentNotificationUseCase, PaymentNotificationDTO
from storefront.application.admin_orders import CompleteOrderUseCase, CancelOrderUseCase
from storefront.application.fulfillment import RedeliverPaidOrdersUseCase
from storefront.application.restock import RestockProductUseCase
from storefront.application.fee_settings import GetFeeSettingsUseCase, UpdateFeeSettingsUseCase
from storefront.application.interfaces import PaymentsService
from storefront.domain.models import FeeSettings
from storefront.domain.exceptions import (
    ValidationError, ProductNotFoundError, OrderNotFoundError, InsufficientStockError,
    InvalidOrderStateError, UnknownTransactionStatusError, InvalidSignatureError,
    PaymentGatewayError, StoreUnavailableError
)
from storefront.infrastructure.unit_of_work import UnitOfWork
from storefront.infrastructure.http_clients import MidtransSnapClient
from storefront.infrastructure.signature import NotificationVerifier
from storefront.config import settings

logger = logging.getLogger(__name__)

router = APIRouter()


def _raise_http_error(e: Exception) -> None:
    if isinstance(e, ValidationError):
        raise HTTPException(status_code=422, detail=str(e)) from e
    if isinstance(e, (ProductNotFoundError, OrderNotFoundError)):
        raise HTTPException(status_code=404, detail=str(e)) from e
    if isinstance(e, (InsufficientStockError, InvalidOrderStateError)):
        raise HTTPException(status_code=409, detail=str(e)) from e
    if isinstance(e, UnknownTransactionStatusError):
        raise HTTPException(status_code=400, detail=str(e)) from e
    if isinstance(e, InvalidSignatureError):
        raise HTTPException(status_code=401, detail=str(e)) from e
    if isinstance(e, PaymentGatewayError):
        raise HTTPException(status_code=502, detail=str(e)) from e
    if isinstance(e, StoreUnavailableError):
        raise HTTPException(status_code=503, detail="Хранилище недоступно") from e
    raise e


# Фабрики для создания зависимостей и use cases
def get_unit_of_work(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory)
) -> UnitOfWork:
    return UnitOfWork(session_factory)


def get_payments_service() -> PaymentsService:
    finish_url = f"{settings.SERVICE_URL}/orders" if settings.SERVICE_URL else ""
    return MidtransSnapClient(settings.MIDTRANS_SNAP_URL, settings.MIDTRANS_SERVER_KEY, finish_url)


def get_notification_verifier() -> NotificationVerifier:
    return NotificationVerifier(settings.MIDTRANS_SERVER_KEY, enabled=settings.WEBHOOK_VERIFY_SIGNATURE)


def get_default_fees() -> FeeSettings:
    return FeeSettings(
        admin_fee_percent=settings.ADMIN_FEE_PERCENT,
        service_fee_percent=settings.SERVICE_FEE_PERCENT,
        tax_percent=settings.TAX_PERCENT
    )


def require_admin(x_admin_token: Optional[str] = Header(default=None)) -> None:
    if not settings.ADMIN_API_TOKEN or x_admin_token != settings.ADMIN_API_TOKEN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Нет доступа")


def get_create_order_use_case(
    uow: UnitOfWork = Depends(get_unit_of_work),
    payments: PaymentsService = Depends(get_payments_service),
    default_fees: FeeSettings = Depends(get_default_fees)
):
    window = timedelta(minutes=settings.PAYMENT_WINDOW_MINUTES)
    return CreateOrderUseCase(uow, payments, default_fees, window)


def get_expire_orders_use_case(uow: UnitOfWork = Depends(get_unit_of_work)):
    return ExpireOrdersUseCase(uow)


def get_get_order_use_case(
    uow: UnitOfWork = Depends(get_unit_of_work),
    expire_orders: ExpireOrdersUseCase = Depends(get_expire_orders_use_case)
):
    return GetOrderUseCase(uow, expire_orders)


def get_list_orders_use_case(
    uow: UnitOfWork = Depends(get_unit_of_work),
    expire_orders: ExpireOrdersUseCase = Depends(get_expire_orders_use_case)
):
    return ListOrdersByEmailUseCase(uow, expire_orders)


def get_process_payment_use_case(uow: UnitOfWork = Depends(get_unit_of_work)):
    return ProcessPaymentNotificationUseCase(uow)


def get_restock_use_case(uow: UnitOfWork = Depends(get_unit_of_work)):
    return RestockProductUseCase(uow, RedeliverPaidOrdersUseCase(uow))


@router.post(
    "/orders",
    response_model=CheckoutResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    status_code=status.HTTP_201_CREATED
)
async def create_order(
    request: CreateOrderRequest,
    use_case: CreateOrderUseCase = Depends(get_create_order_use_case)
):
    """Оформить заказ и получить токен платежной сессии"""
    try:
        result = await use_case(CreateOrderDTO(**request.model_dump()))
    except Exception as e:
        _raise_http_error(e)
    return CheckoutResponse(
        order=OrderResponse.from_domain(result.order),
        token=result.token,
        redirect_url=result.redirect_url
    )


@router.get(
    "/orders/{order_id}",
    response_model=OrderResponse,
    responses={404: {"model": ErrorResponse}}
)
async def get_order(
    order_id: str,
    use_case: GetOrderUseCase = Depends(get_get_order_use_case)
):
    """Получить заказ по ID"""
    try:
        details = await use_case(order_id)
    except Exception as e:
        _raise_http_error(e)
    return OrderResponse.from_domain(details.order, details.product)


@router.get("/orders", response_model=List[OrderResponse])
async def list_orders(
    email: str = Query(..., min_length=3),
    use_case: ListOrdersByEmailUseCase = Depends(get_list_orders_use_case)
):
    """Заказы покупателя по email"""
    try:
        orders = await use_case(email)
    except Exception as e:
        _raise_http_error(e)
    return [OrderResponse.from_domain(order) for order in orders]


@router.post(
    "/payments/notification",
    response_model=PaymentNotificationResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}
)
async def payment_notification(
    notification: PaymentNotificationRequest,
    verifier: NotificationVerifier = Depends(get_notification_verifier),
    use_case: ProcessPaymentNotificationUseCase = Depends(get_process_payment_use_case)
):
    """Обработка уведомления от Midtrans"""
    try:
        verifier.verify(
            notification.order_id,
            notification.status_code,
            notification.gross_amount,
            notification.signature_key
        )
        outcome = await use_case(PaymentNotificationDTO(
            order_id=notification.order_id,
            transaction_status=notification.transaction_status,
            fraud_status=notification.fraud_status
        ))
    except InvalidSignatureError as e:
        logger.warning(f"Отклонено уведомление: {e}")
        _raise_http_error(e)
    except Exception as e:
        _raise_http_error(e)
    return PaymentNotificationResponse(outcome=outcome.value)


@router.get("/settings/fees", response_model=FeeSettingsSchema)
async def get_fee_settings(
    uow: UnitOfWork = Depends(get_unit_of_work),
    default_fees: FeeSettings = Depends(get_default_fees)
):
    try:
        fees = await GetFeeSettingsUseCase(uow, default_fees)()
    except Exception as e:
        _raise_http_error(e)
    return FeeSettingsSchema(**fees.model_dump())


@router.put(
    "/admin/settings/fees",
    response_model=FeeSettingsSchema,
    dependencies=[Depends(require_admin)]
)
async def update_fee_settings(
    request: FeeSettingsSchema,
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    try:
        fees = await UpdateFeeSettingsUseCase(uow)(FeeSettings(**request.model_dump()))
    except Exception as e:
        _raise_http_error(e)
    return FeeSettingsSchema(**fees.model_dump())


@router.post(
    "/admin/orders/{order_id}/complete",
    response_model=OrderResponse,
    dependencies=[Depends(require_admin)]
)
async def complete_order(
    order_id: str,
    request: CompleteOrderRequest,
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    """Выполнить заказ вручную"""
    try:
        order = await CompleteOrderUseCase(uow)(order_id, request.delivery_data)
    except Exception as e:
        _raise_http_error(e)
    return OrderResponse.from_domain(order)


@router.post(
    "/admin/orders/{order_id}/cancel",
    response_model=OrderResponse,
    dependencies=[Depends(require_admin)]
)
async def cancel_order(
    order_id: str,
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    """Отменить заказ"""
    try:
        order = await CancelOrderUseCase(uow)(order_id)
    except Exception as e:
        _raise_http_error(e)
    return OrderResponse.from_domain(order)


@router.post(
    "/admin/products/{product_id}/stock-items",
    response_model=RestockResponse,
    dependencies=[Depends(require_admin)]
)
async def restock_product(
    product_id: str,
    request: RestockRequest,
    use_case: RestockProductUseCase = Depends(get_restock_use_case)
):
    """Пополнить единицы выдачи и выдать ожидающие заказы"""
    try:
        result = await use_case(product_id, request.items)
    except Exception as e:
        _raise_http_error(e)
    return RestockResponse(**result.model_dump())
