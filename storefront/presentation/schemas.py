from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional, List

from storefront.domain.models import OrderStatus, PaymentStatus


class CreateOrderRequest(BaseModel):
    product_id: str
    quantity: int = 1
    fields: dict[str, str] = Field(default_factory=dict)
    email: Optional[str] = None


class ProductSummary(BaseModel):
    id: str
    name: str
    price: int
    is_auto_delivery: bool
    requires_delivery_data: bool

    @classmethod
    def from_domain(cls, product):
        return cls(
            id=product.id,
            name=product.name,
            price=product.price,
            is_auto_delivery=product.is_auto_delivery,
            requires_delivery_data=product.requires_delivery_data
        )


class OrderResponse(BaseModel):
    id: str
    product_id: str
    quantity: int
    subtotal: int
    admin_fee: int
    service_fee: int
    tax_amount: int
    total_price: int
    status: OrderStatus
    payment_status: PaymentStatus
    user_email: str
    customer_details: dict
    delivery_data: Optional[str] = None
    midtrans_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    product: Optional[ProductSummary] = None

    @classmethod
    def from_domain(cls, order, product=None):
        return cls(
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
            updated_at=order.updated_at,
            product=ProductSummary.from_domain(product) if product else None
        )


class CheckoutResponse(BaseModel):
    order: OrderResponse
    token: str
    redirect_url: Optional[str] = None


class PaymentNotificationRequest(BaseModel):
    """Уведомление Midtrans. Прочие поля шлюза игнорируются."""
    order_id: str
    transaction_status: str
    fraud_status: Optional[str] = None
    status_code: Optional[str] = None
    gross_amount: Optional[str] = None
    signature_key: Optional[str] = None

    @field_validator("status_code", "gross_amount", mode="before")
    @classmethod
    def _as_string(cls, value):
        return str(value) if value is not None else None


class PaymentNotificationResponse(BaseModel):
    status: str = "ok"
    outcome: str


class CompleteOrderRequest(BaseModel):
    delivery_data: Optional[str] = None


class RestockRequest(BaseModel):
    items: List[str]


class RestockResponse(BaseModel):
    product_id: str
    added: int
    available: int
    delivered_orders: int


class FeeSettingsSchema(BaseModel):
    admin_fee_percent: float = 0
    service_fee_percent: float = 0
    tax_percent: float = 0


class ErrorResponse(BaseModel):
    detail: str
