from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELED = "canceled"


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    EXPIRED = "expired"


TERMINAL_STATUSES = (OrderStatus.COMPLETED, OrderStatus.CANCELED)
OPEN_STATUSES = (OrderStatus.PENDING, OrderStatus.PROCESSING)


class Order(BaseModel):
    """Domain Entity — заказ"""
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
    customer_details: dict = Field(default_factory=dict)
    delivery_data: Optional[str] = None
    midtrans_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def can_be_paid(self) -> bool:
        """Бизнес-правило: оплату принимает только pending заказ"""
        return self.status == OrderStatus.PENDING

    def can_be_delivered(self) -> bool:
        """Бизнес-правило: выдать можно только незавершенный и неотмененный заказ"""
        return self.status in OPEN_STATUSES

    def can_be_cancelled(self) -> bool:
        """Бизнес-правило: отменить можно только pending или processing"""
        return self.status in OPEN_STATUSES

    def is_overdue(self, now: datetime) -> bool:
        """Бизнес-правило: окно оплаты истекло, а оплаты так и не было"""
        return (
            self.status == OrderStatus.PENDING
            and self.payment_status == PaymentStatus.UNPAID
            and self.expires_at is not None
            and self.expires_at <= now
        )


class Product(BaseModel):
    """Value Object — товар витрины (ведется вне ядра)"""
    id: str
    name: str
    price: int
    stock: int
    is_available: bool = True
    is_auto_delivery: bool = False
    requires_delivery_data: bool = False
    checkout_fields: list[str] = Field(default_factory=lambda: ["user_id"])
    custom_label: Optional[str] = None
    created_at: Optional[datetime] = None


class InventoryItem(BaseModel):
    """Единица выдачи: ключ, ваучер или логин:пароль"""
    id: int
    product_id: str
    content: str
    is_used: bool
    claimed_by_order_id: Optional[str] = None
    claimed_at: Optional[datetime] = None


class FeeSettings(BaseModel):
    admin_fee_percent: float = 0
    service_fee_percent: float = 0
    tax_percent: float = 0
