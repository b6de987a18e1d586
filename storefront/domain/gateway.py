"""Сопоставление статусов платежного шлюза с внутренними статусами заказа.

Чистые функции без побочных эффектов. Неизвестный статус шлюза считается ошибкой,
а не молчаливым pending.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from storefront.domain.models import OrderStatus, PaymentStatus
from storefront.domain.exceptions import UnknownTransactionStatusError


class TransactionStatus(str, Enum):
    CAPTURE = "capture"
    SETTLEMENT = "settlement"
    PENDING = "pending"
    AUTHORIZE = "authorize"
    CANCEL = "cancel"
    DENY = "deny"
    EXPIRE = "expire"
    FAILURE = "failure"
    REFUND = "refund"
    PARTIAL_REFUND = "partial_refund"
    CHARGEBACK = "chargeback"
    PARTIAL_CHARGEBACK = "partial_chargeback"


class PaymentSignal(str, Enum):
    """Сигнал шлюза до нормализации (challenge и failed в БД не пишутся)"""
    PAID = "paid"
    CHALLENGE = "challenge"
    FAILED = "failed"
    UNPAID = "unpaid"


SETTLED = (TransactionStatus.CAPTURE, TransactionStatus.SETTLEMENT)
FAILED = (
    TransactionStatus.CANCEL,
    TransactionStatus.DENY,
    TransactionStatus.EXPIRE,
    TransactionStatus.FAILURE,
)


@dataclass(frozen=True)
class PaymentTransition:
    signal: PaymentSignal
    payment_status: PaymentStatus
    # None: статус заказа не меняется
    order_status: Optional[OrderStatus]

    @property
    def is_paid(self) -> bool:
        return self.signal == PaymentSignal.PAID

    @property
    def is_failed(self) -> bool:
        return self.signal == PaymentSignal.FAILED


def parse_transaction_status(raw: str) -> TransactionStatus:
    try:
        return TransactionStatus((raw or "").strip().lower())
    except ValueError:
        raise UnknownTransactionStatusError(f"Неизвестный transaction_status: {raw!r}")


def map_transaction_status(transaction_status: str, fraud_status: Optional[str] = None) -> PaymentTransition:
    status = parse_transaction_status(transaction_status)
    fraud = (fraud_status or "").strip().lower()

    if status in SETTLED:
        if fraud == "challenge":
            return PaymentTransition(PaymentSignal.CHALLENGE, PaymentStatus.UNPAID, None)
        return PaymentTransition(PaymentSignal.PAID, PaymentStatus.PAID, OrderStatus.PROCESSING)

    if status in FAILED:
        return PaymentTransition(PaymentSignal.FAILED, PaymentStatus.EXPIRED, OrderStatus.CANCELED)

    return PaymentTransition(PaymentSignal.UNPAID, PaymentStatus.UNPAID, OrderStatus.PENDING)
