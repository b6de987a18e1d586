import pytest

from storefront.domain.exceptions import UnknownTransactionStatusError
from storefront.domain.gateway import map_transaction_status, PaymentSignal
from storefront.domain.models import OrderStatus, PaymentStatus
from storefront.infrastructure.signature import NotificationVerifier, notification_signature
from storefront.domain.exceptions import InvalidSignatureError


@pytest.mark.parametrize("status", ["capture", "settlement"])
def test_settled_without_fraud_flag_is_paid(status) -> None:
    for fraud in (None, "accept", ""):
        transition = map_transaction_status(status, fraud)
        assert transition.signal == PaymentSignal.PAID
        assert transition.payment_status == PaymentStatus.PAID
        assert transition.order_status == OrderStatus.PROCESSING


def test_fraud_challenge_is_held_and_keeps_order_status() -> None:
    transition = map_transaction_status("capture", "challenge")

    assert transition.signal == PaymentSignal.CHALLENGE
    assert transition.payment_status == PaymentStatus.UNPAID
    assert transition.order_status is None


@pytest.mark.parametrize("status", ["cancel", "deny", "expire", "failure"])
def test_failed_statuses_cancel_the_order(status) -> None:
    transition = map_transaction_status(status)

    assert transition.is_failed
    assert transition.payment_status == PaymentStatus.EXPIRED
    assert transition.order_status == OrderStatus.CANCELED


@pytest.mark.parametrize("status", ["pending", "authorize", "refund", "chargeback"])
def test_other_known_statuses_map_to_unpaid(status) -> None:
    transition = map_transaction_status(status)

    assert transition.signal == PaymentSignal.UNPAID
    assert transition.order_status == OrderStatus.PENDING


def test_status_is_case_insensitive() -> None:
    assert map_transaction_status("SETTLEMENT").is_paid


@pytest.mark.parametrize("status", ["settled", "", "paid"])
def test_unknown_status_fails_loudly(status) -> None:
    with pytest.raises(UnknownTransactionStatusError):
        map_transaction_status(status)


def test_signature_roundtrip_and_tampering() -> None:
    verifier = NotificationVerifier("server-key")
    signature = notification_signature("order-1", "200", "22500.00", "server-key")

    verifier.verify("order-1", "200", "22500.00", signature)

    with pytest.raises(InvalidSignatureError):
        verifier.verify("order-2", "200", "22500.00", signature)
    with pytest.raises(InvalidSignatureError):
        verifier.verify("order-1", "200", "22500.00", None)


def test_disabled_verifier_accepts_anything() -> None:
    NotificationVerifier("", enabled=False).verify("order-1", None, None, None)


def test_verifier_without_server_key_rejects() -> None:
    with pytest.raises(InvalidSignatureError):
        NotificationVerifier("").verify("order-1", "200", "1.00", "abc")


def test_non_ascii_signature_is_rejected_not_crashing() -> None:
    with pytest.raises(InvalidSignatureError):
        NotificationVerifier("server-key").verify("order-1", "200", "1.00", "подпись")
