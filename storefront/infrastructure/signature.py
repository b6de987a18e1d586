import hashlib
import hmac
from typing import Optional

from storefront.domain.exceptions import InvalidSignatureError


def notification_signature(order_id: str, status_code: str, gross_amount: str, server_key: str) -> str:
    """Подпись уведомления Midtrans: sha512(order_id + status_code + gross_amount + server_key)"""
    raw = f"{order_id}{status_code}{gross_amount}{server_key}"
    return hashlib.sha512(raw.encode()).hexdigest()


class NotificationVerifier:
    def __init__(self, server_key: str, enabled: bool = True):
        self._server_key = server_key
        self._enabled = enabled

    def verify(
        self,
        order_id: str,
        status_code: Optional[str],
        gross_amount: Optional[str],
        signature_key: Optional[str]
    ) -> None:
        if not self._enabled:
            return
        if not self._server_key:
            raise InvalidSignatureError("MIDTRANS_SERVER_KEY не задан, проверить подпись нельзя")
        if not (status_code and gross_amount and signature_key):
            raise InvalidSignatureError("В уведомлении нет подписи")

        expected = notification_signature(order_id, status_code, gross_amount, self._server_key)
        if not hmac.compare_digest(expected.encode(), signature_key.lower().encode()):
            raise InvalidSignatureError(f"Неверная подпись уведомления для заказа {order_id}")
