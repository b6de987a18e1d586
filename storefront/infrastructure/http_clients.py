import base64
import httpx
import logging
from typing import List

from storefront.domain.exceptions import PaymentGatewayError
from storefront.application.interfaces import PaymentsService

logger = logging.getLogger(__name__)


class MidtransSnapClient(PaymentsService):
    def __init__(self, snap_url: str, server_key: str, finish_url: str = "", timeout: float = 30.0):
        self._snap_url = snap_url
        self._server_key = server_key
        self._finish_url = finish_url
        self._timeout = timeout

    def _auth_header(self) -> str:
        token = base64.b64encode(f"{self._server_key}:".encode()).decode()
        return f"Basic {token}"

    async def create_session(
        self,
        order_id: str,
        gross_amount: int,
        item_details: List[dict],
        customer_details: dict
    ) -> dict:
        body = {
            "transaction_details": {
                "order_id": order_id,
                "gross_amount": gross_amount
            },
            "item_details": item_details,
            "customer_details": customer_details
        }
        if self._finish_url:
            body["callbacks"] = {"finish": self._finish_url}

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self._snap_url,
                    json=body,
                    headers={
                        "Accept": "application/json",
                        "Content-Type": "application/json",
                        "Authorization": self._auth_header()
                    },
                    timeout=self._timeout
                )

                if response.status_code in (200, 201):
                    data = response.json()
                    if not data.get("token"):
                        raise PaymentGatewayError("Midtrans не вернул token")
                    return data
                else:
                    logger.error(f"Midtrans ответил {response.status_code}: {response.text}")
                    raise PaymentGatewayError(f"Midtrans ошибка: {response.status_code}")

        except httpx.RequestError as e:
            logger.error(f"Midtrans ошибка подключения: {e}")
            raise PaymentGatewayError(f"Midtrans не доступен: {str(e)}")
