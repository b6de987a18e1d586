import pytest
from httpx import ASGITransport, AsyncClient

from storefront.config import settings
from storefront.database import get_session_factory
from storefront.infrastructure.signature import NotificationVerifier, notification_signature
from storefront.main import app
from storefront.presentation.api import get_payments_service, get_notification_verifier, get_default_fees
from storefront.domain.models import FeeSettings

from conftest import create_product, add_items

SERVER_KEY = "test-server-key"
ADMIN_TOKEN = "admin-secret"


@pytest.fixture
async def client(session_factory, payments, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_API_TOKEN", ADMIN_TOKEN)
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_payments_service] = lambda: payments
    app.dependency_overrides[get_notification_verifier] = lambda: NotificationVerifier(SERVER_KEY)
    app.dependency_overrides[get_default_fees] = lambda: FeeSettings(admin_fee_percent=2.5, tax_percent=10)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def signed_notification(order_id: str, transaction_status: str, gross_amount: str = "22500.00") -> dict:
    return {
        "order_id": order_id,
        "transaction_status": transaction_status,
        "fraud_status": "accept",
        "status_code": "200",
        "gross_amount": gross_amount,
        "signature_key": notification_signature(order_id, "200", gross_amount, SERVER_KEY),
        "payment_type": "qris",
    }


@pytest.mark.asyncio
async def test_checkout_then_webhook_delivers_order(client, uow, payments) -> None:
    product = await create_product(uow, auto=True)
    await add_items(uow, product.id, ["VOUCHER-1", "VOUCHER-2"])

    response = await client.post("/api/orders", json={
        "product_id": product.id,
        "quantity": 2,
        "fields": {"user_id": "12345"},
        "email": "buyer@example.com",
    })
    assert response.status_code == 201
    body = response.json()
    order_id = body["order"]["id"]
    assert body["token"] == f"snap-{order_id}"
    assert body["order"]["total_price"] == 22500
    assert body["order"]["status"] == "pending"

    response = await client.post("/api/payments/notification", json=signed_notification(order_id, "settlement"))
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "outcome": "completed"}

    response = await client.get(f"/api/orders/{order_id}")
    assert response.status_code == 200
    order = response.json()
    assert order["status"] == "completed"
    assert order["payment_status"] == "paid"
    assert order["delivery_data"] == "VOUCHER-1\nVOUCHER-2"
    assert order["product"]["id"] == product.id

    response = await client.get("/api/orders", params={"email": "buyer@example.com"})
    assert [item["id"] for item in response.json()] == [order_id]


@pytest.mark.asyncio
async def test_webhook_with_bad_signature_is_rejected(client, uow) -> None:
    product = await create_product(uow, auto=True)
    await add_items(uow, product.id, ["KEY"])
    response = await client.post("/api/orders", json={"product_id": product.id, "fields": {"user_id": "1"}})
    order_id = response.json()["order"]["id"]

    payload = signed_notification(order_id, "settlement")
    payload["gross_amount"] = "1.00"
    response = await client.post("/api/payments/notification", json=payload)

    assert response.status_code == 401
    assert (await client.get(f"/api/orders/{order_id}")).json()["status"] == "pending"


@pytest.mark.asyncio
async def test_webhook_unknown_order_and_status(client, uow) -> None:
    response = await client.post("/api/payments/notification", json=signed_notification("missing", "settlement"))
    assert response.status_code == 404

    product = await create_product(uow, auto=False, stock=1)
    created = await client.post("/api/orders", json={"product_id": product.id, "fields": {"user_id": "1"}})
    order_id = created.json()["order"]["id"]
    response = await client.post("/api/payments/notification", json=signed_notification(order_id, "settled"))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_numeric_gross_amount_is_accepted(client, uow) -> None:
    product = await create_product(uow, auto=False, stock=1)
    created = await client.post("/api/orders", json={"product_id": product.id, "fields": {"user_id": "1"}})
    order_id = created.json()["order"]["id"]

    payload = signed_notification(order_id, "expire", gross_amount="11250")
    payload["gross_amount"] = 11250
    response = await client.post("/api/payments/notification", json=payload)

    assert response.status_code == 200
    assert response.json()["outcome"] == "canceled"


@pytest.mark.asyncio
async def test_checkout_errors_map_to_status_codes(client, uow, payments) -> None:
    product = await create_product(uow, auto=False, stock=1)

    missing = await client.post("/api/orders", json={"product_id": "nope", "fields": {"user_id": "1"}})
    assert missing.status_code == 404

    no_fields = await client.post("/api/orders", json={"product_id": product.id})
    assert no_fields.status_code == 422

    too_many = await client.post("/api/orders", json={"product_id": product.id, "quantity": 5, "fields": {"user_id": "1"}})
    assert too_many.status_code == 409

    payments.fail = True
    gateway_down = await client.post("/api/orders", json={"product_id": product.id, "fields": {"user_id": "1"}})
    assert gateway_down.status_code == 502


@pytest.mark.asyncio
async def test_admin_routes_require_token(client, uow) -> None:
    product = await create_product(uow, auto=True)

    response = await client.post(f"/api/admin/products/{product.id}/stock-items", json={"items": ["A"]})
    assert response.status_code == 403

    response = await client.post(
        f"/api/admin/products/{product.id}/stock-items",
        json={"items": ["A", "B"]},
        headers={"X-Admin-Token": ADMIN_TOKEN}
    )
    assert response.status_code == 200
    assert response.json() == {"product_id": product.id, "added": 2, "available": 2, "delivered_orders": 0}


@pytest.mark.asyncio
async def test_admin_manual_fulfilment_flow(client, uow) -> None:
    product = await create_product(uow, auto=False, stock=2)
    headers = {"X-Admin-Token": ADMIN_TOKEN}
    created = await client.post("/api/orders", json={"product_id": product.id, "fields": {"user_id": "1"}})
    order_id = created.json()["order"]["id"]

    early = await client.post(f"/api/admin/orders/{order_id}/complete", json={}, headers=headers)
    assert early.status_code == 409

    await client.post(
        "/api/payments/notification", json=signed_notification(order_id, "settlement", gross_amount="11250.00")
    )
    done = await client.post(
        f"/api/admin/orders/{order_id}/complete", json={"delivery_data": "sent via chat"}, headers=headers
    )
    assert done.status_code == 200
    assert done.json()["status"] == "completed"

    cancel = await client.post(f"/api/admin/orders/{order_id}/cancel", headers=headers)
    assert cancel.status_code == 409


@pytest.mark.asyncio
async def test_fee_settings_endpoints(client) -> None:
    response = await client.get("/api/settings/fees")
    assert response.json() == {"admin_fee_percent": 2.5, "service_fee_percent": 0, "tax_percent": 10}

    new_fees = {"admin_fee_percent": 1.0, "service_fee_percent": 0.5, "tax_percent": 11.0}
    response = await client.put("/api/admin/settings/fees", json=new_fees, headers={"X-Admin-Token": ADMIN_TOKEN})
    assert response.status_code == 200
    assert (await client.get("/api/settings/fees")).json() == new_fees

    response = await client.put(
        "/api/admin/settings/fees", json={"tax_percent": 120}, headers={"X-Admin-Token": ADMIN_TOKEN}
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_health(client) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
