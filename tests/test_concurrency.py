import asyncio
from collections import Counter

import pytest

from storefront.application.fulfillment import RedeliverPaidOrdersUseCase, deliver_order, DeliveryResult
from storefront.application.process_payment import (
    ProcessPaymentNotificationUseCase, PaymentNotificationDTO, ReconcileOutcome
)
from storefront.domain.models import OrderStatus

from conftest import create_product, add_items, create_order, get_order, get_product, all_items


def settlement(order_id: str) -> PaymentNotificationDTO:
    return PaymentNotificationDTO(order_id=order_id, transaction_status="settlement")


@pytest.mark.asyncio
async def test_parallel_orders_never_share_an_item(uow, session_factory) -> None:
    product = await create_product(uow, auto=True)
    await add_items(uow, product.id, [f"ITEM-{i}" for i in range(5)])
    orders = [await create_order(uow, product, quantity=2) for _ in range(4)]
    use_case = ProcessPaymentNotificationUseCase(uow)

    outcomes = await asyncio.gather(*(use_case(settlement(order.id)) for order in orders))

    counts = Counter(outcomes)
    assert counts[ReconcileOutcome.COMPLETED] == 2
    assert counts[ReconcileOutcome.AWAITING_STOCK] == 2

    items = await all_items(session_factory, product.id)
    claimed = [row for row in items if row.is_used]
    assert len(claimed) == 4
    assert len({row.id for row in claimed}) == 4
    claims_per_order = Counter(row.claimed_by_order_id for row in claimed)
    assert set(claims_per_order.values()) == {2}

    statuses = Counter([(await get_order(uow, order.id)).status for order in orders])
    assert statuses == {OrderStatus.COMPLETED: 2, OrderStatus.PROCESSING: 2}
    assert (await get_product(uow, product.id)).stock == 1


@pytest.mark.asyncio
async def test_duplicate_notifications_for_one_order_claim_once(uow, session_factory) -> None:
    product = await create_product(uow, auto=True)
    await add_items(uow, product.id, [f"ITEM-{i}" for i in range(6)])
    order = await create_order(uow, product, quantity=2)
    use_case = ProcessPaymentNotificationUseCase(uow)

    outcomes = await asyncio.gather(*(use_case(settlement(order.id)) for _ in range(5)))

    assert outcomes.count(ReconcileOutcome.COMPLETED) == 1
    assert set(outcomes) <= {ReconcileOutcome.COMPLETED, ReconcileOutcome.UNCHANGED}

    claimed = [row for row in await all_items(session_factory, product.id) if row.is_used]
    assert len(claimed) == 2
    assert {row.claimed_by_order_id for row in claimed} == {order.id}

    stored = await get_order(uow, order.id)
    assert stored.status == OrderStatus.COMPLETED
    assert stored.delivery_data == "\n".join(row.content for row in claimed)
    assert (await get_product(uow, product.id)).stock == 4


@pytest.mark.asyncio
async def test_redelivery_serves_waiting_orders_in_creation_order(uow) -> None:
    product = await create_product(uow, auto=True)
    first = await create_order(uow, product, quantity=1)
    second = await create_order(uow, product, quantity=2)
    use_case = ProcessPaymentNotificationUseCase(uow)
    for order in (first, second):
        assert await use_case(settlement(order.id)) == ReconcileOutcome.AWAITING_STOCK

    await add_items(uow, product.id, ["ONE", "TWO"])
    delivered = await RedeliverPaidOrdersUseCase(uow)(product_id=product.id)

    assert delivered == 1
    assert (await get_order(uow, first.id)).delivery_data == "ONE"
    assert (await get_order(uow, second.id)).status == OrderStatus.PROCESSING


@pytest.mark.asyncio
async def test_stale_delivery_attempt_claims_nothing(uow, session_factory) -> None:
    product = await create_product(uow, auto=True)
    await add_items(uow, product.id, ["A", "B", "C", "D"])
    order = await create_order(uow, product, quantity=2)

    async with uow() as tx:
        assert await deliver_order(tx, order) == DeliveryResult.DELIVERED
    # тот же снимок заказа, как у запоздавшего дубликата уведомления
    async with uow() as tx:
        assert await deliver_order(tx, order) == DeliveryResult.LOST_RACE

    claimed = [row for row in await all_items(session_factory, product.id) if row.is_used]
    assert [row.content for row in claimed] == ["A", "B"]
    assert (await get_product(uow, product.id)).stock == 2
