import logging
from typing import List
from pydantic import BaseModel

from storefront.domain.exceptions import ProductNotFoundError, ValidationError
from storefront.application.fulfillment import RedeliverPaidOrdersUseCase

logger = logging.getLogger(__name__)


class RestockResult(BaseModel):
    product_id: str
    added: int
    available: int
    delivered_orders: int


class RestockProductUseCase:
    def __init__(self, unit_of_work, redeliver: RedeliverPaidOrdersUseCase):
        self._uow = unit_of_work
        self._redeliver = redeliver

    async def __call__(self, product_id: str, contents: List[str]) -> RestockResult:
        contents = [line.strip() for line in contents if line and line.strip()]
        if not contents:
            raise ValidationError("Список единиц выдачи пуст")

        async with self._uow() as uow:
            product = await uow.products.get_by_id(product_id)
            if not product:
                raise ProductNotFoundError(f"Товар {product_id} не найден")
            if not product.is_auto_delivery:
                raise ValidationError(f"Товар {product_id} без автовыдачи, единицы ему не нужны")

            # Остаток меняется в той же транзакции, что и вставка единиц
            added = await uow.inventory.add_items(product_id, contents)
            await uow.products.adjust_stock(product_id, added)
            await uow.commit()
        logger.info(f"Товар {product_id} пополнен на {added} шт.")

        delivered = await self._redeliver(product_id=product_id)

        async with self._uow() as uow:
            available = await uow.inventory.count_available(product_id)

        return RestockResult(
            product_id=product_id,
            added=added,
            available=available,
            delivered_orders=delivered
        )
