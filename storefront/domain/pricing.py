from decimal import Decimal, ROUND_HALF_UP
from pydantic import BaseModel

from storefront.domain.models import FeeSettings, Product


class OrderPricing(BaseModel):
    """Value Object: расчет суммы заказа, фиксируется при создании"""
    subtotal: int
    admin_fee: int
    service_fee: int
    tax_amount: int
    total_price: int


def percent_of(amount: int, percent) -> int:
    """Процент от суммы с округлением половины вверх (2.5 -> 3)"""
    value = Decimal(amount) * Decimal(str(percent)) / Decimal(100)
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_pricing(price: int, quantity: int, fees: FeeSettings) -> OrderPricing:
    subtotal = price * quantity
    admin_fee = percent_of(subtotal, fees.admin_fee_percent)
    service_fee = percent_of(subtotal, fees.service_fee_percent)
    tax_amount = percent_of(subtotal, fees.tax_percent)
    return OrderPricing(
        subtotal=subtotal,
        admin_fee=admin_fee,
        service_fee=service_fee,
        tax_amount=tax_amount,
        total_price=subtotal + admin_fee + service_fee + tax_amount
    )


def _format_percent(percent) -> str:
    return f"{Decimal(str(percent)).normalize():f}"


def build_item_details(product: Product, quantity: int, pricing: OrderPricing, fees: FeeSettings) -> list[dict]:
    """Строки заказа для платежного шлюза.

    Сумма price * quantity по всем строкам обязана совпасть с total_price,
    иначе шлюз отклонит транзакцию или покажет покупателю другую сумму.
    """
    items = [
        {
            "id": product.id,
            "price": product.price,
            "quantity": quantity,
            "name": product.name[:50]
        }
    ]
    if pricing.admin_fee > 0:
        items.append({
            "id": "admin_fee",
            "price": pricing.admin_fee,
            "quantity": 1,
            "name": f"Admin fee ({_format_percent(fees.admin_fee_percent)}%)"
        })
    if pricing.service_fee > 0:
        items.append({
            "id": "service_fee",
            "price": pricing.service_fee,
            "quantity": 1,
            "name": f"Service fee ({_format_percent(fees.service_fee_percent)}%)"
        })
    if pricing.tax_amount > 0:
        items.append({
            "id": "tax",
            "price": pricing.tax_amount,
            "quantity": 1,
            "name": f"Tax ({_format_percent(fees.tax_percent)}%)"
        })

    gross = sum(item["price"] * item["quantity"] for item in items)
    if gross != pricing.total_price:
        raise ValueError(f"Строки заказа ({gross}) не сходятся с итогом ({pricing.total_price})")
    return items
