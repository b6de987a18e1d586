from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, List, Sequence
from storefront.domain.models import Order, OrderStatus, PaymentStatus, Product, InventoryItem, FeeSettings


class OrderRepository(ABC):
    @abstractmethod
    async def get_by_id(self, order_id: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def get_for_update(self, order_id: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def list_by_email(self, email: str, limit: int = 50) -> List[Order]:
        pass

    @abstractmethod
    async def create(self, order: Order) -> None:
        pass

    @abstractmethod
    async def update_payment_token(self, order_id: str, token: str) -> None:
        pass

    @abstractmethod
    async def mark_paid(self, order_id: str) -> bool:
        pass

    @abstractmethod
    async def complete(self, order_id: str, delivery_data: Optional[str], from_statuses: Sequence[OrderStatus]) -> bool:
        pass

    @abstractmethod
    async def cancel(
        self,
        order_id: str,
        from_statuses: Sequence[OrderStatus],
        payment_status: Optional[PaymentStatus] = None,
        overdue_at: Optional[datetime] = None
    ) -> bool:
        pass

    @abstractmethod
    async def list_overdue(self, now: datetime, limit: int = 100) -> List[str]:
        pass

    @abstractmethod
    async def list_awaiting_delivery(self, product_id: Optional[str] = None, limit: int = 50) -> List[Order]:
        pass

    @abstractmethod
    async def list_products_awaiting_delivery(self, limit: int = 50) -> List[str]:
        pass


class ProductRepository(ABC):
    @abstractmethod
    async def get_by_id(self, product_id: str) -> Optional[Product]:
        pass

    @abstractmethod
    async def create(self, product: Product) -> None:
        pass

    @abstractmethod
    async def reserve_stock(self, product_id: str, quantity: int) -> bool:
        pass

    @abstractmethod
    async def adjust_stock(self, product_id: str, delta: int) -> None:
        pass


class InventoryRepository(ABC):
    @abstractmethod
    async def add_items(self, product_id: str, contents: List[str]) -> int:
        pass

    @abstractmethod
    async def claim(self, product_id: str, order_id: str, quantity: int) -> List[InventoryItem]:
        pass

    @abstractmethod
    async def count_available(self, product_id: str) -> int:
        pass

    @abstractmethod
    async def list_by_order(self, order_id: str) -> List[InventoryItem]:
        pass


class SettingsRepository(ABC):
    @abstractmethod
    async def get_fee_settings(self) -> Optional[FeeSettings]:
        pass

    @abstractmethod
    async def save_fee_settings(self, fees: FeeSettings) -> None:
        pass


class UnitOfWork(ABC):
    @property
    @abstractmethod
    def orders(self) -> OrderRepository:
        pass

    @property
    @abstractmethod
    def products(self) -> ProductRepository:
        pass

    @property
    @abstractmethod
    def inventory(self) -> InventoryRepository:
        pass

    @property
    @abstractmethod
    def settings(self) -> SettingsRepository:
        pass

    @abstractmethod
    async def __call__(self):
        pass

    @abstractmethod
    async def commit(self):
        pass

    @abstractmethod
    async def rollback(self):
        pass


class PaymentsService(ABC):
    @abstractmethod
    async def create_session(
        self,
        order_id: str,
        gross_amount: int,
        item_details: List[dict],
        customer_details: dict
    ) -> dict:
        """Возвращает {"token": ..., "redirect_url": ...}"""
        pass
