import logging
from contextlib import asynccontextmanager
from sqlalchemy.exc import OperationalError, InterfaceError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.domain.exceptions import StoreUnavailableError
from storefront.infrastructure.repositories import (
    SQLAlchemyOrderRepository,
    SQLAlchemyProductRepository,
    SQLAlchemyInventoryRepository,
    SQLAlchemySettingsRepository
)

logger = logging.getLogger(__name__)


class UnitOfWork:
    """Одна транзакция БД. Все, что не закоммичено явно, откатывается."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def __call__(self):
        try:
            async with self._session_factory() as session:
                try:
                    yield _UnitOfWorkImpl(session)
                    # Если commit не вызван — rollback
                    await session.rollback()
                except Exception:
                    await session.rollback()
                    raise
        except (OperationalError, InterfaceError) as e:
            logger.error(f"Хранилище недоступно: {e}")
            raise StoreUnavailableError(str(e)) from e


class _UnitOfWorkImpl:
    def __init__(self, session: AsyncSession):
        self._session = session
        self.orders = SQLAlchemyOrderRepository(session)
        self.products = SQLAlchemyProductRepository(session)
        self.inventory = SQLAlchemyInventoryRepository(session)
        self.settings = SQLAlchemySettingsRepository(session)

    async def commit(self):
        await self._session.commit()

    async def rollback(self):
        await self._session.rollback()
