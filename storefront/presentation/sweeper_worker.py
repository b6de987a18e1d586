import asyncio
import logging

from storefront.database import AsyncSessionLocal
from storefront.infrastructure.unit_of_work import UnitOfWork
from storefront.application.expire_orders import ExpireOrdersUseCase
from storefront.application.fulfillment import RedeliverPaidOrdersUseCase
from storefront.config import settings

logger = logging.getLogger(__name__)


async def sweep_once(uow: UnitOfWork) -> tuple[int, int]:
    """Один проход: отмена просроченных и повторная выдача оплаченных"""
    expired = await ExpireOrdersUseCase(uow)(limit=100)
    delivered = await RedeliverPaidOrdersUseCase(uow)(limit=50)
    return expired, delivered


async def sweeper_worker(session_factory=AsyncSessionLocal, interval: float = settings.SWEEPER_INTERVAL_SECONDS):
    """Worker для отмены просроченных заказов"""
    logger.info("Sweeper worker запущен")
    uow = UnitOfWork(session_factory)

    while True:
        try:
            expired, delivered = await sweep_once(uow)
            if expired or delivered:
                logger.info(f"Отменено просроченных: {expired}, выдано ожидавших: {delivered}")

            await asyncio.sleep(interval)

        except asyncio.CancelledError:
            logger.info("Sweeper worker остановлен")
            raise
        except Exception as e:
            logger.error(f"Ошибка в sweeper worker: {e}", exc_info=True)
            await asyncio.sleep(interval)


async def main():
    await sweeper_worker()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    asyncio.run(main())
