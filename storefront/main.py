import asyncio
import contextlib
import logging
from fastapi import FastAPI
from contextlib import asynccontextmanager

from storefront.presentation.api import router
from storefront.presentation.sweeper_worker import sweeper_worker
from storefront.config import settings
from storefront.database import engine
from storefront.infrastructure.db_schema import metadata

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Управление жизненным циклом приложения"""
    # 1. Создаем таблицы (в проде схему ведет Alembic)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(metadata.create_all)
        logger.info("Таблицы готовы")
    except Exception as e:
        logger.error(f"Не удалось создать таблицы: {e}")

    # 2. Sweeper в фоне
    sweeper_task = None
    if settings.SWEEPER_ENABLED:
        sweeper_task = asyncio.create_task(sweeper_worker())
        logger.info("Sweeper запущен в процессе API")

    yield

    logger.info("Приложение останавливается...")
    if sweeper_task:
        sweeper_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper_task


app = FastAPI(
    title="Storefront Order Service",
    description="Оформление, оплата и выдача цифровых товаров",
    version="1.0.0",
    lifespan=lifespan
)

app.include_router(router, prefix="/api")


@app.get("/health")
async def health():
    return {"status": "healthy", "sweeper": "running" if settings.SWEEPER_ENABLED else "external"}
