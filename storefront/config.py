import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    # Database
    POSTGRES_CONNECTION_STRING: str = os.getenv("POSTGRES_CONNECTION_STRING", "")
    LOCAL_DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./storefront.db")
    DB_POOL_SIZE: int = int(os.getenv("DB_POOL_SIZE", "10"))
    DB_MAX_OVERFLOW: int = int(os.getenv("DB_MAX_OVERFLOW", "10"))

    # API
    SERVICE_URL: str = os.getenv("SERVICE_URL", "")
    ADMIN_API_TOKEN: str = os.getenv("ADMIN_API_TOKEN", "")

    # Midtrans
    MIDTRANS_SERVER_KEY: str = os.getenv("MIDTRANS_SERVER_KEY", "")
    MIDTRANS_IS_PRODUCTION: bool = _env_bool("MIDTRANS_IS_PRODUCTION", "false")
    WEBHOOK_VERIFY_SIGNATURE: bool = _env_bool("WEBHOOK_VERIFY_SIGNATURE", "true")

    # Комиссии по умолчанию, пока в shop_settings ничего не сохранено
    ADMIN_FEE_PERCENT: float = float(os.getenv("ADMIN_FEE_PERCENT", "0"))
    SERVICE_FEE_PERCENT: float = float(os.getenv("SERVICE_FEE_PERCENT", "0"))
    TAX_PERCENT: float = float(os.getenv("TAX_PERCENT", "0"))

    # Заказы
    PAYMENT_WINDOW_MINUTES: int = int(os.getenv("PAYMENT_WINDOW_MINUTES", "30"))
    SWEEPER_ENABLED: bool = _env_bool("SWEEPER_ENABLED", "false")
    SWEEPER_INTERVAL_SECONDS: float = float(os.getenv("SWEEPER_INTERVAL_SECONDS", "60"))

    @property
    def DATABASE_URL(self) -> str:
        """Асинхронный URL для приложения"""
        if self.POSTGRES_CONNECTION_STRING:
            return self.POSTGRES_CONNECTION_STRING.replace("postgres://", "postgresql+asyncpg://")
        return self.LOCAL_DATABASE_URL

    @property
    def SYNC_DATABASE_URL(self) -> str:
        """Синхронный URL для Alembic"""
        if self.POSTGRES_CONNECTION_STRING:
            return self.POSTGRES_CONNECTION_STRING.replace("postgres://", "postgresql://")
        return self.LOCAL_DATABASE_URL.replace("sqlite+aiosqlite://", "sqlite://")

    @property
    def MIDTRANS_SNAP_URL(self) -> str:
        if self.MIDTRANS_IS_PRODUCTION:
            return "https://app.midtrans.com/snap/v1/transactions"
        return "https://app.sandbox.midtrans.com/snap/v1/transactions"


settings = Settings()
