from decimal import Decimal
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DB_URL: str = "sqlite+aiosqlite:///./register.db"

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    CURRENCY: str = "USD"
    DEFAULT_TAX_RATE: Decimal = Decimal("0.08")
    MAX_SYNC_RETRIES: int = 3
    DRAWER_OPEN_ON_CASH: bool = True

    # e-commerce platform the sync engine pushes paid orders to
    DEFAULT_PLATFORM: str = "offline"
    PLATFORM_API_URL: Optional[str] = None
    PLATFORM_API_TOKEN: Optional[str] = None
    PLATFORM_TIMEOUT_SECONDS: float = 15.0

    ORDER_SYNC_INTERVAL_SECONDS: float = 300.0
    OUTBOX_TICK_SECONDS: float = 30.0
    OUTBOX_BASE_DELAY_SECONDS: float = 30.0
    OUTBOX_MAX_DELAY_SECONDS: float = 300.0

    # multi-register LAN protocol
    LOCAL_API_MODE: str = "standalone"
    LOCAL_API_HOST: str = "0.0.0.0"
    LOCAL_API_PORT: int = 8787
    LOCAL_API_SHARED_SECRET: str = ""
    LOCAL_API_SERVER_ADDRESS: str = ""
    REGISTER_ID: str = ""
    REGISTER_NAME: str = "Register 1"

    SYNC_POLL_INTERVAL_SECONDS: float = 3.0
    SYNC_POLL_MAX_BACKOFF_SECONDS: float = 30.0
    SYNC_POLL_LOOKBACK_SECONDS: float = 60.0
    SYNC_EVENT_RETENTION: int = 500

    DISCOVERY_BATCH_SIZE: int = 20
    DISCOVERY_PROBE_TIMEOUT_SECONDS: float = 2.0
    DISCOVERY_SUBNET: Optional[str] = None

    class Config:
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()
