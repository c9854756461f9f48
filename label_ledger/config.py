import logging
from decimal import Decimal
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///label_ledger.sqlite"
    SQLITE_BUSY_TIMEOUT_SEC: float = Field(default=30.0, gt=0)
    SQLITE_WAL: bool = True
    MIN_WITHDRAWAL_AMOUNT: Decimal = Field(default=Decimal("50.00"), ge=0)
    INVITE_TTL_DAYS: int = Field(default=7, ge=1)
    LOG_LEVEL: str = "INFO"
    BACKUP_DIR: str = "backups"
    UPLOADS_DIR: str | None = None

    model_config = SettingsConfigDict(env_file=".env")


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
