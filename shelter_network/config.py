"""
Настройки ядра бронирований.

Значения читаются из переменных окружения с префиксом SHELTER_
или из файла .env в рабочем каталоге.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Настройки приложения."""

    model_config = SettingsConfigDict(
        env_prefix="SHELTER_", env_file=".env", extra="ignore"
    )

    app_name: str = "shelter-network"
    log_level: str = "INFO"
    # Сколько ждать блокировку журнала вместимости, прежде чем вернуть Busy
    lock_timeout_seconds: float = Field(0.5, gt=0)
    # Освобождать места при выселении, а не только при отмене/отклонении
    release_on_checkout: bool = False


@lru_cache
def get_settings() -> Settings:
    """Возвращает закешированный экземпляр настроек."""
    return Settings()
