from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Lock client settings, read from the environment or a local .env file."""

    # Redis
    REDIS_URL: Optional[str] = None

    # Lock defaults (milliseconds)
    LOCK_TTL_MS: int = 8000
    LOCK_WAIT_MS: int = 10000
    LOCK_RETRY_MS: int = 200
    LOCK_KEY_PREFIX: str = "lock:"

    # Watchdog
    WATCHDOG_ENABLED: bool = True
    WATCHDOG_FLOOR_MS: int = 100

    @field_validator("LOCK_TTL_MS", "LOCK_RETRY_MS", "WATCHDOG_FLOOR_MS")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be a positive number of milliseconds")
        return v

    @field_validator("LOCK_WAIT_MS")
    @classmethod
    def _non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must not be negative")
        return v

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
