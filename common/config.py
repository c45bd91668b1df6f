from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service settings, read from the environment and an optional .env file."""

    # Application
    ENVIRONMENT: Literal["local", "development", "production"] = "local"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = ["*"]

    # Ledger
    CREDIT_TO_POINTS_RATE: int = 1000
    POINTS_PER_USD: int = 10000
    MAX_TRANSFER_AMOUNT: int = 1_000_000

    # Daily reward
    DAILY_REWARD_AMOUNT: int = 50
    DAILY_REWARD_ENABLED: bool = True

    # Store
    STORE_RETRY_ATTEMPTS: int = 3

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("CREDIT_TO_POINTS_RATE", "POINTS_PER_USD", "MAX_TRANSFER_AMOUNT")
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("DAILY_REWARD_AMOUNT")
    @classmethod
    def must_not_be_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must not be negative")
        return v

    @field_validator("STORE_RETRY_ATTEMPTS")
    @classmethod
    def at_least_one_attempt(cls, v: int) -> int:
        return max(v, 1)


@lru_cache
def get_settings() -> Settings:
    """
    Return the global settings instance, cached.
    """
    return Settings()
