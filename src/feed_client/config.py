"""Delivery client configuration."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.constants import (
    DEFAULT_CACHE_CAPACITY,
    DEFAULT_CLIENT_TIMEOUT_SECONDS,
    DEFAULT_RECOMMENDATION_LIMIT,
    MAX_CLIENT_RETRIES,
    MAX_CLIENT_TIMEOUT_SECONDS,
    MIN_CLIENT_TIMEOUT_SECONDS,
)


class ClientSettings(BaseSettings):
    """Delivery client settings loaded from FEED_CLIENT_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FEED_CLIENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    base_url: str = "http://localhost:8000/api/v1"
    timeout_seconds: float = Field(
        default=DEFAULT_CLIENT_TIMEOUT_SECONDS,
        ge=MIN_CLIENT_TIMEOUT_SECONDS,
        le=MAX_CLIENT_TIMEOUT_SECONDS,
    )
    cache_capacity: int = Field(default=DEFAULT_CACHE_CAPACITY, ge=1)
    max_retries: int = Field(default=MAX_CLIENT_RETRIES, ge=0)
    page_size: int = Field(default=DEFAULT_RECOMMENDATION_LIMIT, ge=1)


@lru_cache
def get_client_settings() -> ClientSettings:
    """Get cached client settings instance."""
    return ClientSettings()
