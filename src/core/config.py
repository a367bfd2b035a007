from functools import lru_cache
from typing import Literal

from pydantic import HttpUrl, RedisDsn, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = "Engagement Leaderboard"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"

    # Storage
    storage_backend: Literal["memory", "redis"] = "memory"
    redis_url: RedisDsn | None = None
    storage_key_prefix: str = "leaderboard:"
    memory_store_quota_bytes: int | None = None  # None disables the quota

    # Runtime config defaults (persisted copy wins once written)
    default_max_entries: int = 100
    default_refresh_interval_ms: int = 5 * 60 * 1000
    default_cache_ttl_ms: int = 10 * 60 * 1000
    default_real_time_enabled: bool = True

    # Builder / scheduling
    batch_size: int = 100
    background_refresh_ratio: float = 0.8  # fraction of the memory TTL

    # Intelligent cache ("leaderboards" namespace)
    intelligent_cache_ttl_ms: int = 5 * 60 * 1000
    intelligent_cache_max_size: int = 500
    intelligent_cache_strategy: Literal["LRU", "LFU", "FIFO"] = "LFU"

    # Engagement / achievement API (optional)
    engagement_api_base_url: HttpUrl | None = None
    engagement_api_token: str | None = None
    engagement_api_timeout: float = 10.0
    engagement_api_max_retries: int = 3

    @model_validator(mode="after")
    def require_redis_url(self) -> "Settings":
        if self.storage_backend == "redis" and self.redis_url is None:
            raise ValueError("REDIS_URL is required when STORAGE_BACKEND=redis")
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
