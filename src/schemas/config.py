from pydantic import BaseModel, ConfigDict, Field

from src.core.config import settings


class LeaderboardConfig(BaseModel):
    """Runtime-tunable engine parameters, persisted alongside the data."""

    max_entries: int = Field(default=settings.default_max_entries, ge=1)
    # Memory-tier TTL; background refreshes fire at a fraction of it
    refresh_interval_ms: int = Field(default=settings.default_refresh_interval_ms, gt=0)
    # Staleness threshold for the persistent tier
    cache_ttl_ms: int = Field(default=settings.default_cache_ttl_ms, gt=0)
    real_time_enabled: bool = settings.default_real_time_enabled

    model_config = ConfigDict(extra="forbid", validate_assignment=True)
