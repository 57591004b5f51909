"""Application configuration via pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from whalewatch.core.constants import (
    COMPUTED_PROFILE_RETENTION_SECONDS,
    DEFAULT_DATABASE_PATH,
    DEFAULT_LEGACY_DATA_DIR,
    DEFAULT_POLYMARKET_DATA_API_URL,
    LEADERBOARD_HARD_LIMIT,
    LEADERBOARD_PAGE_SIZE,
    POLL_BATCH_SIZE,
    POLL_INTERVAL_SECONDS,
    WATCH_LABEL_MAX_LENGTH,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Core
    env: Literal["development", "staging", "production"] = Field(
        default="development", alias="WHALEWATCH_ENV"
    )
    debug: bool = Field(default=False, alias="WHALEWATCH_DEBUG")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", alias="WHALEWATCH_LOG_LEVEL"
    )

    # Storage
    database_path: str = Field(
        default=DEFAULT_DATABASE_PATH,
        description="SQLite file holding watched addresses and cached whale profiles",
    )
    legacy_data_dir: str = Field(
        default=DEFAULT_LEGACY_DATA_DIR,
        description="Directory with watched_addresses.json and whales/*.json",
    )
    migrate_on_startup: bool = Field(
        default=True,
        description="Import legacy JSON data at startup unless already migrated",
    )

    # Redis (optional hot cache for leaderboard snapshots)
    redis_url: str | None = Field(default=None)

    # Polymarket Data API
    polymarket_data_api_url: str = Field(default=DEFAULT_POLYMARKET_DATA_API_URL)
    http_timeout: float = Field(default=30.0, gt=0)

    # Leaderboard
    leaderboard_page_size: int = Field(default=LEADERBOARD_PAGE_SIZE, ge=1, le=100)
    leaderboard_max_limit: int = Field(default=LEADERBOARD_HARD_LIMIT, ge=1)
    leaderboard_cache_ttl_seconds: int = Field(
        default=300,
        description="How long an assembled leaderboard stays in Redis (0 disables)",
    )

    # Profile enrichment
    profile_cache_ttl_seconds: int = Field(
        default=21600,  # 6 hours
        description="Age after which a cached period is treated as a miss (0 = never)",
    )
    profile_fetch_timeout: float = Field(
        default=20.0,
        gt=0,
        description="Upper bound on a single per-address fetch during enrichment",
    )
    profile_compute_timeout: float = Field(
        default=8.0,
        gt=0,
        description="How long fetch_profile waits before answering 'pending'",
    )
    profile_result_retention: float = Field(
        default=COMPUTED_PROFILE_RETENTION_SECONDS,
        gt=0,
        description="How long a finished but uncollected profile computation is kept",
    )
    enrichment_concurrency: int = Field(default=5, ge=1)
    poll_interval_seconds: float = Field(default=POLL_INTERVAL_SECONDS, gt=0)
    poll_batch_size: int = Field(default=POLL_BATCH_SIZE, ge=1)

    # Watch list
    watch_label_max_length: int = Field(default=WATCH_LABEL_MAX_LENGTH, ge=1)
    watch_refresh_interval_minutes: int = Field(
        default=30,
        description="Interval of the watched-address refresh job (0 disables)",
    )

    @field_validator("redis_url", mode="before")
    @classmethod
    def empty_redis_url_is_none(cls, v: str | None) -> str | None:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def is_production(self) -> bool:
        return self.env == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
