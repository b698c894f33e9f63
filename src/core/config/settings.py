# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

This module provides centralized configuration management for the mastery
engine. Settings are loaded from environment variables with sensible defaults.

The Settings class is the main entry point and aggregates all subsettings.
A singleton instance is provided via get_settings() for dependency injection.

Example:
    >>> from src.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> print(settings.mastery.proficiency_threshold)
    70.0
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database configuration for the mastery record store.

    Attributes:
        user: PostgreSQL username.
        password: PostgreSQL password.
        host: Database host address.
        port: Database port number.
        database: Database name.
        explicit_url: Full connection URL overriding the components when set.
        pool_size: Connection pool size.
        max_overflow: Maximum overflow connections.
        query_timeout: Statement timeout in seconds enforced by the driver.
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        extra="ignore",
        populate_by_name=True,
    )

    user: str = "mastery"
    password: SecretStr = SecretStr("mastery_password")
    host: str = "localhost"
    port: int = 5432
    database: str = "mastery"
    explicit_url: str | None = Field(default=None, validation_alias="DATABASE_URL")
    pool_size: int = 10
    max_overflow: int = 20
    query_timeout: float = 30.0

    @property
    def url(self) -> str:
        """Build the async database URL from components."""
        if self.explicit_url:
            return self.explicit_url
        pwd = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"

    @property
    def sync_url(self) -> str:
        """Build the sync database URL for migrations."""
        if self.explicit_url:
            return self.explicit_url.replace("+asyncpg", "").replace("+aiosqlite", "")
        pwd = self.password.get_secret_value()
        return f"postgresql://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"


class RedisSettings(BaseSettings):
    """Redis configuration for the partition read cache.

    Attributes:
        host: Redis server host.
        port: Redis server port.
        password: Redis password.
        database: Redis database number.
        max_connections: Maximum connection pool size.
        key_prefix: Prefix applied to every cache key.
    """

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        extra="ignore",
    )

    host: str = "localhost"
    port: int = 6379
    password: SecretStr = SecretStr("")
    database: int = 0
    max_connections: int = 50
    key_prefix: str = "mastery"

    @property
    def url(self) -> str:
        """Build the Redis connection URL."""
        pwd = self.password.get_secret_value()
        if pwd:
            return f"redis://:{pwd}@{self.host}:{self.port}/{self.database}"
        return f"redis://{self.host}:{self.port}/{self.database}"


class MasterySettings(BaseSettings):
    """Tuning constants for mastery calculation, analytics and ranking.

    Level weights feed the overall mastery score; higher cognitive levels
    carry more weight because demonstrating them implies the lower ones.

    Attributes:
        recent_weight: Share of a new assessment when blended into a stored score.
        remember_weight: Weight of the remember level in overall mastery.
        understand_weight: Weight of the understand level.
        apply_weight: Weight of the apply level.
        analyze_weight: Weight of the analyze level.
        evaluate_weight: Weight of the evaluate level.
        create_weight: Weight of the create level.
        proficiency_threshold: Scores below this are reported as mastery gaps.
        growth_window_days: Trailing window used for growth calculation.
        default_partition_limit: Slice size when a query does not set one.
        max_partition_limit: Upper bound accepted for a partition slice.
        partition_cache_ttl_seconds: Lifetime of cached partition standings.
        snapshot_history_limit: Snapshots returned by a history lookup without a limit.
        snapshot_trend_days: Trailing window used for rank trends.
        snapshot_retention_days: Age after which snapshots are pruned.
    """

    model_config = SettingsConfigDict(
        env_prefix="MASTERY_",
        extra="ignore",
    )

    recent_weight: float = 0.6

    remember_weight: float = 0.10
    understand_weight: float = 0.15
    apply_weight: float = 0.15
    analyze_weight: float = 0.20
    evaluate_weight: float = 0.20
    create_weight: float = 0.20

    proficiency_threshold: float = 70.0
    growth_window_days: int = 30

    default_partition_limit: int = 10
    max_partition_limit: int = 500
    partition_cache_ttl_seconds: int = 60

    snapshot_history_limit: int = 10
    snapshot_trend_days: int = 90
    snapshot_retention_days: int = 365

    @model_validator(mode="after")
    def validate_weights(self) -> Self:
        """Validate blend ratio and level weights.

        Raises:
            ValueError: If weights are negative, sum to zero, or the blend
                ratio does not favour the recent result.
        """
        if not 0.5 < self.recent_weight <= 1.0:
            raise ValueError("recent_weight must be in (0.5, 1.0]")

        weights = [
            self.remember_weight,
            self.understand_weight,
            self.apply_weight,
            self.analyze_weight,
            self.evaluate_weight,
            self.create_weight,
        ]
        if any(w < 0 for w in weights):
            raise ValueError("Level weights must be non-negative")
        if sum(weights) <= 0:
            raise ValueError("Level weights must have a positive sum")

        if not 0.0 <= self.proficiency_threshold <= 100.0:
            raise ValueError("proficiency_threshold must be within 0-100")
        if self.growth_window_days < 1:
            raise ValueError("growth_window_days must be at least 1")
        if min(self.snapshot_trend_days, self.snapshot_retention_days) < 1:
            raise ValueError("snapshot windows must be at least 1 day")
        return self


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Use get_settings() to obtain a cached singleton instance.

    Attributes:
        environment: Current environment (development, test, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        database: Record store settings.
        redis: Cache settings.
        mastery: Calculation and ranking settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "test", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    mastery: MasterySettings = Field(default_factory=MasterySettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Validate that production settings are properly configured.

        Raises:
            ValueError: If running in production with debug enabled.
        """
        if self.environment == "production" and self.debug:
            raise ValueError(
                "Debug mode must be disabled in production. Set DEBUG=false."
            )
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call clear_settings_cache() if you need to reload settings.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Call this if you need to reload settings from environment.
    Useful for testing or dynamic configuration updates.
    """
    get_settings.cache_clear()
