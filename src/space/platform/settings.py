from __future__ import annotations

"""Centralized configuration using pydantic-settings.

All configuration is loaded from environment variables and .env files.
This is the single source of truth for all engine configuration.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, RedisDsn, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Settings(BaseSettings):
    """Main application settings.

    All settings can be overridden via environment variables.
    For nested settings, use double underscore: PRICING__FETCH_TIMEOUT_SECONDS=2
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter="__",
        extra="ignore",
    )

    # ============================================================
    # Core Application Settings
    # ============================================================

    app_name: str = Field("space-platform", description="Application name")
    app_version: str = Field("1.0.0", description="Application version")
    environment: Environment = Field(Environment.DEVELOPMENT, description="Deployment environment")
    debug: bool = Field(False, description="Debug mode")
    testing: bool = Field(False, description="Testing mode")

    # ============================================================
    # Redis Configuration
    # ============================================================

    class RedisSettings(BaseModel):
        """Redis configuration."""

        url: RedisDsn | None = Field(None, description="Full Redis URL")
        host: str = Field("localhost", description="Redis host")
        port: int = Field(6379, description="Redis port")
        password: str = Field("", description="Redis password")
        db: int = Field(0, description="Redis database number")
        max_connections: int = Field(50, description="Max connections in pool")
        socket_timeout: int = Field(5, description="Socket timeout in seconds")

        @property
        def redis_url(self) -> str:
            """Build Redis URL."""
            if self.url:
                return str(self.url)
            if self.password:
                return f"redis://:{self.password}@{self.host}:{self.port}/{self.db}"
            return f"redis://{self.host}:{self.port}/{self.db}"

    redis: RedisSettings = RedisSettings()  # type: ignore[call-arg]

    # ============================================================
    # Cache Configuration
    # ============================================================

    class CacheSettings(BaseModel):
        """Evaluation cache configuration."""

        backend: str = Field(
            "memory",
            pattern="^(memory|redis)$",
            description="Cache backend type: memory or redis",
        )
        default_ttl: int = Field(300, gt=0, description="Default TTL in seconds")
        max_size: int = Field(10_000, gt=0, description="Max entries for the memory backend")
        key_prefix: str = Field("", description="Global key prefix for all cache keys")

    cache: CacheSettings = CacheSettings()  # type: ignore[call-arg]

    # ============================================================
    # Pricing Resolution
    # ============================================================

    class PricingSettings(BaseModel):
        """Pricing resolution and remote fetch configuration."""

        fetch_timeout_seconds: float = Field(
            5.0, gt=0, description="Deadline for fetching a URL-backed pricing"
        )
        fetch_concurrency: int = Field(
            8, ge=1, le=10, description="Concurrent pricing resolutions per request"
        )
        verify_ssl: bool = Field(
            False, description="Verify TLS certificates of remote pricing hosts"
        )
        cache_ttl: int = Field(3600, gt=0, description="TTL for cached pricings and services")
        local_pricing_root: str = Field(
            "public", description="Path prefix identifying pricings stored on local disk"
        )

    pricing: PricingSettings = PricingSettings()  # type: ignore[call-arg]

    # ============================================================
    # Feature Evaluation
    # ============================================================

    class EvaluationSettings(BaseModel):
        """Feature evaluation configuration."""

        cache_ttl: int = Field(3600, gt=0, description="TTL for cached evaluation results")
        max_expression_length: int = Field(
            2000, gt=0, description="Longest expression the evaluator accepts"
        )
        expression_cache_size: int = Field(
            1024, gt=0, description="Parsed expressions kept in memory"
        )
        default_renewal_days: int = Field(
            30, ge=0, description="Billing period length used when a contract has none"
        )

    evaluation: EvaluationSettings = EvaluationSettings()  # type: ignore[call-arg]

    # ============================================================
    # Observability
    # ============================================================

    class ObservabilitySettings(BaseModel):
        """Logging configuration."""

        log_level: LogLevel = Field(LogLevel.INFO, description="Log level")
        log_format: str = Field("json", description="Log format (json or console)")

    observability: ObservabilitySettings = ObservabilitySettings()  # type: ignore[call-arg]

    # ============================================================
    # Validation & Helpers
    # ============================================================

    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v: Any) -> Any:
        """Validate environment."""
        if isinstance(v, str):
            return Environment(v.lower())
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == Environment.PRODUCTION

    @property
    def is_testing(self) -> bool:
        """Check if running in test mode."""
        return self.testing or self.environment == Environment.TEST


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get global settings instance (singleton)."""
    global _settings
    if _settings is None:
        _settings = Settings()  # type: ignore
    return _settings


def reset_settings() -> None:
    """Reset settings (mainly for testing)."""
    global _settings
    _settings = None


# Convenience export
settings = get_settings()
