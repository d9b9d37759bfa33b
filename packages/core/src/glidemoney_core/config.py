"""Configuration system for GlideMoney Core.

This module provides Pydantic Settings-based configuration with environment
variable support and sensible defaults for the set-aside engine and the
Glide Guard allocator. Per-user money settings (target utilization, cushion,
cadence) are not configuration; they arrive with each call as
``UserMoneyConfig``.

Usage:
    from glidemoney_core.config import GlideMoneyConfig

    # Load from environment variables and .env file
    config = GlideMoneyConfig()

    # Access Glide Guard settings
    print(config.guard.posting_buffer_days)

    # Rate tables from the configured directory (or the packaged ones)
    provider = config.rate_table_provider()
"""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from glidemoney_core.rate_tables import PackagedRateTableProvider


class GlideGuardSettings(BaseSettings):
    """Glide Guard allocator settings.

    Environment Variables:
        GLIDEMONEY_GUARD_POSTING_BUFFER_DAYS: Business days a payment needs to post
        GLIDEMONEY_GUARD_ACTION_QUEUE_SIZE: Cards listed after the top action
        GLIDEMONEY_GUARD_SKIP_WEEKENDS: Count only weekdays when adding buffers
    """

    model_config = SettingsConfigDict(
        env_prefix="GLIDEMONEY_GUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    posting_buffer_days: int = Field(
        default=2,
        ge=0,
        le=10,
        description="Conservative posting buffer used when a card has no close date",
    )
    action_queue_size: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum cards shown in the action queue",
    )
    skip_weekends: bool = Field(
        default=True,
        description="Treat the posting buffer as business days",
    )


class GlideMoneyConfig(BaseSettings):
    """Root configuration for GlideMoney Core.

    Environment Variables:
        GLIDEMONEY_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
        GLIDEMONEY_JSON_LOGS: Render log events as JSON
        GLIDEMONEY_RATES_DIR: Directory of <year>.json rate files overriding
            the packaged tables

    Example:
        config = GlideMoneyConfig(
            log_level="DEBUG",
            guard=GlideGuardSettings(posting_buffer_days=3),
        )
    """

    model_config = SettingsConfigDict(
        env_prefix="GLIDEMONEY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    json_logs: bool = Field(
        default=False,
        description="Render log events as JSON lines",
    )
    rates_dir: Optional[str] = Field(
        default=None,
        description="Directory with <year>.json rate tables; packaged tables when unset",
    )

    guard: GlideGuardSettings = Field(default_factory=GlideGuardSettings)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper().strip()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of: {valid_levels}")
        return v_upper

    def rate_table_provider(self) -> PackagedRateTableProvider:
        """Build the rate table provider these settings describe."""
        return PackagedRateTableProvider(self.rates_dir)
