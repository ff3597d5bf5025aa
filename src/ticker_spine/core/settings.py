"""
Centralized settings for ticker-spine.

All fields can be set through ``TICKER_SPINE_*`` environment variables or a
``.env`` file. ``get_settings()`` returns a cached instance; tests build
``TickerSpineSettings(...)`` directly with keyword overrides.

Examples:
    >>> from ticker_spine.core.settings import TickerSpineSettings
    >>> settings = TickerSpineSettings(writer_batch_size=10)
    >>> settings.writer_batch_size
    10

Tags:
    settings, configuration, pydantic, environment

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# DynamoDB BatchWriteItem accepts at most 25 put requests per call.
MAX_WRITE_BATCH_SIZE = 25

DEFAULT_INDEXES = [
    "FTSE_100",
    "FTSE_250",
    "FTSE_350",
    "FTSE_ALL_SHARE",
    "FTSE_AIM_ALL_SHARE",
]


class TickerSpineSettings(BaseSettings):
    """ticker-spine configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TICKER_SPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: Literal["json", "console", "auto"] = Field(default="auto")

    # ── Storage ──────────────────────────────────────────────────
    storage_backend: Literal["memory", "aws"] = Field(default="memory")
    cache_bucket: str = Field(default="stock-api-cache")
    cache_walkback_days: int = Field(default=7, ge=0)
    price_table: str = Field(default="TickerData")
    aws_region: str = Field(default="eu-west-2")
    aws_endpoint_url: str | None = Field(default=None)
    aws_access_key_id: str | None = Field(default=None)
    aws_secret_access_key: SecretStr | None = Field(default=None)

    # ── Price source ─────────────────────────────────────────────
    alpha_vantage_api_key: SecretStr = Field(default=SecretStr("demo"))
    alpha_vantage_base_url: str = Field(default="https://www.alphavantage.co/query")
    alpha_vantage_output_size: Literal["full", "compact"] = Field(default="full")
    alpha_vantage_timeout_seconds: float = Field(default=30.0, gt=0)
    alpha_vantage_min_interval_seconds: float = Field(default=14.0, ge=0)
    rate_limit_retry_wait_seconds: float = Field(default=86400.0, ge=0)
    rate_limit_max_attempts: int = Field(default=3, ge=1)
    # Restrict full-pass price fetches to the most recent N days; None keeps full history.
    price_days_to_restrict: int | None = Field(default=None, ge=1)

    # ── Durable writer ───────────────────────────────────────────
    writer_batch_size: int = Field(default=5, ge=1)
    writer_pacing_seconds: float = Field(default=1.0, ge=0)

    # ── Heatmaps ─────────────────────────────────────────────────
    heatmap_max_date_retries: int = Field(default=7, ge=1)
    heatmap_anchor_lag_days: int = Field(default=1, ge=0)
    heatmap_min_results: int = Field(default=0, ge=0)

    # ── Scheduling ───────────────────────────────────────────────
    schedule_cron: str = Field(default="0 0 */7 * *")
    run_on_start: bool = Field(default=True)
    start_pass: Literal["local", "full"] = Field(default="local")
    scheduled_pass: Literal["local", "full"] = Field(default="full")

    # ── Reference data ───────────────────────────────────────────
    reference_concurrency: int = Field(default=5, ge=1)
    reference_fetch_delay_seconds: float = Field(default=3.0, ge=0)

    # ── Universes ────────────────────────────────────────────────
    indexes: list[str] = Field(default_factory=lambda: list(DEFAULT_INDEXES))
    price_indexes: list[str] = Field(default_factory=lambda: ["FTSE_350"])
    heatmap_indexes: list[str] = Field(default_factory=lambda: ["FTSE_100", "FTSE_250"])
    universe_symbols: dict[str, list[str]] = Field(default_factory=dict)

    # ── Notifications ────────────────────────────────────────────
    notify_console: bool = Field(default=True)
    smtp_host: str | None = Field(default=None)
    smtp_port: int = Field(default=587)
    smtp_username: str | None = Field(default=None)
    smtp_password: SecretStr | None = Field(default=None)
    smtp_use_tls: bool = Field(default=True)
    notify_from: str = Field(default="ticker-spine@localhost")
    notify_to: list[str] = Field(default_factory=list)

    # ── API ──────────────────────────────────────────────────────
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)

    @field_validator("writer_batch_size")
    @classmethod
    def _cap_batch_size(cls, value: int) -> int:
        return min(value, MAX_WRITE_BATCH_SIZE)

    @property
    def json_logs(self) -> bool | None:
        if self.log_format == "auto":
            return None
        return self.log_format == "json"


@lru_cache(maxsize=1)
def get_settings() -> TickerSpineSettings:
    """Load and cache settings from the environment."""
    return TickerSpineSettings()


def clear_settings_cache() -> None:
    """Drop the cached settings (primarily for testing)."""
    get_settings.cache_clear()


__all__ = [
    "MAX_WRITE_BATCH_SIZE",
    "TickerSpineSettings",
    "get_settings",
    "clear_settings_cache",
]
