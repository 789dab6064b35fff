"""Scan engine configuration.

Page/item budgets, pacing factors, error backoffs and fetch timeouts.
All settings can be overridden via ``MONITOR_*`` environment variables.
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class MonitorConfig(BaseSettings):
    """Configuration for the incremental scan engine."""

    model_config = SettingsConfigDict(
        env_prefix="MONITOR_",
        case_sensitive=False,
        extra="ignore",
    )

    platform: str = Field(
        default="cafe",
        description="Platform key cursors are stored under",
    )
    check_interval_seconds: float = Field(
        default=60.0,
        ge=5.0,
        le=3600.0,
        description="Time between the end of one cycle and the start of the next",
    )

    # Incremental fetch budgets
    max_pages: int = Field(default=3, ge=1, le=20, description="Pages scanned per source")
    max_items: int = Field(default=15, ge=1, le=200, description="New items returned per source")
    unbaselined_item_cap: int = Field(
        default=3,
        ge=0,
        description="Items returned from page 1 when no cursor exists on the incremental path",
    )
    inter_page_delay_seconds: float = Field(default=1.0, ge=0.0)

    # Adaptive inter-source delay
    base_delay_seconds: float = Field(default=2.0, ge=0.0)
    jitter_max_seconds: float = Field(default=1.0, ge=0.0)
    warning_memory_factor: float = Field(default=1.5, ge=1.0)
    critical_memory_factor: float = Field(default=2.0, ge=1.0)
    peak_factor: float = Field(default=1.3, ge=1.0)
    peak_start_hour: int = Field(default=18, ge=0, le=23)
    peak_end_hour: int = Field(default=23, ge=0, le=23, description="Inclusive")

    # Elevated backoff after per-source failures
    timeout_backoff_seconds: float = Field(default=10.0, ge=0.0)
    navigation_backoff_seconds: float = Field(default=5.0, ge=0.0)

    # Fetch timeouts
    navigation_timeout_seconds: float = Field(
        default=25.0,
        gt=0.0,
        description="Budget for connecting and sending the listing request",
    )
    content_timeout_seconds: float = Field(
        default=12.0,
        gt=0.0,
        description="Budget for receiving the listing body",
    )

    # Crawl policy
    respect_robots_txt: bool = Field(
        default=True,
        description="Skip cycles while the site's robots.txt disallows the board paths",
    )
    robots_cache_seconds: float = Field(
        default=3600.0,
        ge=0.0,
        description="How long one robots.txt answer is reused",
    )

    # Authentication probe
    auth_probe_attempts: int = Field(default=3, ge=1, le=10)
    auth_probe_retry_delay_seconds: float = Field(default=2.0, ge=0.0)

    # Memory pressure thresholds (process RSS, MiB)
    memory_warning_mb: int = Field(default=512, ge=1)
    memory_critical_mb: int = Field(default=1024, ge=1)
    memory_emergency_mb: int = Field(default=1536, ge=1)

    @model_validator(mode="after")
    def _check_ordering(self) -> "MonitorConfig":
        if not (self.memory_warning_mb <= self.memory_critical_mb <= self.memory_emergency_mb):
            raise ValueError("memory thresholds must be warning <= critical <= emergency")
        return self
