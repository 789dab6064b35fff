"""Notification delivery configuration (``NOTIFICATIONS_*`` environment variables)."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class NotificationConfig(BaseSettings):
    """Configuration for notification dispatch."""

    model_config = SettingsConfigDict(
        env_prefix="NOTIFICATIONS_",
        case_sensitive=False,
        extra="ignore",
    )

    webhook_url: str | None = Field(
        default=None,
        description="Endpoint receiving a JSON POST per new post (disabled when unset)",
    )
    webhook_timeout_seconds: float = Field(default=10.0, gt=0.0)
    log_channel_enabled: bool = Field(
        default=True,
        description="Also write every notification to the application log",
    )
    retry_max_attempts: int = Field(
        default=2,
        ge=1,
        le=10,
        description="Maximum send attempts per channel per notification",
    )
    retry_delays: list[float] = Field(
        default=[1.0, 5.0],
        description="Per-attempt delay in seconds before each retry",
    )
    circuit_breaker_threshold: int = Field(
        default=5,
        ge=1,
        description="Consecutive failures before circuit opens",
    )
    circuit_breaker_recovery_seconds: float = Field(
        default=60.0,
        ge=5.0,
        description="Seconds before circuit breaker probes recovery",
    )
    history_enabled: bool = Field(
        default=True,
        description="Record delivered keys and skip keys already delivered",
    )
    fetch_post_content: bool = Field(
        default=True,
        description="Attach the cleaned post body to each notification",
    )
    post_content_max_chars: int = Field(
        default=20000,
        ge=0,
        description="Post bodies longer than this are dropped rather than sent",
    )

    @property
    def webhook_configured(self) -> bool:
        return bool(self.webhook_url)
