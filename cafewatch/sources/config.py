"""Configuration for the monitored-source registry."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SourcesConfig(BaseSettings):
    """Settings for the source registry table and its cache."""

    model_config = SettingsConfigDict(
        env_prefix="SOURCES_",
        case_sensitive=False,
        extra="ignore",
    )

    cache_ttl_seconds: int = Field(
        default=300,
        ge=0,
        description="TTL for the in-memory active-source cache (0 = no caching)",
    )
    seed_file: Path | None = Field(
        default=None,
        description="JSON file of sources loaded on first init when the table is empty",
    )
    seed_on_init: bool = Field(
        default=True,
        description="Seed from seed_file on first init if the table is empty",
    )
