"""
Data models for the scan engine.

ContentItem is a pydantic model because it is built from scraped text and
validated at the boundary; everything the engine owns internally is a
plain dataclass.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


class MonitorStatus(str, Enum):
    """Last status tag recorded with a cursor."""

    UNINITIALIZED = "uninitialized"
    BASELINE_SET = "baseline_set"
    CHECKED = "checked"


class ScanMode(str, Enum):
    BASELINE = "baseline"
    INCREMENTAL = "incremental"


@dataclass(frozen=True)
class SourceDescriptor:
    """One monitored author on one platform.

    Immutable for the duration of a scan; built from the source registry.
    """

    source_id: int
    platform: str
    author_handle: str
    group_id: str
    enabled: bool = True
    display_name: str = ""
    profile_image_url: str | None = None
    notify: bool = True

    @property
    def name(self) -> str:
        """Human-readable name for logs and notifications."""
        return self.display_name or self.author_handle


class ContentItem(BaseModel):
    """A single post discovered on a source's listing.

    Items are compared by ``id`` only; title, url and timestamp are
    carried through for notification display.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Board article id, numeric when well-formed")
    title: str = Field(default="", description="Post title with board prefix stripped")
    url: str = Field(default="", description="Absolute article URL")
    author: str = Field(default="", description="Author nickname as shown on the board")
    published_at: datetime = Field(
        default_factory=_utc_now,
        description="Best-effort publish time (falls back to fetch time)",
    )

    @field_validator("id", mode="before")
    @classmethod
    def strip_id(cls, v):
        return v.strip() if isinstance(v, str) else v


@dataclass
class MonitorState:
    """Persisted cursor for one (source, platform) pair."""

    source_id: int
    platform: str
    last_content_id: str | None = None
    last_check_time: datetime | None = None
    last_status: MonitorStatus = MonitorStatus.UNINITIALIZED

    @property
    def has_cursor(self) -> bool:
        return bool(self.last_content_id)


@dataclass
class ScanOutcome:
    """Result of scanning one source within a cycle."""

    source_id: int
    platform: str
    mode: ScanMode | None = None
    new_items: list[ContentItem] = field(default_factory=list)
    error_kind: str | None = None
    error_message: str | None = None
    elapsed_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.error_kind is None


@dataclass
class CycleReport:
    """Everything one run of the orchestrator produced."""

    cycle_id: str
    started_at: datetime = field(default_factory=_utc_now)
    finished_at: datetime | None = None
    authenticated: bool = False
    cancelled: bool = False
    outcomes: list[ScanOutcome] = field(default_factory=list)

    @property
    def new_items(self) -> list[ContentItem]:
        """All new items, sources in input order, newest-first within a source."""
        return [item for outcome in self.outcomes for item in outcome.new_items]

    @property
    def error_count(self) -> int:
        return sum(1 for o in self.outcomes if not o.succeeded)

    def to_dict(self) -> dict:
        return {
            "cycle_id": self.cycle_id,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "authenticated": self.authenticated,
            "cancelled": self.cancelled,
            "sources_scanned": len(self.outcomes),
            "new_items": len(self.new_items),
            "errors": self.error_count,
        }
