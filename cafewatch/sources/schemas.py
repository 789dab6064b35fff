"""Data models for the source registry."""

from dataclasses import dataclass
from datetime import datetime

from cafewatch.monitor.schemas import SourceDescriptor


@dataclass
class MonitoredSource:
    """A tracked author on a board.

    ``group_id`` is the board (club) id and ``author_handle`` the nickname
    searched for; together with ``platform`` they identify the source.
    ``source_id`` is assigned by the database.
    """

    platform: str
    author_handle: str
    group_id: str
    display_name: str = ""
    profile_image_url: str | None = None
    notify: bool = True
    is_active: bool = True
    source_id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_descriptor(self) -> SourceDescriptor:
        if self.source_id is None:
            raise ValueError("source has not been stored yet")
        return SourceDescriptor(
            source_id=self.source_id,
            platform=self.platform,
            author_handle=self.author_handle,
            group_id=self.group_id,
            enabled=self.is_active,
            display_name=self.display_name,
            profile_image_url=self.profile_image_url,
            notify=self.notify,
        )
