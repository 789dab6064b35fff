"""Notification payloads built from newly discovered items."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from cafewatch.monitor.schemas import ContentItem, SourceDescriptor


@dataclass(frozen=True)
class NotificationPayload:
    """A single "new post" notification.

    Attributes:
        unique_key: Stable dedup key, ``{platform}_{name}_{item id}``.
        title: Short header, e.g. "💬 홍길동님의 카페 글".
        body: The post title.
        url: Link to the post.
        source_id: Source that produced the item.
        platform: Platform key.
        item_id: Board article id.
        published_at: Original publish time of the post.
        icon_url: Author profile image, when known.
        content_html: Cleaned body of the post, when it could be read.
        metadata: Extra fields passed to channels verbatim.
    """

    unique_key: str
    title: str
    body: str
    url: str
    source_id: int
    platform: str
    item_id: str
    published_at: datetime
    icon_url: str | None = None
    content_html: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def for_item(
        cls,
        source: SourceDescriptor,
        item: ContentItem,
        content_html: str | None = None,
    ) -> "NotificationPayload":
        name = source.name
        return cls(
            unique_key=f"{source.platform}_{name}_{item.id}",
            title=f"💬 {name}님의 카페 글",
            body=item.title,
            url=item.url,
            source_id=source.source_id,
            platform=source.platform,
            item_id=item.id,
            published_at=item.published_at,
            icon_url=source.profile_image_url,
            content_html=content_html,
            metadata={"author": item.author or source.author_handle},
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "unique_key": self.unique_key,
            "title": self.title,
            "body": self.body,
            "url": self.url,
            "source_id": self.source_id,
            "platform": self.platform,
            "item_id": self.item_id,
            "published_at": self.published_at.isoformat(),
            "icon_url": self.icon_url,
            "content_html": self.content_html,
            "metadata": self.metadata,
        }
