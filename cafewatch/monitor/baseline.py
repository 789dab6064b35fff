"""First contact with a source: remember where the listing is, announce nothing."""

from typing import Callable

import structlog

from cafewatch.monitor.fetcher import PageFetcher, fetch_page_or_empty
from cafewatch.monitor.schemas import ContentItem, MonitorStatus, SourceDescriptor
from cafewatch.monitor.state import StateStore

logger = structlog.get_logger(__name__)


class BaselineEstablisher:
    """Records the newest item on page 1 as the cursor."""

    def __init__(
        self,
        pages: PageFetcher,
        store: StateStore,
        on_blocked: Callable[[str], None] | None = None,
    ):
        self._pages = pages
        self._store = store
        self._on_blocked = on_blocked

    async def establish(self, source: SourceDescriptor) -> list[ContentItem]:
        """
        Set the baseline cursor for a source.

        Always returns an empty list: items present at first contact are
        history, not news. An empty page leaves the source un-baselined
        so the next cycle tries again. Timeouts and navigation failures
        propagate.
        """
        items = await fetch_page_or_empty(self._pages, source, 1, self._on_blocked)
        if not items:
            logger.info("Baseline deferred, listing empty", source_id=source.source_id)
            return []

        newest = items[0]
        await self._store.set(
            source.source_id, source.platform, newest.id, MonitorStatus.BASELINE_SET
        )
        logger.info(
            "Baseline set",
            source_id=source.source_id,
            platform=source.platform,
            cursor=newest.id,
        )
        return []
