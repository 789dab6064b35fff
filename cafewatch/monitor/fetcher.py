"""
Incremental fetch: find everything newer than the stored cursor.

Listings are newest-first. Paging walks forward from page 1 until it sees
the cursor item, runs out of budget, or reaches a page with nothing new.
Only after the loop is the cursor advanced, to the newest new item, so a
failure mid-scan leaves the stored position untouched.
"""

import asyncio
from typing import Callable, Protocol

import structlog

from cafewatch.monitor.config import MonitorConfig
from cafewatch.monitor.errors import FetchError, FetchErrorKind
from cafewatch.monitor.ids import ContentIdComparator, IdOrder
from cafewatch.monitor.rate_limit import sleep_or_stop
from cafewatch.monitor.schemas import ContentItem, MonitorStatus, SourceDescriptor
from cafewatch.monitor.state import StateStore

logger = structlog.get_logger(__name__)


class PageFetcher(Protocol):
    """Fetches one listing page of a source, newest item first.

    Raises FetchError (with a FetchErrorKind) on failure.
    """

    async def fetch_page(self, source: SourceDescriptor, page: int) -> list[ContentItem]: ...


async def fetch_page_or_empty(
    pages: PageFetcher,
    source: SourceDescriptor,
    page: int,
    on_blocked: Callable[[str], None] | None = None,
) -> list[ContentItem]:
    """
    Fetch a page, mapping blocked / parse_empty failures to an empty page.

    Timeouts and navigation failures propagate to the caller.
    """
    try:
        return await pages.fetch_page(source, page)
    except FetchError as e:
        if not e.kind.is_empty_page:
            raise
        logger.info(
            "Page treated as empty",
            source_id=source.source_id,
            page=page,
            kind=e.kind.value,
            error=str(e),
        )
        if e.kind is FetchErrorKind.BLOCKED and on_blocked is not None:
            on_blocked(f"blocked fetching source {source.source_id} page {page}")
        return []


class IncrementalFetcher:
    """Bounded multi-page scan for items newer than the cursor."""

    def __init__(
        self,
        pages: PageFetcher,
        store: StateStore,
        config: MonitorConfig | None = None,
        comparator: ContentIdComparator | None = None,
        on_blocked: Callable[[str], None] | None = None,
    ):
        self._pages = pages
        self._store = store
        self._config = config or MonitorConfig()
        self._comparator = comparator or ContentIdComparator()
        self._on_blocked = on_blocked

    async def fetch_new(
        self,
        source: SourceDescriptor,
        last_id: str | None,
        stop_event: asyncio.Event | None = None,
    ) -> list[ContentItem]:
        """
        Return items newer than ``last_id``, newest first, and advance the cursor.

        Args:
            source: Source to scan
            last_id: Stored cursor; None scans page 1 only and keeps the
                first few items
            stop_event: When set, paging stops after the current page

        Returns:
            At most ``max_items`` new items.

        Raises:
            FetchError: timeout or navigation failure on any page; the
                cursor is not advanced
        """
        if not last_id:
            return await self._fetch_without_cursor(source)

        max_pages = self._config.max_pages
        max_items = self._config.max_items
        accumulated: list[ContentItem] = []
        seen: set[str] = set()
        boundary_found = False
        pages_scanned = 0

        for page in range(1, max_pages + 1):
            if stop_event is not None and stop_event.is_set():
                logger.info("Stop requested, ending scan", source_id=source.source_id, page=page)
                break

            items = await fetch_page_or_empty(self._pages, source, page, self._on_blocked)
            pages_scanned = page
            if not items:
                break

            new_on_page = 0
            for item in items:
                order = self._comparator.compare(item.id, last_id)
                if order is IdOrder.EQUAL:
                    boundary_found = True
                    break
                if order is IdOrder.GREATER and item.id not in seen:
                    seen.add(item.id)
                    accumulated.append(item)
                    new_on_page += 1

            if boundary_found or new_on_page == 0:
                break
            if page >= max_pages or len(accumulated) >= max_items:
                break
            if await sleep_or_stop(self._config.inter_page_delay_seconds, stop_event):
                break

        result = accumulated[:max_items]
        logger.debug(
            "Incremental scan finished",
            source_id=source.source_id,
            pages=pages_scanned,
            new_items=len(result),
            boundary_found=boundary_found,
        )
        await self._advance_cursor(source, last_id, result)
        return result

    async def _fetch_without_cursor(self, source: SourceDescriptor) -> list[ContentItem]:
        items = await fetch_page_or_empty(self._pages, source, 1, self._on_blocked)
        result = items[: self._config.unbaselined_item_cap]
        await self._advance_cursor(source, None, result)
        return result

    async def _advance_cursor(
        self,
        source: SourceDescriptor,
        last_id: str | None,
        items: list[ContentItem],
    ) -> None:
        if not items:
            return
        newest = items[0].id
        if last_id and self._comparator.compare(newest, last_id) is IdOrder.LESS:
            logger.warning(
                "Refusing to move cursor backwards",
                source_id=source.source_id,
                cursor=last_id,
                candidate=newest,
            )
            return
        await self._store.set(source.source_id, source.platform, newest, MonitorStatus.CHECKED)
