"""
One full scan cycle over all monitored sources.

Sources are scanned strictly one after another through a single browsing
session, with an adaptive pause between them. A failure in one source is
classified, counted and logged, and never aborts the rest of the cycle.
"""

import asyncio
import time
import uuid
from datetime import datetime, timezone
from typing import Protocol

import structlog

from cafewatch.monitor.auth import AuthStatusCache
from cafewatch.monitor.baseline import BaselineEstablisher
from cafewatch.monitor.config import MonitorConfig
from cafewatch.monitor.errors import FetchError, ScanCancelled
from cafewatch.monitor.events import MonitorEventBus, MonitorEventType
from cafewatch.monitor.fetcher import IncrementalFetcher, PageFetcher
from cafewatch.monitor.ids import ContentIdComparator
from cafewatch.monitor.rate_limit import AdaptiveRateLimiter
from cafewatch.monitor.schemas import (
    ContentItem,
    CycleReport,
    ScanMode,
    ScanOutcome,
    SourceDescriptor,
)
from cafewatch.monitor.state import StateStore
from cafewatch.observability.logging import bound_context
from cafewatch.observability.metrics import MetricsCollector, get_metrics

logger = structlog.get_logger(__name__)

UNEXPECTED_ERROR = "unexpected"


class CrawlPolicy(Protocol):
    """Decides whether the board may be scanned right now."""

    async def allows_scanning(self) -> bool: ...


class SourceScanOrchestrator:
    """
    Runs scan cycles: authenticate, then baseline or incrementally scan
    each enabled source in order.

    Usage:
        orchestrator = SourceScanOrchestrator(client, store, auth_cache)
        new_items = await orchestrator.run_cycle(sources)
    """

    def __init__(
        self,
        pages: PageFetcher,
        store: StateStore,
        auth: AuthStatusCache,
        limiter: AdaptiveRateLimiter | None = None,
        config: MonitorConfig | None = None,
        events: MonitorEventBus | None = None,
        metrics: MetricsCollector | None = None,
        policy: CrawlPolicy | None = None,
        stop_event: asyncio.Event | None = None,
    ):
        self._config = config or MonitorConfig()
        self._store = store
        self._auth = auth
        self._policy = policy
        self._limiter = limiter or AdaptiveRateLimiter(self._config)
        self._events = events
        self._metrics = metrics or get_metrics()
        self._stop_event = stop_event or asyncio.Event()
        self._cycle_lock = asyncio.Lock()

        comparator = ContentIdComparator(on_fallback=self._metrics.record_malformed_id)
        self._baseline = BaselineEstablisher(pages, store, on_blocked=auth.invalidate)
        self._fetcher = IncrementalFetcher(
            pages,
            store,
            config=self._config,
            comparator=comparator,
            on_blocked=auth.invalidate,
        )

    @property
    def stop_event(self) -> asyncio.Event:
        return self._stop_event

    @property
    def is_cycle_running(self) -> bool:
        return self._cycle_lock.locked()

    def request_stop(self) -> None:
        """Ask the running cycle to stop at its next suspension point."""
        self._stop_event.set()

    async def run_cycle(self, sources: list[SourceDescriptor]) -> list[ContentItem]:
        """
        Run one cycle and return every new item.

        Items are newest-first within a source, sources in input order.
        An unauthenticated session returns an empty list without touching
        any state.
        """
        report = await self.run_cycle_report(sources)
        return report.new_items

    async def run_cycle_report(self, sources: list[SourceDescriptor]) -> CycleReport:
        """Run one cycle and return the full per-source report.

        Concurrent callers queue on the cycle lock; cycles never overlap.
        """
        async with self._cycle_lock:
            return await self._run(sources)

    async def _run(self, sources: list[SourceDescriptor]) -> CycleReport:
        report = CycleReport(cycle_id=uuid.uuid4().hex[:12])
        start = time.monotonic()
        self._emit(MonitorEventType.CYCLE_STARTED, cycle_id=report.cycle_id)

        report.authenticated = await self._auth.ensure_authenticated()
        if not report.authenticated:
            logger.warning("Not logged in, skipping cycle", cycle_id=report.cycle_id)
            return self._finish(report, start, "unauthenticated")

        if self._policy is not None and not await self._policy.allows_scanning():
            logger.warning("Crawling disallowed, skipping cycle", cycle_id=report.cycle_id)
            return self._finish(report, start, "disallowed")

        active = [s for s in sources if s.enabled]
        logger.info("Cycle started", cycle_id=report.cycle_id, sources=len(active))

        try:
            await self._scan_all(report, active)
        except ScanCancelled as e:
            report.cancelled = True
            logger.info("Cycle cancelled", cycle_id=report.cycle_id, reason=str(e))

        return self._finish(report, start, "cancelled" if report.cancelled else "completed")

    def _raise_if_stopped(self, where: str) -> None:
        if self._stop_event.is_set():
            raise ScanCancelled(f"stop requested {where}")

    async def _scan_all(self, report: CycleReport, active: list[SourceDescriptor]) -> None:
        for index, source in enumerate(active):
            self._raise_if_stopped(f"before source {source.source_id}")

            outcome = await self._scan_source(source)
            report.outcomes.append(outcome)
            self._emit(
                MonitorEventType.SOURCE_SCANNED,
                cycle_id=report.cycle_id,
                source_id=source.source_id,
                platform=source.platform,
                mode=outcome.mode.value if outcome.mode else None,
                new_items=len(outcome.new_items),
                error_kind=outcome.error_kind,
            )

            if index == len(active) - 1:
                break

            delay = self._limiter.backoff_for(outcome.error_kind)
            if delay > 0:
                logger.info(
                    "Backing off after source error",
                    source_id=source.source_id,
                    error_kind=outcome.error_kind,
                    delay=delay,
                )
            else:
                delay = self._limiter.compute_delay()
            self._metrics.record_delay(delay)

            self._raise_if_stopped("before delay")
            if await self._limiter.wait(self._stop_event, delay=delay):
                raise ScanCancelled("stop requested during delay")

    async def _scan_source(self, source: SourceDescriptor) -> ScanOutcome:
        outcome = ScanOutcome(source_id=source.source_id, platform=source.platform)
        start = time.monotonic()

        with bound_context(source_id=source.source_id, platform=source.platform):
            try:
                if await self._store.needs_baseline(source.source_id, source.platform):
                    outcome.mode = ScanMode.BASELINE
                    outcome.new_items = await self._baseline.establish(source)
                    self._metrics.record_baseline(source.platform)
                else:
                    outcome.mode = ScanMode.INCREMENTAL
                    state = await self._store.get(source.source_id, source.platform)
                    outcome.new_items = await self._fetcher.fetch_new(
                        source,
                        state.last_content_id if state else None,
                        self._stop_event,
                    )
            except FetchError as e:
                outcome.error_kind = e.kind.value
                outcome.error_message = str(e)
                logger.warning(
                    "Source scan failed, cursor unchanged",
                    source=source.name,
                    error_kind=e.kind.value,
                    page=e.page,
                    error=str(e),
                )
            except Exception as e:
                outcome.error_kind = UNEXPECTED_ERROR
                outcome.error_message = str(e)
                logger.error(
                    "Unexpected error scanning source",
                    source=source.name,
                    error=str(e),
                    exc_info=True,
                )

            outcome.elapsed_seconds = time.monotonic() - start
            if outcome.error_kind:
                self._metrics.record_source_error(source.platform, outcome.error_kind)
            else:
                self._metrics.record_source_scan(
                    source.platform,
                    outcome.mode.value,
                    len(outcome.new_items),
                    outcome.elapsed_seconds,
                )
                if outcome.new_items:
                    logger.info(
                        "New items found",
                        source=source.name,
                        count=len(outcome.new_items),
                        newest=outcome.new_items[0].id,
                    )

        return outcome

    def _finish(self, report: CycleReport, start: float, result: str) -> CycleReport:
        report.finished_at = datetime.now(timezone.utc)
        latency = time.monotonic() - start
        self._metrics.record_cycle(result, latency)
        logger.info(
            "Cycle finished",
            cycle_id=report.cycle_id,
            result=result,
            new_items=len(report.new_items),
            errors=report.error_count,
            elapsed_seconds=round(latency, 2),
        )
        self._emit(MonitorEventType.CYCLE_COMPLETED, result=result, **report.to_dict())
        return report

    def _emit(self, event_type: MonitorEventType, **data) -> None:
        if self._events is not None:
            self._events.emit(event_type, **data)
