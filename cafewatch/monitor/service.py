"""
Monitor service - runs scan cycles on a timer and delivers notifications.

Each iteration loads the active sources, runs one orchestrator cycle and
hands every source's new items to the notification dispatcher. The pause
between cycles is interruptible, so stop() takes effect at the next
suspension point rather than after a full interval.

Features:
- Graceful shutdown
- Health monitoring
- Single manual cycle (run_once) for the CLI and API
"""

import asyncio
import time
from typing import Any, Protocol

import structlog

from cafewatch.cafe.auth_probe import NaverAuthProbe
from cafewatch.cafe.client import CafeBoardClient
from cafewatch.monitor.auth import AuthStatusCache
from cafewatch.monitor.config import MonitorConfig
from cafewatch.monitor.events import MonitorEventBus
from cafewatch.monitor.orchestrator import SourceScanOrchestrator
from cafewatch.monitor.rate_limit import sleep_or_stop
from cafewatch.monitor.schemas import CycleReport, SourceDescriptor
from cafewatch.monitor.state import MonitorStateStore
from cafewatch.notify.dispatcher import NotificationDispatcher
from cafewatch.notify.history import NotificationHistory
from cafewatch.observability.metrics import get_metrics
from cafewatch.sources.service import SourcesService
from cafewatch.storage.database import Database

logger = structlog.get_logger(__name__)


class SourceProvider(Protocol):
    async def get_active_sources(self, platform: str) -> list[SourceDescriptor]: ...


class MonitorService:
    """
    Service that runs the scan engine continuously.

    Usage:
        service = build_monitor_service(database)
        await service.start()  # Runs until stop()
    """

    def __init__(
        self,
        orchestrator: SourceScanOrchestrator,
        sources: SourceProvider,
        dispatcher: NotificationDispatcher,
        auth: AuthStatusCache,
        config: MonitorConfig | None = None,
        events: MonitorEventBus | None = None,
        closeables: list[Any] | None = None,
    ):
        self._orchestrator = orchestrator
        self._sources = sources
        self._dispatcher = dispatcher
        self._auth = auth
        self._config = config or MonitorConfig()
        self._events = events or MonitorEventBus()
        self._closeables = closeables or []
        self._metrics = get_metrics()

        self._running = False
        self._cycles_run = 0
        self._last_report: CycleReport | None = None
        self._last_error: str | None = None
        self._background: set[asyncio.Task] = set()

        logger.info(
            "Monitor service initialized",
            platform=self._config.platform,
            interval=self._config.check_interval_seconds,
        )

    @property
    def orchestrator(self) -> SourceScanOrchestrator:
        return self._orchestrator

    @property
    def auth(self) -> AuthStatusCache:
        return self._auth

    @property
    def events(self) -> MonitorEventBus:
        return self._events

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def last_report(self) -> CycleReport | None:
        return self._last_report

    async def start(self) -> None:
        """
        Run cycles until stop() is called.

        A failing cycle is logged and retried after the normal interval.
        """
        self._running = True
        self._orchestrator.stop_event.clear()
        interval = self._config.check_interval_seconds
        logger.info("Starting monitor service")

        try:
            while self._running:
                start_time = time.monotonic()
                try:
                    await self.run_once()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    self._last_error = str(e)
                    logger.error("Monitor cycle error", error=str(e), exc_info=True)

                if not self._running:
                    break
                logger.debug(
                    "Waiting for next cycle",
                    interval=interval,
                    cycle_seconds=round(time.monotonic() - start_time, 2),
                )
                if await sleep_or_stop(interval, self._orchestrator.stop_event):
                    break
        except asyncio.CancelledError:
            logger.info("Monitor service cancelled")
        finally:
            self._running = False
            await self.close()

    async def stop(self) -> None:
        """Stop gracefully; an in-flight cycle ends at its next wait or fetch."""
        logger.info("Stopping monitor service")
        self._running = False
        self._orchestrator.request_stop()

    async def run_once(self) -> CycleReport:
        """
        Run one cycle and deliver notifications for its new items.

        Returns:
            The cycle report.
        """
        sources = await self._sources.get_active_sources(self._config.platform)
        report = await self._orchestrator.run_cycle_report(sources)

        by_id = {s.source_id: s for s in sources}
        for outcome in report.outcomes:
            if not outcome.new_items:
                continue
            summary = await self._dispatcher.notify_items(
                by_id[outcome.source_id], outcome.new_items
            )
            logger.info(
                "Notifications dispatched",
                source_id=outcome.source_id,
                **summary.to_dict(),
            )

        self._cycles_run += 1
        self._last_report = report
        self._last_error = None
        return report

    def run_in_background(self) -> asyncio.Task:
        """Start one cycle as a task; shutdown() waits for it."""

        async def _run() -> None:
            try:
                report = await self.run_once()
                logger.info("Manual cycle finished", **report.to_dict())
            except Exception as e:
                logger.error("Manual cycle failed", error=str(e), exc_info=True)

        task = asyncio.create_task(_run(), name="manual_cycle")
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def shutdown(self, loop_task: asyncio.Task | None = None) -> None:
        """
        Stop, wait for in-flight cycles, then release the HTTP clients.

        Cycles end at their next suspension point but may still write a
        cursor or claim a notification key, so the caller must keep the
        database open until this returns.
        """
        await self.stop()
        pending = list(self._background)
        if loop_task is not None:
            pending.append(loop_task)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        await self.close()

    async def close(self) -> None:
        """Release the HTTP clients held by the bindings."""
        for resource in self._closeables:
            await resource.close()
        logger.info("Monitor service cleaned up")

    async def health_check(self) -> dict[str, Any]:
        """
        Health of the monitor service.

        Returns:
            Dictionary with health status
        """
        return {
            "running": self._running,
            "cycle_in_progress": self._orchestrator.is_cycle_running,
            "cycles_run": self._cycles_run,
            "auth": self._auth.status.to_dict(),
            "last_cycle": self._last_report.to_dict() if self._last_report else None,
            "last_error": self._last_error,
            "event_subscribers": self._events.subscriber_count,
        }


def build_monitor_service(
    database: Database,
    config: MonitorConfig | None = None,
    events: MonitorEventBus | None = None,
    sources: SourceProvider | None = None,
    dispatcher: NotificationDispatcher | None = None,
) -> MonitorService:
    """Wire the production bindings (cafe client, login probe, Postgres stores)."""
    config = config or MonitorConfig()
    events = events or MonitorEventBus()

    client = CafeBoardClient(config)
    auth = AuthStatusCache(NaverAuthProbe(config), events=events)
    orchestrator = SourceScanOrchestrator(
        client,
        MonitorStateStore(database),
        auth,
        config=config,
        events=events,
        policy=client,
    )
    return MonitorService(
        orchestrator,
        sources or SourcesService(database),
        dispatcher or NotificationDispatcher(
            history=NotificationHistory(database),
            events=events,
            content_fetcher=client,
        ),
        auth,
        config=config,
        events=events,
        closeables=[client],
    )
