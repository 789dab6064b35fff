"""
Adaptive pause between source scans.

    delay = base * memory_factor * time_of_day_factor + uniform(0, jitter)

The memory factor slows the scan when the process is under pressure; the
time-of-day factor backs off during the board's evening peak (local time).
Jitter keeps request spacing from looking mechanical.
"""

import asyncio
import random
from datetime import datetime, tzinfo

import structlog

from cafewatch.monitor.config import MonitorConfig
from cafewatch.monitor.errors import FetchErrorKind
from cafewatch.monitor.memory import MemoryPressureLevel, MemoryPressureMonitor
from cafewatch.monitor.timestamps import BOARD_TZ

logger = structlog.get_logger(__name__)


class AdaptiveRateLimiter:
    """Computes and sleeps the inter-source delay."""

    def __init__(
        self,
        config: MonitorConfig | None = None,
        memory: MemoryPressureMonitor | None = None,
        rng: random.Random | None = None,
        tz: tzinfo = BOARD_TZ,
    ):
        self._config = config or MonitorConfig()
        self._memory = memory or MemoryPressureMonitor.from_config(self._config)
        self._rng = rng or random.Random()
        self._tz = tz

    def memory_factor(self, level: MemoryPressureLevel) -> float:
        if level in (MemoryPressureLevel.CRITICAL, MemoryPressureLevel.EMERGENCY):
            return self._config.critical_memory_factor
        if level is MemoryPressureLevel.WARNING:
            return self._config.warning_memory_factor
        return 1.0

    def time_of_day_factor(self, now: datetime | None = None) -> float:
        local = (now or datetime.now(self._tz)).astimezone(self._tz)
        if self._config.peak_start_hour <= local.hour <= self._config.peak_end_hour:
            return self._config.peak_factor
        return 1.0

    def compute_delay(
        self,
        now: datetime | None = None,
        pressure: MemoryPressureLevel | None = None,
    ) -> float:
        """
        Delay in seconds before the next source.

        Args:
            now: Reference time (defaults to current time)
            pressure: Memory level override (defaults to a fresh reading)
        """
        level = pressure if pressure is not None else self._memory.level()
        scaled = (
            self._config.base_delay_seconds
            * self.memory_factor(level)
            * self.time_of_day_factor(now)
        )
        return scaled + self._rng.uniform(0.0, self._config.jitter_max_seconds)

    def backoff_for(self, kind: FetchErrorKind | str | None) -> float:
        """Elevated pause after a failed source, 0 when none applies."""
        if kind == FetchErrorKind.TIMEOUT:
            return self._config.timeout_backoff_seconds
        if kind == FetchErrorKind.NAVIGATION_FAILED:
            return self._config.navigation_backoff_seconds
        return 0.0

    async def wait(
        self,
        stop_event: asyncio.Event | None = None,
        delay: float | None = None,
    ) -> bool:
        """
        Sleep the adaptive (or given) delay, returning early on stop.

        Returns:
            True if the stop event fired before the delay elapsed.
        """
        seconds = self.compute_delay() if delay is None else delay
        logger.debug("Pausing between sources", delay=round(seconds, 2))
        return await sleep_or_stop(seconds, stop_event)


async def sleep_or_stop(seconds: float, stop_event: asyncio.Event | None = None) -> bool:
    """Sleep for ``seconds``; return True if ``stop_event`` fired first."""
    if seconds <= 0:
        return stop_event is not None and stop_event.is_set()
    if stop_event is None:
        await asyncio.sleep(seconds)
        return False
    try:
        await asyncio.wait_for(stop_event.wait(), timeout=seconds)
        return True
    except asyncio.TimeoutError:
        return False
