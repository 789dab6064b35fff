"""
Process memory pressure classification.

Reads resident set size from /proc on Linux and falls back to the peak
RSS reported by getrusage elsewhere. Only the level is used, to scale the
pause between sources.
"""

import logging
import os
import resource
import sys
from enum import Enum

logger = logging.getLogger(__name__)

_MIB = 1024 * 1024


class MemoryPressureLevel(str, Enum):
    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"
    EMERGENCY = "emergency"


def current_rss_bytes() -> int | None:
    """Resident set size of this process, or None if unavailable."""
    try:
        with open("/proc/self/statm") as f:
            resident_pages = int(f.read().split()[1])
        return resident_pages * os.sysconf("SC_PAGE_SIZE")
    except (OSError, ValueError, IndexError):
        pass

    try:
        peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    except (OSError, ValueError):
        return None
    # ru_maxrss is bytes on macOS and KiB on Linux
    return peak if sys.platform == "darwin" else peak * 1024


class MemoryPressureMonitor:
    """Maps process RSS onto a MemoryPressureLevel."""

    def __init__(
        self,
        warning_mb: int = 512,
        critical_mb: int = 1024,
        emergency_mb: int = 1536,
        reader=current_rss_bytes,
    ):
        self._warning = warning_mb * _MIB
        self._critical = critical_mb * _MIB
        self._emergency = emergency_mb * _MIB
        self._reader = reader
        self._last_level = MemoryPressureLevel.NORMAL

    @classmethod
    def from_config(cls, config) -> "MemoryPressureMonitor":
        return cls(
            warning_mb=config.memory_warning_mb,
            critical_mb=config.memory_critical_mb,
            emergency_mb=config.memory_emergency_mb,
        )

    @property
    def last_level(self) -> MemoryPressureLevel:
        return self._last_level

    def level(self) -> MemoryPressureLevel:
        rss = self._reader()
        if rss is None:
            level = MemoryPressureLevel.NORMAL
        elif rss >= self._emergency:
            level = MemoryPressureLevel.EMERGENCY
        elif rss >= self._critical:
            level = MemoryPressureLevel.CRITICAL
        elif rss >= self._warning:
            level = MemoryPressureLevel.WARNING
        else:
            level = MemoryPressureLevel.NORMAL

        if level != self._last_level:
            logger.info(
                "Memory pressure %s -> %s (rss=%.0f MiB)",
                self._last_level.value, level.value, (rss or 0) / _MIB,
            )
            self._last_level = level
        return level
