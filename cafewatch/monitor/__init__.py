"""Incremental content monitoring and deduplication engine.

Components:
- ContentIdComparator / compare_content_ids: Numeric-first id order
- parse_published_at: Total board date parser
- MonitorStateStore: Persisted cursor per (source, platform)
- AuthStatusCache: Single-flight, fail-closed login status
- AdaptiveRateLimiter / MemoryPressureMonitor: Inter-source pacing
- BaselineEstablisher / IncrementalFetcher: Per-source scan strategies
- SourceScanOrchestrator: One full scan cycle
- MonitorEventBus: One-way events for UI layers

The timer loop lives in ``cafewatch.monitor.service``.
"""

from cafewatch.monitor.auth import AuthCheckState, AuthProbe, AuthStatus, AuthStatusCache
from cafewatch.monitor.baseline import BaselineEstablisher
from cafewatch.monitor.config import MonitorConfig
from cafewatch.monitor.errors import (
    AuthError,
    FetchBlocked,
    FetchError,
    FetchErrorKind,
    FetchNavigationFailure,
    FetchParseEmpty,
    FetchTimeout,
    MonitorError,
    ScanCancelled,
)
from cafewatch.monitor.events import MonitorEvent, MonitorEventBus, MonitorEventType
from cafewatch.monitor.fetcher import IncrementalFetcher, PageFetcher
from cafewatch.monitor.ids import ContentIdComparator, IdOrder, compare_content_ids
from cafewatch.monitor.memory import MemoryPressureLevel, MemoryPressureMonitor
from cafewatch.monitor.orchestrator import SourceScanOrchestrator
from cafewatch.monitor.rate_limit import AdaptiveRateLimiter
from cafewatch.monitor.schemas import (
    ContentItem,
    CycleReport,
    MonitorState,
    MonitorStatus,
    ScanMode,
    ScanOutcome,
    SourceDescriptor,
)
from cafewatch.monitor.state import MONITOR_STATES_DDL, MonitorStateStore, StateStore
from cafewatch.monitor.timestamps import parse_published_at

__all__ = [
    "AdaptiveRateLimiter",
    "AuthCheckState",
    "AuthError",
    "AuthProbe",
    "AuthStatus",
    "AuthStatusCache",
    "BaselineEstablisher",
    "ContentIdComparator",
    "ContentItem",
    "CycleReport",
    "FetchBlocked",
    "FetchError",
    "FetchErrorKind",
    "FetchNavigationFailure",
    "FetchParseEmpty",
    "FetchTimeout",
    "IdOrder",
    "IncrementalFetcher",
    "MONITOR_STATES_DDL",
    "MemoryPressureLevel",
    "MemoryPressureMonitor",
    "MonitorConfig",
    "MonitorError",
    "MonitorEvent",
    "MonitorEventBus",
    "MonitorEventType",
    "MonitorState",
    "MonitorStateStore",
    "MonitorStatus",
    "PageFetcher",
    "ScanCancelled",
    "ScanMode",
    "ScanOutcome",
    "SourceDescriptor",
    "SourceScanOrchestrator",
    "StateStore",
    "compare_content_ids",
    "parse_published_at",
]
