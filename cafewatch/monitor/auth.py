"""
Memoized, single-flight authentication status.

A probe takes seconds (it loads a page and inspects it, with retries),
and callers arrive in bursts: the scheduled cycle, a manual "check login"
from the API, the health endpoint. At most one probe runs at a time;
everyone else reads the last cached value while it is in flight.

State machine: IDLE -> CHECKING -> IDLE. Probe failures cache False
(fail-closed), so a cycle never scans while the session state is unknown.
"""

import asyncio
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Protocol

import structlog

from cafewatch.monitor.errors import AuthError
from cafewatch.monitor.events import MonitorEventBus, MonitorEventType
from cafewatch.observability.metrics import MetricsCollector, get_metrics

logger = structlog.get_logger(__name__)


class AuthProbe(Protocol):
    """Answers "is the shared session logged in". May raise."""

    async def check(self) -> bool: ...


class AuthCheckState(str, Enum):
    IDLE = "idle"
    CHECKING = "checking"


@dataclass(frozen=True)
class AuthStatus:
    """Snapshot of the cache; never persisted."""

    is_authenticated: bool = False
    last_checked_at: datetime | None = None
    refresh_in_progress: bool = False
    last_error: str | None = None

    def to_dict(self) -> dict:
        return {
            "is_authenticated": self.is_authenticated,
            "last_checked_at": self.last_checked_at.isoformat() if self.last_checked_at else None,
            "refresh_in_progress": self.refresh_in_progress,
            "last_error": self.last_error,
        }


class AuthStatusCache:
    """
    Cached authentication signal with a single in-flight probe.

    Usage:
        cache = AuthStatusCache(NaverAuthProbe(...))
        if await cache.ensure_authenticated():
            ...
    """

    def __init__(
        self,
        probe: AuthProbe,
        events: MonitorEventBus | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._probe = probe
        self._events = events
        self._metrics = metrics or get_metrics()
        self._lock = asyncio.Lock()
        self._state = AuthCheckState.IDLE
        self._status = AuthStatus()
        self._probe_count = 0

    @property
    def state(self) -> AuthCheckState:
        return self._state

    @property
    def status(self) -> AuthStatus:
        return replace(self._status, refresh_in_progress=self._state is AuthCheckState.CHECKING)

    @property
    def is_authenticated(self) -> bool:
        return self._status.is_authenticated

    @property
    def probe_count(self) -> int:
        """Number of probes actually started (for diagnostics)."""
        return self._probe_count

    async def check_status(self) -> bool:
        """
        Refresh the status unless a refresh is already in flight.

        Returns:
            The fresh result, or the cached value if another caller is
            currently probing.
        """
        # No await between the check and the acquire, so this is atomic
        # on the event loop.
        if self._lock.locked():
            logger.info(
                "Auth check already in progress, returning cached status",
                authenticated=self._status.is_authenticated,
            )
            return self._status.is_authenticated

        async with self._lock:
            self._state = AuthCheckState.CHECKING
            self._probe_count += 1
            error: str | None = None
            try:
                result = bool(await self._probe.check())
                self._metrics.record_auth_probe(
                    "authenticated" if result else "unauthenticated"
                )
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning("Auth probe failed, treating as logged out", error=str(e))
                self._metrics.record_auth_probe("error")
                result = False
                error = str(e) or type(e).__name__
            finally:
                self._state = AuthCheckState.IDLE

            self._store(result, error)
            return result

    async def ensure_authenticated(self) -> bool:
        """Known-true returns immediately; otherwise force a fresh check."""
        if self._status.is_authenticated:
            return True
        return await self.check_status()

    async def require_authenticated(self) -> None:
        """Like ensure_authenticated(), but raise AuthError when logged out."""
        if not await self.ensure_authenticated():
            raise AuthError(self._status.last_error or "session is not logged in")

    def invalidate(self, reason: str = "") -> None:
        """Drop a cached True so the next ensure_authenticated() re-probes."""
        if self._status.is_authenticated:
            logger.info("Auth status invalidated", reason=reason)
            self._store(False, reason or None, checked=False)

    def _store(self, authenticated: bool, error: str | None, checked: bool = True) -> None:
        previous = self._status.is_authenticated
        self._status = AuthStatus(
            is_authenticated=authenticated,
            last_checked_at=(
                datetime.now(timezone.utc) if checked else self._status.last_checked_at
            ),
            last_error=error,
        )
        self._metrics.set_authenticated(authenticated)

        logger.info(
            "Auth status" + (" changed" if previous != authenticated else ""),
            authenticated=authenticated,
        )
        if previous != authenticated and self._events is not None:
            self._events.emit(
                MonitorEventType.AUTH_STATUS_CHANGED,
                authenticated=authenticated,
                error=error,
            )
