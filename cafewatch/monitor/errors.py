"""Exception taxonomy for the scan engine."""

from enum import Enum


class FetchErrorKind(str, Enum):
    """Coarse classification of a failed page fetch."""

    TIMEOUT = "timeout"
    NAVIGATION_FAILED = "navigation_failed"
    BLOCKED = "blocked"
    PARSE_EMPTY = "parse_empty"

    @property
    def is_empty_page(self) -> bool:
        """Kinds that mean "no items on this page" rather than a failure."""
        return self in (FetchErrorKind.BLOCKED, FetchErrorKind.PARSE_EMPTY)


class MonitorError(Exception):
    """Base exception for scan engine errors."""


class AuthError(MonitorError):
    """The session is not authenticated; the cycle is skipped."""


class ScanCancelled(MonitorError):
    """Raised at a suspension point when shutdown has been requested."""


class FetchError(MonitorError):
    """A page fetch failed.

    Attributes:
        kind: Coarse error kind consumed by the orchestrator
        page: Page number being fetched, when known
        status_code: HTTP status, when the failure came from a response
    """

    kind: FetchErrorKind = FetchErrorKind.NAVIGATION_FAILED

    def __init__(
        self,
        message: str,
        kind: FetchErrorKind | None = None,
        page: int | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        if kind is not None:
            self.kind = kind
        self.page = page
        self.status_code = status_code


class FetchTimeout(FetchError):
    kind = FetchErrorKind.TIMEOUT


class FetchNavigationFailure(FetchError):
    kind = FetchErrorKind.NAVIGATION_FAILED


class FetchBlocked(FetchError):
    kind = FetchErrorKind.BLOCKED


class FetchParseEmpty(FetchError):
    kind = FetchErrorKind.PARSE_EMPTY

