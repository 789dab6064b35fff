"""Notification channels.

Each channel delivers a NotificationPayload and reports success as a
boolean; delivery is best-effort and never raises into the scan loop.
A CircuitBreaker wraps any channel so a dead endpoint stops being hit on
every new post.

Pattern: Decorator (CircuitBreaker wraps any Notifier).
"""

import enum
import logging
import time
from abc import ABC, abstractmethod

import httpx

from cafewatch.notify.schemas import NotificationPayload

logger = logging.getLogger(__name__)


class Notifier(ABC):
    """Abstract base for notification delivery channels."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this channel (e.g. 'webhook', 'log')."""

    @abstractmethod
    async def deliver(self, payload: NotificationPayload) -> bool:
        """Deliver a notification.

        Returns:
            True if delivery succeeded, False otherwise.
        """


class WebhookNotifier(Notifier):
    """POSTs the payload as JSON to an HTTP endpoint.

    A new ``httpx.AsyncClient`` is opened per call; notifications are rare
    enough that pooling buys nothing.
    """

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._url = url
        self._headers = headers or {}
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "webhook"

    async def deliver(self, payload: NotificationPayload) -> bool:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(
                    self._url,
                    json=payload.to_dict(),
                    headers=self._headers,
                )
                if resp.is_success:
                    return True
                logger.warning(
                    "Webhook %s returned %d for %s",
                    self._url, resp.status_code, payload.unique_key,
                )
                return False
        except httpx.TimeoutException:
            logger.warning("Webhook %s timed out for %s", self._url, payload.unique_key)
            return False
        except httpx.HTTPError as e:
            logger.warning("Webhook %s failed for %s: %s", self._url, payload.unique_key, e)
            return False


class LogNotifier(Notifier):
    """Writes notifications to the application log. Always succeeds."""

    def __init__(self, level: int = logging.INFO) -> None:
        self._level = level

    @property
    def name(self) -> str:
        return "log"

    async def deliver(self, payload: NotificationPayload) -> bool:
        logger.log(
            self._level,
            "%s | %s | %s",
            payload.title, payload.body, payload.url,
        )
        return True


class CircuitState(enum.Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker(Notifier):
    """Wraps a Notifier with circuit breaker protection.

    State machine: CLOSED -> OPEN -> HALF_OPEN -> CLOSED.

    - CLOSED: deliveries pass through; consecutive failures are counted.
    - OPEN: deliveries are rejected until recovery_timeout has elapsed.
    - HALF_OPEN: one probe delivery; success closes, failure re-opens.
    """

    def __init__(
        self,
        channel: Notifier,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        clock=time.monotonic,
    ) -> None:
        self._channel = channel
        self._failure_threshold = failure_threshold
        self._recovery_timeout = recovery_timeout
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._last_failure_time: float = 0.0

    @property
    def name(self) -> str:
        return self._channel.name

    @property
    def state(self) -> CircuitState:
        return self._state

    async def deliver(self, payload: NotificationPayload) -> bool:
        if self._state == CircuitState.OPEN:
            if self._clock() - self._last_failure_time >= self._recovery_timeout:
                self._state = CircuitState.HALF_OPEN
                logger.info("Circuit breaker %s: OPEN -> HALF_OPEN", self.name)
            else:
                logger.debug(
                    "Circuit breaker %s: OPEN, rejecting %s",
                    self.name, payload.unique_key,
                )
                return False

        success = await self._channel.deliver(payload)

        if success:
            if self._state == CircuitState.HALF_OPEN:
                logger.info("Circuit breaker %s: HALF_OPEN -> CLOSED", self.name)
            self._state = CircuitState.CLOSED
            self._consecutive_failures = 0
            return True

        self._consecutive_failures += 1
        self._last_failure_time = self._clock()
        if self._state == CircuitState.HALF_OPEN:
            self._state = CircuitState.OPEN
            logger.warning("Circuit breaker %s: HALF_OPEN -> OPEN (probe failed)", self.name)
        elif self._consecutive_failures >= self._failure_threshold:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker %s: CLOSED -> OPEN after %d failures",
                self.name, self._consecutive_failures,
            )
        return False
