"""Notification dispatcher: turns new items into delivered notifications.

Builds one payload per item, drops keys already in the history ledger,
attaches the post body when a content fetcher is wired, honours the
per-source ``notify`` toggle, and fans the payload out to every
channel with retries. Delivery failures are logged and counted; they never
reach the scan loop and never roll back a cursor.

Pattern: Orchestrator, delegates to stateless channels.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Protocol

from cafewatch.monitor.events import MonitorEventBus, MonitorEventType
from cafewatch.monitor.schemas import ContentItem, SourceDescriptor
from cafewatch.notify.channels import (
    CircuitBreaker,
    LogNotifier,
    Notifier,
    WebhookNotifier,
)
from cafewatch.notify.config import NotificationConfig
from cafewatch.notify.history import NotificationHistory
from cafewatch.notify.schemas import NotificationPayload
from cafewatch.observability.metrics import MetricsCollector, get_metrics

logger = logging.getLogger(__name__)


class PostContentFetcher(Protocol):
    async def fetch_post_content(self, url: str) -> str | None: ...


@dataclass
class DispatchSummary:
    delivered: int = 0
    failed: int = 0
    duplicates: int = 0
    muted: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "delivered": self.delivered,
            "failed": self.failed,
            "duplicates": self.duplicates,
            "muted": self.muted,
        }


def build_channels(config: NotificationConfig) -> list[Notifier]:
    """Channels enabled by configuration."""
    channels: list[Notifier] = []
    if config.webhook_configured:
        channels.append(
            WebhookNotifier(config.webhook_url, timeout=config.webhook_timeout_seconds)
        )
    if config.log_channel_enabled:
        channels.append(LogNotifier())
    return channels


class NotificationDispatcher:
    """Delivers notifications for newly discovered items.

    Wraps each channel in a CircuitBreaker.
    """

    def __init__(
        self,
        channels: list[Notifier] | None = None,
        config: NotificationConfig | None = None,
        history: NotificationHistory | None = None,
        events: MonitorEventBus | None = None,
        content_fetcher: PostContentFetcher | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._config = config or NotificationConfig()
        self._history = history if self._config.history_enabled else None
        self._events = events
        self._metrics = metrics or get_metrics()
        self._content_fetcher = content_fetcher if self._config.fetch_post_content else None

        if channels is None:
            channels = build_channels(self._config)

        self._channels: list[CircuitBreaker] = []
        for ch in channels:
            if isinstance(ch, CircuitBreaker):
                self._channels.append(ch)
            else:
                self._channels.append(
                    CircuitBreaker(
                        channel=ch,
                        failure_threshold=self._config.circuit_breaker_threshold,
                        recovery_timeout=self._config.circuit_breaker_recovery_seconds,
                    )
                )

    @property
    def channels(self) -> list[CircuitBreaker]:
        return self._channels

    async def notify_items(
        self,
        source: SourceDescriptor,
        items: list[ContentItem],
    ) -> DispatchSummary:
        """Notify about every item of one source.

        Items are delivered oldest first so they read in posting order.
        """
        summary = DispatchSummary()
        if not items:
            return summary

        if not source.notify:
            summary.muted = len(items)
            for _ in items:
                self._metrics.record_notification("all", "muted")
            logger.info(
                "Notifications muted for %s, skipping %d items",
                source.name, len(items),
            )
            return summary

        for item in reversed(items):
            payload = NotificationPayload.for_item(source, item)
            try:
                outcome = await self.dispatch(payload)
            except Exception as e:
                logger.error("Unexpected error dispatching %s: %s", payload.unique_key, e)
                outcome = "failed"

            if outcome == "delivered":
                summary.delivered += 1
            elif outcome == "duplicate":
                summary.duplicates += 1
            else:
                summary.failed += 1

        return summary

    async def dispatch(self, payload: NotificationPayload) -> str:
        """Deliver one payload to all channels.

        Returns:
            "delivered" if any channel succeeded, "duplicate" if the key
            was already recorded, otherwise "failed".
        """
        if self._history is not None and not await self._history.claim(payload):
            logger.info("Skipping already-notified %s", payload.unique_key)
            self._metrics.record_notification("all", "duplicate")
            return "duplicate"

        payload = await self._attach_content(payload)

        results: list[tuple[str, bool]] = []
        for channel in self._channels:
            success = await self._send_with_retry(channel, payload)
            results.append((channel.name, success))
            self._metrics.record_notification(
                channel.name, "delivered" if success else "failed"
            )

        delivered = any(ok for _, ok in results)
        self._record_delivery(payload, results)

        if delivered:
            if self._history is not None:
                await self._history.mark_delivered(payload.unique_key)
            if self._events is not None:
                self._events.emit(
                    MonitorEventType.NOTIFICATION_SENT,
                    unique_key=payload.unique_key,
                    source_id=payload.source_id,
                    item_id=payload.item_id,
                    title=payload.title,
                    body=payload.body,
                    url=payload.url,
                )
        return "delivered" if delivered else "failed"

    async def _attach_content(self, payload: NotificationPayload) -> NotificationPayload:
        """Add the post body when it can be read; a failed read leaves it unset."""
        if self._content_fetcher is None or payload.content_html is not None:
            return payload

        try:
            content = await self._content_fetcher.fetch_post_content(payload.url)
        except Exception as e:
            logger.warning("Could not read post body for %s: %s", payload.unique_key, e)
            return payload

        if content is None:
            return payload
        if len(content) > self._config.post_content_max_chars:
            logger.info(
                "Post body for %s too long (%d chars), sending without it",
                payload.unique_key, len(content),
            )
            return payload
        return replace(payload, content_html=content)

    async def _send_with_retry(self, channel: Notifier, payload: NotificationPayload) -> bool:
        delays = self._config.retry_delays
        max_attempts = self._config.retry_max_attempts

        for attempt in range(max_attempts):
            try:
                if await channel.deliver(payload):
                    if attempt > 0:
                        logger.info(
                            "%s delivered to %s on attempt %d",
                            payload.unique_key, channel.name, attempt + 1,
                        )
                    return True
            except Exception as e:
                logger.warning(
                    "Channel %s deliver error (attempt %d): %s",
                    channel.name, attempt + 1, e,
                )

            if attempt < max_attempts - 1 and delays:
                delay = delays[attempt] if attempt < len(delays) else delays[-1]
                await asyncio.sleep(delay)

        logger.warning(
            "All %d attempts exhausted for %s on channel %s",
            max_attempts, payload.unique_key, channel.name,
        )
        return False

    def _record_delivery(self, payload: NotificationPayload, results: list[tuple[str, bool]]) -> None:
        successes = [name for name, ok in results if ok]
        failures = [name for name, ok in results if not ok]

        if failures and not successes:
            logger.error("%s failed ALL channels: %s", payload.unique_key, failures)
        elif failures:
            logger.warning(
                "%s partial delivery: ok=%s failed=%s",
                payload.unique_key, successes, failures,
            )
        else:
            logger.debug("%s delivered to all channels: %s", payload.unique_key, successes)
