"""Notification delivery for newly discovered posts.

Components:
- NotificationPayload: One "new post" notification
- Notifier / WebhookNotifier / LogNotifier: Delivery channels
- CircuitBreaker: Resilience wrapper for channels
- NotificationHistory: Delivered-key ledger (notification_history table)
- NotificationConfig / NotificationDispatcher: Dispatch orchestration
"""

from cafewatch.notify.channels import (
    CircuitBreaker,
    CircuitState,
    LogNotifier,
    Notifier,
    WebhookNotifier,
)
from cafewatch.notify.config import NotificationConfig
from cafewatch.notify.dispatcher import (
    DispatchSummary,
    NotificationDispatcher,
    build_channels,
)
from cafewatch.notify.history import NOTIFICATION_HISTORY_DDL, NotificationHistory
from cafewatch.notify.schemas import NotificationPayload

__all__ = [
    "CircuitBreaker",
    "CircuitState",
    "DispatchSummary",
    "LogNotifier",
    "NOTIFICATION_HISTORY_DDL",
    "NotificationConfig",
    "NotificationDispatcher",
    "NotificationHistory",
    "NotificationPayload",
    "Notifier",
    "WebhookNotifier",
    "build_channels",
]
