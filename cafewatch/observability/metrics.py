"""
Prometheus metrics for monitoring the scan engine.

Defines and exposes metrics for:
- Scan cycles and per-source scan latency
- Newly discovered items
- Fetch errors by kind
- Authentication status
- Notification delivery

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from cafewatch.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for scan latency histograms (in seconds); a scan covers up to
# three page loads plus inter-page delays
SCAN_LATENCY_BUCKETS = (0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 60.0, 120.0)
DELAY_BUCKETS = (0.5, 1.0, 2.0, 3.0, 4.0, 5.0, 7.5, 10.0, 15.0)


class MetricsCollector:
    """
    Prometheus metrics collector for the cafe-watch engine.

    Usage:
        metrics = MetricsCollector()
        metrics.start_server()

        metrics.record_source_scan("cafe", "incremental", 2, 3.4)
        metrics.record_source_error("cafe", "timeout")
    """

    def __init__(self):
        """Initialize Prometheus metrics."""

        # Cycle counters
        self.cycles_total = Counter(
            "cafe_watch_cycles_total",
            "Total scan cycles run",
            ["result"],  # result: completed, unauthenticated, disallowed, cancelled
        )

        self.cycle_latency = Histogram(
            "cafe_watch_cycle_latency_seconds",
            "Wall time of a full scan cycle including delays",
            buckets=(5.0, 15.0, 30.0, 60.0, 120.0, 300.0, 600.0),
        )

        # Per-source scans
        self.source_scans = Counter(
            "cafe_watch_source_scans_total",
            "Total per-source scans",
            ["platform", "mode"],  # mode: baseline, incremental
        )

        self.scan_latency = Histogram(
            "cafe_watch_source_scan_latency_seconds",
            "Time to scan one source",
            ["platform"],
            buckets=SCAN_LATENCY_BUCKETS,
        )

        self.items_discovered = Counter(
            "cafe_watch_items_discovered_total",
            "Total new items discovered",
            ["platform"],
        )

        self.baselines_set = Counter(
            "cafe_watch_baselines_set_total",
            "Total baselines established",
            ["platform"],
        )

        # Errors
        self.source_errors = Counter(
            "cafe_watch_source_errors_total",
            "Total per-source scan errors",
            ["platform", "error_kind"],
        )

        self.malformed_ids = Counter(
            "cafe_watch_malformed_ids_total",
            "Item ids compared with the string fallback",
        )

        # Pacing
        self.inter_source_delay = Histogram(
            "cafe_watch_inter_source_delay_seconds",
            "Adaptive delay applied between sources",
            buckets=DELAY_BUCKETS,
        )

        # Authentication
        self.authenticated = Gauge(
            "cafe_watch_authenticated",
            "Session authentication status (1=logged in, 0=not)",
        )

        self.auth_probes = Counter(
            "cafe_watch_auth_probes_total",
            "Total authentication probes",
            ["result"],  # result: authenticated, unauthenticated, error
        )

        # Notifications
        self.notifications = Counter(
            "cafe_watch_notifications_total",
            "Notification delivery outcomes",
            ["channel", "status"],  # status: delivered, failed, duplicate, muted
        )

        logger.info("Prometheus metrics initialized")

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to expose metrics on (default from settings)
        """
        settings = get_settings()
        port = port or settings.metrics_port

        start_http_server(port, registry=REGISTRY)
        logger.info(f"Prometheus metrics server started on port {port}")

    # Convenience methods

    def record_cycle(self, result: str, latency: float | None = None) -> None:
        """
        Record a finished scan cycle.

        Args:
            result: completed, unauthenticated, disallowed or cancelled
            latency: Optional cycle wall time in seconds
        """
        self.cycles_total.labels(result=result).inc()
        if latency is not None:
            self.cycle_latency.observe(latency)

    def record_source_scan(
        self,
        platform: str,
        mode: str,
        new_items: int,
        latency: float,
    ) -> None:
        """
        Record one per-source scan.

        Args:
            platform: Platform key (e.g. "cafe")
            mode: baseline or incremental
            new_items: Number of new items returned
            latency: Scan latency in seconds
        """
        self.source_scans.labels(platform=platform, mode=mode).inc()
        self.scan_latency.labels(platform=platform).observe(latency)
        if new_items:
            self.items_discovered.labels(platform=platform).inc(new_items)

    def record_baseline(self, platform: str) -> None:
        self.baselines_set.labels(platform=platform).inc()

    def record_source_error(self, platform: str, error_kind: str) -> None:
        """
        Record a per-source scan error.

        Args:
            platform: Platform key
            error_kind: timeout, navigation_failed, unexpected, ...
        """
        self.source_errors.labels(platform=platform, error_kind=error_kind).inc()

    def record_malformed_id(self) -> None:
        self.malformed_ids.inc()

    def record_delay(self, seconds: float) -> None:
        self.inter_source_delay.observe(seconds)

    def set_authenticated(self, authenticated: bool) -> None:
        """Set the authentication gauge."""
        self.authenticated.set(1 if authenticated else 0)

    def record_auth_probe(self, result: str) -> None:
        self.auth_probes.labels(result=result).inc()

    def record_notification(self, channel: str, status: str) -> None:
        """
        Record a notification outcome.

        Args:
            channel: Channel name (webhook, log)
            status: delivered, failed, duplicate or muted
        """
        self.notifications.labels(channel=channel, status=status).inc()


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
