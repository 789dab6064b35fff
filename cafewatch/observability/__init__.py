"""Observability layer - logging and metrics."""

from cafewatch.observability.logging import setup_logging
from cafewatch.observability.metrics import MetricsCollector, get_metrics

__all__ = ["setup_logging", "MetricsCollector", "get_metrics"]
