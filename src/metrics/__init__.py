"""Metric sources consumed by the monitoring cycle."""

from src.metrics.exceptions import (
    MetricParseError,
    MetricSourceError,
    MetricUnavailableError,
)
from src.metrics.source import HttpMetricSource, MetricSource, StaticMetricSource

__all__ = [
    "HttpMetricSource",
    "MetricParseError",
    "MetricSource",
    "MetricSourceError",
    "MetricUnavailableError",
    "StaticMetricSource",
]
