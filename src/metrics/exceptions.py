"""Exception hierarchy for metric sources."""

from __future__ import annotations


class MetricSourceError(Exception):
    """Base exception for all metric source errors."""


class MetricUnavailableError(MetricSourceError):
    """The source has no value for the requested metric."""


class MetricParseError(MetricSourceError):
    """The source returned something that is not a number."""
