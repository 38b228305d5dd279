"""Alert lifecycle exceptions."""

from __future__ import annotations


class AlertError(Exception):
    """Base exception for alert lifecycle errors."""


class InvalidTransitionError(AlertError):
    """An alert was asked to move to a state it cannot reach."""


class RepositoryError(AlertError):
    """Durable alert storage failed or is unavailable."""
