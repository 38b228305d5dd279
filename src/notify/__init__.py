"""Lifecycle event notification — pub/sub hub, sinks and formatters."""

from src.notify.formatters import (
    format_alert,
    format_cycle_result,
    format_lifecycle_event,
    format_payload,
)
from src.notify.hub import ALL_TOPICS, EventCallback, NotificationHub
from src.notify.sinks import LogSink, NotificationSink, WebhookSink

__all__ = [
    "ALL_TOPICS",
    "EventCallback",
    "LogSink",
    "NotificationHub",
    "NotificationSink",
    "WebhookSink",
    "format_alert",
    "format_cycle_result",
    "format_lifecycle_event",
    "format_payload",
]
