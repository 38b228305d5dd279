"""Convenience factory for wiring the engine from settings."""

from __future__ import annotations

from collections.abc import Iterable

from src.alerts.repository import AlertRepository
from src.core.config import Settings
from src.engine.engine import AlertEngine
from src.insights.producer import InsightProducer
from src.metrics.source import MetricSource
from src.notify.hub import NotificationHub
from src.notify.sinks import LogSink, WebhookSink


def create_hub(settings: Settings) -> NotificationHub:
    """Build a hub with the sinks enabled in config."""
    hub = NotificationHub()
    cfg = settings.notifications
    if cfg.log_events:
        hub.attach(LogSink())
    if cfg.webhook_enabled and cfg.webhook_url.get_secret_value():
        hub.attach(WebhookSink(cfg))
    return hub


def create_engine(
    settings: Settings,
    source: MetricSource,
    repository: AlertRepository | None = None,
    producers: Iterable[InsightProducer] = (),
) -> AlertEngine:
    """Build an AlertEngine with sinks and producers registered."""
    engine = AlertEngine(
        settings=settings,
        source=source,
        repository=repository,
        hub=create_hub(settings),
    )
    for producer in producers:
        engine.register_producer(producer)
    return engine
