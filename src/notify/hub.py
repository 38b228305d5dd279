"""NotificationHub — best-effort topic fan-out of lifecycle events."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

import structlog

from src.notify.sinks import NotificationSink

logger = structlog.get_logger(__name__)

# Subscribers receive the topic and the published payload.
EventCallback = Callable[[str, Any], Awaitable[None] | None]

ALL_TOPICS = "*"

TOPIC_ALERT_RAISED = "alert_raised"
TOPIC_ALERT_UPDATED = "alert_updated"
TOPIC_ALERT_ACKNOWLEDGED = "alert_acknowledged"
TOPIC_ALERT_ESCALATED = "alert_escalated"
TOPIC_ALERT_RESOLVED = "alert_resolved"
TOPIC_INSIGHT_ACCEPTED = "insight_accepted"
TOPIC_ANALYSIS_COMPLETED = "analysis_cycle_completed"
TOPIC_METRICS_UPDATE = "metrics_update"


class NotificationHub:
    """Publish/subscribe hub.

    - Subscribers register per topic, or for every topic with ``"*"``.
    - ``publish`` never raises, never waits on a subscriber and returns
      nothing: sync callbacks run inline, coroutine callbacks run as tracked
      background tasks. Failures are logged and skipped; publishing with no
      subscribers is a no-op.
    - Delivery order across topics is not guaranteed.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[EventCallback]] = {}
        self._sinks: list[NotificationSink] = []
        self._deliveries: set[asyncio.Task[None]] = set()

    @property
    def pending_deliveries(self) -> int:
        """Coroutine deliveries still in flight."""
        return sum(1 for t in self._deliveries if not t.done())

    def subscribe(self, topic: str, callback: EventCallback) -> Callable[[], None]:
        """Register *callback* for *topic*. Returns an unsubscribe function."""
        self._subscribers.setdefault(topic, []).append(callback)

        def _unsubscribe() -> None:
            callbacks = self._subscribers.get(topic, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return _unsubscribe

    def attach(
        self, sink: NotificationSink, topics: Iterable[str] | None = None,
    ) -> None:
        """Subscribe a sink to *topics* (all topics when None)."""
        self._sinks.append(sink)
        for topic in topics or (ALL_TOPICS,):
            self.subscribe(topic, sink.send)

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, [])) + len(
            self._subscribers.get(ALL_TOPICS, []),
        )

    async def publish(self, topic: str, payload: Any) -> None:
        callbacks = [
            *self._subscribers.get(topic, []),
            *self._subscribers.get(ALL_TOPICS, []),
        ]
        for cb in callbacks:
            try:
                result = cb(topic, payload)
            except Exception:
                logger.exception("subscriber_error", topic=topic)
                continue
            if asyncio.iscoroutine(result):
                task = asyncio.create_task(self._deliver(topic, result))
                self._deliveries.add(task)
                task.add_done_callback(self._deliveries.discard)

    async def drain(self) -> None:
        """Wait for every in-flight delivery to finish."""
        while self._deliveries:
            await asyncio.gather(*list(self._deliveries), return_exceptions=True)

    async def close(self) -> None:
        """Cancel in-flight deliveries, close sinks and drop subscribers."""
        pending = [t for t in self._deliveries if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._deliveries.clear()
        for sink in self._sinks:
            try:
                await sink.close()
            except Exception:
                logger.exception("sink_close_error", sink=type(sink).__name__)
        self._sinks.clear()
        self._subscribers.clear()

    async def _deliver(self, topic: str, delivery: Awaitable[Any]) -> None:
        try:
            await delivery
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("subscriber_error", topic=topic)
