"""Tests for NotificationHub — topics, wildcard, isolation, sinks."""

from __future__ import annotations

import asyncio
from typing import Any

from src.notify.hub import (
    ALL_TOPICS,
    TOPIC_ALERT_RAISED,
    TOPIC_ALERT_RESOLVED,
    NotificationHub,
)
from src.notify.sinks import NotificationSink


class FakeSink(NotificationSink):
    """In-memory sink for testing."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[tuple[str, Any]] = []
        self._fail = fail
        self.closed = False

    async def send(self, topic: str, payload: Any) -> bool:
        if self._fail:
            raise ConnectionError("fake error")
        self.sent.append((topic, payload))
        return True

    async def close(self) -> None:
        self.closed = True


class TestSubscribe:
    async def test_topic_delivery(self) -> None:
        hub = NotificationHub()
        got: list[Any] = []
        hub.subscribe(TOPIC_ALERT_RAISED, lambda t, p: got.append(p))
        await hub.publish(TOPIC_ALERT_RAISED, {"id": "a1"})
        await hub.publish(TOPIC_ALERT_RESOLVED, {"id": "a1"})
        assert got == [{"id": "a1"}]

    async def test_wildcard_receives_everything(self) -> None:
        hub = NotificationHub()
        got: list[str] = []
        hub.subscribe(ALL_TOPICS, lambda t, p: got.append(t))
        await hub.publish(TOPIC_ALERT_RAISED, None)
        await hub.publish("custom_topic", None)
        assert got == [TOPIC_ALERT_RAISED, "custom_topic"]

    async def test_async_subscriber(self) -> None:
        hub = NotificationHub()
        got: list[Any] = []

        async def cb(topic: str, payload: Any) -> None:
            got.append(payload)

        hub.subscribe(TOPIC_ALERT_RAISED, cb)
        await hub.publish(TOPIC_ALERT_RAISED, 42)
        await hub.drain()
        assert got == [42]

    async def test_unsubscribe(self) -> None:
        hub = NotificationHub()
        got: list[Any] = []
        unsubscribe = hub.subscribe(TOPIC_ALERT_RAISED, lambda t, p: got.append(p))
        unsubscribe()
        unsubscribe()
        await hub.publish(TOPIC_ALERT_RAISED, 1)
        assert got == []

    async def test_publish_without_subscribers(self) -> None:
        hub = NotificationHub()
        await hub.publish(TOPIC_ALERT_RAISED, 1)

    def test_subscriber_count_includes_wildcard(self) -> None:
        hub = NotificationHub()
        hub.subscribe(TOPIC_ALERT_RAISED, lambda t, p: None)
        hub.subscribe(ALL_TOPICS, lambda t, p: None)
        assert hub.subscriber_count(TOPIC_ALERT_RAISED) == 2
        assert hub.subscriber_count(TOPIC_ALERT_RESOLVED) == 1


class TestIsolation:
    async def test_failing_subscriber_does_not_block_others(self) -> None:
        hub = NotificationHub()
        got: list[Any] = []

        def broken(topic: str, payload: Any) -> None:
            raise ValueError("bad subscriber")

        hub.subscribe(TOPIC_ALERT_RAISED, broken)
        hub.subscribe(TOPIC_ALERT_RAISED, lambda t, p: got.append(p))
        await hub.publish(TOPIC_ALERT_RAISED, "payload")
        assert got == ["payload"]

    async def test_failing_sink_does_not_raise(self) -> None:
        hub = NotificationHub()
        good = FakeSink()
        hub.attach(FakeSink(fail=True))
        hub.attach(good)
        await hub.publish(TOPIC_ALERT_RAISED, "payload")
        await hub.drain()
        assert good.sent == [(TOPIC_ALERT_RAISED, "payload")]


class TestSinks:
    async def test_attach_to_selected_topics(self) -> None:
        hub = NotificationHub()
        sink = FakeSink()
        hub.attach(sink, topics=[TOPIC_ALERT_RESOLVED])
        await hub.publish(TOPIC_ALERT_RAISED, 1)
        await hub.publish(TOPIC_ALERT_RESOLVED, 2)
        await hub.drain()
        assert sink.sent == [(TOPIC_ALERT_RESOLVED, 2)]

    async def test_close_closes_sinks_and_clears(self) -> None:
        hub = NotificationHub()
        sink = FakeSink()
        hub.attach(sink)
        await hub.close()
        assert sink.closed is True
        await hub.publish(TOPIC_ALERT_RAISED, 1)
        assert sink.sent == []


class TestBackgroundDelivery:
    async def test_publish_does_not_wait_for_slow_subscriber(self) -> None:
        hub = NotificationHub()
        never = asyncio.Event()
        got: list[Any] = []

        async def stuck(topic: str, payload: Any) -> None:
            await never.wait()

        hub.subscribe(TOPIC_ALERT_RAISED, stuck)
        hub.subscribe(TOPIC_ALERT_RAISED, lambda t, p: got.append(p))

        await asyncio.wait_for(hub.publish(TOPIC_ALERT_RAISED, 1), timeout=1.0)

        assert got == [1]
        assert hub.pending_deliveries == 1
        await hub.close()

    async def test_close_cancels_pending_deliveries(self) -> None:
        hub = NotificationHub()
        never = asyncio.Event()
        cancelled: list[bool] = []

        async def stuck(topic: str, payload: Any) -> None:
            try:
                await never.wait()
            except asyncio.CancelledError:
                cancelled.append(True)
                raise

        hub.subscribe(TOPIC_ALERT_RAISED, stuck)
        await hub.publish(TOPIC_ALERT_RAISED, 1)
        await asyncio.sleep(0)

        await asyncio.wait_for(hub.close(), timeout=1.0)

        assert cancelled == [True]
        assert hub.pending_deliveries == 0

    async def test_async_subscriber_error_is_logged_not_raised(self) -> None:
        hub = NotificationHub()

        async def broken(topic: str, payload: Any) -> None:
            raise RuntimeError("subscriber blew up")

        hub.subscribe(TOPIC_ALERT_RAISED, broken)
        await hub.publish(TOPIC_ALERT_RAISED, 1)
        await hub.drain()
        assert hub.pending_deliveries == 0
