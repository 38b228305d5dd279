"""Notification sinks — structured log and JSON webhook delivery."""

from __future__ import annotations

import abc
from typing import Any

import aiohttp
import structlog

from src.core.config import NotificationsConfig
from src.core.logging import EVENT_LOGGER
from src.notify.formatters import format_payload, log_fields

logger = structlog.get_logger(__name__)

# Dedicated structured logger for lifecycle event records.
event_logger = structlog.get_logger(EVENT_LOGGER)


class NotificationSink(abc.ABC):
    """Base class for lifecycle event delivery targets."""

    @abc.abstractmethod
    async def send(self, topic: str, payload: Any) -> bool:
        """Deliver one event. Returns True on success."""

    async def close(self) -> None:
        """Release resources (HTTP sessions, etc.)."""


class LogSink(NotificationSink):
    """Writes every event to the ``alert_events`` logger."""

    async def send(self, topic: str, payload: Any) -> bool:
        event_logger.info("lifecycle_event", **log_fields(topic, payload))
        return True


class WebhookSink(NotificationSink):
    """POSTs each event as JSON to a configured URL."""

    def __init__(self, config: NotificationsConfig) -> None:
        self._url = config.webhook_url.get_secret_value()
        self._timeout = aiohttp.ClientTimeout(total=config.webhook_timeout_secs)
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def send(self, topic: str, payload: Any) -> bool:
        body = {"topic": topic, "data": format_payload(topic, payload)}
        try:
            session = self._get_session()
            async with session.post(self._url, json=body) as resp:
                if 200 <= resp.status < 300:
                    return True
                text = await resp.text()
                logger.warning(
                    "webhook_send_failed",
                    topic=topic,
                    status=resp.status,
                    body=text[:200],
                )
                return False
        except Exception:
            logger.exception("webhook_send_error", topic=topic)
            return False

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None
