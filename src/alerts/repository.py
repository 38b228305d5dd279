"""Durable alert persistence — abstract interface and in-memory implementation."""

from __future__ import annotations

import abc

from src.alerts.exceptions import RepositoryError
from src.core.types import Alert


class AlertRepository(abc.ABC):
    """System of record for alerts.

    The engine's active registry is a projection of this store; the engine
    only creates and updates rows, cleanup and archival belong to whoever owns
    the storage.
    """

    @abc.abstractmethod
    async def create(self, alert: Alert) -> Alert:
        """Persist a new alert."""

    @abc.abstractmethod
    async def update(self, alert: Alert) -> Alert:
        """Persist changes to an existing alert."""

    @abc.abstractmethod
    async def delete(self, alert_id: str) -> bool:
        """Delete an alert. Returns True if it existed."""

    @abc.abstractmethod
    async def get(self, alert_id: str) -> Alert | None:
        """Look up an alert by id."""

    @abc.abstractmethod
    async def list_alerts(self, limit: int | None = None) -> list[Alert]:
        """Return alerts newest first."""

    @abc.abstractmethod
    async def find_recent(
        self,
        producer_id: str,
        since: float,
        title: str | None = None,
        limit: int | None = None,
    ) -> list[Alert]:
        """Alerts from *producer_id* created at or after *since*, newest first."""

    @abc.abstractmethod
    async def count_since(self, producer_id: str, since: float) -> int:
        """Number of alerts from *producer_id* created at or after *since*."""


class InMemoryAlertRepository(AlertRepository):
    """Dict-backed repository used by default and in tests."""

    def __init__(self) -> None:
        self._alerts: dict[str, Alert] = {}

    @property
    def count(self) -> int:
        return len(self._alerts)

    async def create(self, alert: Alert) -> Alert:
        if alert.id in self._alerts:
            raise RepositoryError(f"alert {alert.id} already exists")
        self._alerts[alert.id] = alert
        return alert

    async def update(self, alert: Alert) -> Alert:
        if alert.id not in self._alerts:
            raise RepositoryError(f"alert {alert.id} not found")
        self._alerts[alert.id] = alert
        return alert

    async def delete(self, alert_id: str) -> bool:
        return self._alerts.pop(alert_id, None) is not None

    async def get(self, alert_id: str) -> Alert | None:
        return self._alerts.get(alert_id)

    async def list_alerts(self, limit: int | None = None) -> list[Alert]:
        ordered = sorted(
            self._alerts.values(), key=lambda a: a.created_at, reverse=True,
        )
        return ordered[:limit] if limit is not None else ordered

    async def find_recent(
        self,
        producer_id: str,
        since: float,
        title: str | None = None,
        limit: int | None = None,
    ) -> list[Alert]:
        matches = [
            a
            for a in await self.list_alerts()
            if a.producer_id == producer_id
            and a.created_at >= since
            and (title is None or a.title == title)
        ]
        return matches[:limit] if limit is not None else matches

    async def count_since(self, producer_id: str, since: float) -> int:
        return sum(
            1
            for a in self._alerts.values()
            if a.producer_id == producer_id and a.created_at >= since
        )
