"""Insight producers — independent analysis sources fanned out each cycle."""

from __future__ import annotations

import abc
from collections.abc import Awaitable, Callable, Sequence

from src.core.types import Insight


class InsightProducer(abc.ABC):
    """One independent analysis source.

    ``analyze`` may raise or hang; the orchestrator isolates each producer
    with a timeout and retries.
    """

    @property
    @abc.abstractmethod
    def producer_id(self) -> str:
        """Stable identifier used for dedup and per-producer stats."""

    @abc.abstractmethod
    async def analyze(self) -> list[Insight]:
        """Run one analysis pass and return candidate insights."""


class StaticInsightProducer(InsightProducer):
    """Returns a fixed batch of insights, or whatever *fn* returns."""

    def __init__(
        self,
        producer_id: str,
        insights: Sequence[Insight] = (),
        fn: Callable[[], Awaitable[list[Insight]]] | None = None,
    ) -> None:
        self._producer_id = producer_id
        self._insights = list(insights)
        self._fn = fn
        self.calls = 0

    @property
    def producer_id(self) -> str:
        return self._producer_id

    async def analyze(self) -> list[Insight]:
        self.calls += 1
        if self._fn is not None:
            return await self._fn()
        return list(self._insights)
