"""MetricsMonitor — one monitoring cycle: fetch, evaluate, record."""

from __future__ import annotations

import asyncio
import datetime
import math
import time
from collections.abc import Callable, Mapping

import structlog

from src.alerts.escalation import EscalationScheduler
from src.alerts.recorder import TransitionRecorder
from src.alerts.store import AlertRegistry
from src.alerts.threshold import ThresholdEvaluator
from src.core.types import (
    AlertSeverity,
    DateRange,
    EvaluationOutcome,
    LifecycleTransition,
    ThresholdResult,
    ThresholdSpec,
)
from src.metrics.source import MetricSource
from src.notify.formatters import format_alert
from src.notify.hub import TOPIC_METRICS_UPDATE, NotificationHub

logger = structlog.stdlib.get_logger()

_OUTCOME_TRANSITIONS: dict[EvaluationOutcome, LifecycleTransition] = {
    EvaluationOutcome.RAISED: LifecycleTransition.RAISED,
    EvaluationOutcome.UPDATED: LifecycleTransition.UPDATED,
    EvaluationOutcome.RESOLVED: LifecycleTransition.RESOLVED,
}


def date_range_for(now: float, window_hours: float) -> DateRange:
    """ISO date window ending at *now*."""
    end = datetime.datetime.fromtimestamp(now, datetime.UTC)
    start = end - datetime.timedelta(hours=window_hours)
    return DateRange(
        start_date=start.date().isoformat(),
        end_date=end.date().isoformat(),
    )


class MetricsMonitor:
    """Evaluates every configured metric against its thresholds.

    Values are fetched concurrently and outside the registry lock; the
    evaluation of all metrics happens in one critical section; persistence,
    escalation arming and notifications run after the lock is released.
    """

    def __init__(
        self,
        source: MetricSource,
        thresholds: Mapping[str, ThresholdSpec],
        registry: AlertRegistry,
        evaluator: ThresholdEvaluator,
        recorder: TransitionRecorder,
        hub: NotificationHub,
        escalation: EscalationScheduler | None = None,
        window_hours: float = 24.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._source = source
        self._thresholds = dict(thresholds)
        self._registry = registry
        self._evaluator = evaluator
        self._recorder = recorder
        self._hub = hub
        self._escalation = escalation
        self._window_hours = window_hours
        self._clock = clock
        self._running = False
        self._last_values: dict[str, float] = {}
        self._last_check_time: float | None = None
        self._fetch_failures = 0

    @property
    def running(self) -> bool:
        """Whether a check is currently in flight."""
        return self._running

    @property
    def thresholds(self) -> dict[str, ThresholdSpec]:
        return dict(self._thresholds)

    @property
    def last_values(self) -> dict[str, float]:
        return dict(self._last_values)

    @property
    def last_check_time(self) -> float | None:
        return self._last_check_time

    @property
    def fetch_failures(self) -> int:
        return self._fetch_failures

    async def run_check(self) -> list[ThresholdResult] | None:
        """Run one cycle. Returns None if the previous cycle is still running."""
        if self._running:
            logger.info("monitoring_cycle_skipped", reason="previous_cycle_running")
            return None

        self._running = True
        try:
            return await self._check()
        finally:
            self._running = False

    async def evaluate_metric(
        self, metric_name: str, value: float,
    ) -> ThresholdResult:
        """Evaluate a single reading outside the periodic cycle."""
        spec = self._thresholds[metric_name]
        async with self._registry.lock:
            result = self._evaluator.evaluate(metric_name, value, spec, self._clock())
        self._last_values[metric_name] = value
        await self._apply(result)
        return result

    # ── Internal ────────────────────────────────────────────────

    async def _check(self) -> list[ThresholdResult]:
        now = self._clock()
        window = date_range_for(now, self._window_hours)
        names = list(self._thresholds)

        values = await asyncio.gather(
            *(self._fetch(name, self._thresholds[name], window) for name in names),
        )

        async with self._registry.lock:
            now = self._clock()
            results = [
                self._evaluator.evaluate(name, value, self._thresholds[name], now)
                for name, value in zip(names, values, strict=True)
            ]

        for result in results:
            await self._apply(result)

        self._last_check_time = now
        await self._hub.publish(TOPIC_METRICS_UPDATE, {
            "timestamp": now,
            "values": dict(zip(names, values, strict=True)),
            "alerts": [format_alert(a) for a in self._registry.active_alerts()],
        })
        logger.info(
            "monitoring_cycle_completed",
            metrics=len(names),
            active_alerts=self._registry.count,
            raised=sum(1 for r in results if r.outcome == EvaluationOutcome.RAISED),
            resolved=sum(1 for r in results if r.outcome == EvaluationOutcome.RESOLVED),
        )
        return results

    async def _fetch(
        self, name: str, spec: ThresholdSpec, window: DateRange,
    ) -> float:
        """Current value, or the last-known / documented default. Never raises."""
        try:
            value = float(await self._source.get_value(name, window))
            if not math.isfinite(value):
                raise ValueError(f"non-finite value {value!r}")
        except Exception as exc:
            self._fetch_failures += 1
            fallback = self._fallback(name, spec)
            logger.warning(
                "metric_fetch_failed",
                metric=name,
                error=str(exc) or type(exc).__name__,
                fallback=fallback,
            )
            return fallback
        self._last_values[name] = value
        return value

    def _fallback(self, name: str, spec: ThresholdSpec) -> float:
        if name in self._last_values:
            return self._last_values[name]
        if spec.default_value is not None:
            return spec.default_value
        return spec.target

    async def _apply(self, result: ThresholdResult) -> None:
        transition = _OUTCOME_TRANSITIONS.get(result.outcome)
        if transition is None or result.alert is None:
            return
        alert = result.alert

        if self._escalation is not None:
            if transition == LifecycleTransition.RESOLVED:
                self._escalation.cancel(alert.id)
            elif alert.severity == AlertSeverity.CRITICAL:
                self._escalation.schedule(alert)
            else:
                self._escalation.cancel(alert.id)

        await self._recorder.record(transition, alert)
