"""InsightOrchestrator — concurrent producer fan-out, dedup and alert creation."""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Callable, Sequence

import structlog

from src.alerts.dedup import DedupFilter, dedup_key
from src.alerts.escalation import EscalationScheduler
from src.alerts.recorder import TransitionRecorder
from src.alerts.store import AlertRegistry
from src.core.config import AnalysisConfig
from src.core.types import (
    Alert,
    AnalysisCycleResult,
    Insight,
    LifecycleTransition,
    ProducerStats,
)
from src.insights.producer import InsightProducer
from src.notify.hub import (
    TOPIC_ANALYSIS_COMPLETED,
    TOPIC_INSIGHT_ACCEPTED,
    NotificationHub,
)

logger = structlog.stdlib.get_logger()


def _describe(exc: BaseException) -> str:
    return f"{type(exc).__name__}: {exc}" if str(exc) else type(exc).__name__


def insight_alert_key(alert_id: str) -> str:
    return f"insight:{alert_id}"


def alert_from_insight(insight: Insight, now: float) -> Alert:
    """Build the raised alert for an accepted insight."""
    alert_id = uuid.uuid4().hex
    return Alert(
        id=alert_id,
        key=insight_alert_key(alert_id),
        category=insight.category,
        severity=insight.severity,
        title=insight.title,
        description=insight.description,
        recommendation=insight.recommendation,
        producer_id=insight.producer_id,
        route_id=insight.route_id,
        confidence=insight.confidence_score,
        created_at=now,
        updated_at=now,
    )


class InsightOrchestrator:
    """Runs every registered producer in parallel and keeps what survives dedup.

    Usage::

        orchestrator = InsightOrchestrator(dedup, registry, recorder, hub, escalation)
        orchestrator.register(CompetitiveProducer())
        result = await orchestrator.run_analysis_cycle()
        if result is None:
            ...  # previous cycle still running
    """

    def __init__(
        self,
        dedup: DedupFilter,
        registry: AlertRegistry,
        recorder: TransitionRecorder,
        hub: NotificationHub,
        escalation: EscalationScheduler | None = None,
        config: AnalysisConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._dedup = dedup
        self._registry = registry
        self._recorder = recorder
        self._hub = hub
        self._escalation = escalation
        self._config = config or AnalysisConfig()
        self._clock = clock
        self._producers: list[InsightProducer] = []
        self._running = False
        self._last_result: AnalysisCycleResult | None = None
        self._last_run_time: float | None = None

    @property
    def producers(self) -> list[InsightProducer]:
        return list(self._producers)

    @property
    def running(self) -> bool:
        """Whether a cycle is currently in flight."""
        return self._running

    @property
    def last_result(self) -> AnalysisCycleResult | None:
        return self._last_result

    @property
    def last_run_time(self) -> float | None:
        return self._last_run_time

    def register(self, producer: InsightProducer) -> None:
        """Add a producer to every subsequent cycle.

        Raises ValueError if a producer with the same id is already registered.
        """
        if any(p.producer_id == producer.producer_id for p in self._producers):
            raise ValueError(f"producer {producer.producer_id!r} already registered")
        self._producers.append(producer)

    async def run_analysis_cycle(
        self, producers: Sequence[InsightProducer] | None = None,
    ) -> AnalysisCycleResult | None:
        """Fan out, dedup and persist. Returns None if a cycle is already running.

        Raises ValueError if an explicit *producers* batch repeats a producer id.
        """
        if producers is not None:
            ids = [p.producer_id for p in producers]
            if len(set(ids)) != len(ids):
                raise ValueError(f"duplicate producer ids in batch: {sorted(ids)}")
        if self._running:
            logger.info("analysis_cycle_skipped", reason="previous_cycle_running")
            return None

        self._running = True
        try:
            batch = list(producers) if producers is not None else self.producers
            return await self._run(batch)
        finally:
            self._running = False

    # ── Internal ────────────────────────────────────────────────

    async def _run(self, producers: list[InsightProducer]) -> AnalysisCycleResult:
        started_at = self._clock()
        start_mono = time.monotonic()
        logger.info("analysis_cycle_started", producers=len(producers))

        outcomes = await asyncio.gather(
            *(self._run_producer(p) for p in producers),
        )

        stats: dict[str, ProducerStats] = {}
        accepted: list[Insight] = []
        alerts: list[Alert] = []
        seen: set[str] = set()
        total = 0

        for insights, producer_stats in outcomes:
            stats[producer_stats.producer_id] = producer_stats
            total += len(insights)
            for insight in insights:
                alert = await self._accept(insight, seen)
                if alert is None:
                    producer_stats.insights_rejected += 1
                    continue
                producer_stats.insights_accepted += 1
                accepted.append(insight)
                alerts.append(alert)

        overall = (
            sum(i.confidence_score for i in accepted) / len(accepted)
            if accepted
            else 0.0
        )
        result = AnalysisCycleResult(
            insights=accepted,
            alerts=alerts,
            per_producer_stats=stats,
            total_insights=total,
            overall_confidence=overall,
            started_at=started_at,
            duration_secs=time.monotonic() - start_mono,
        )
        self._last_result = result
        self._last_run_time = started_at

        logger.info(
            "analysis_cycle_completed",
            producers=len(producers),
            failed_producers=sum(1 for s in stats.values() if not s.succeeded),
            total_insights=total,
            accepted=len(accepted),
            overall_confidence=round(overall, 4),
            duration_secs=round(result.duration_secs, 3),
        )
        await self._hub.publish(TOPIC_ANALYSIS_COMPLETED, result)
        return result

    async def _run_producer(
        self, producer: InsightProducer,
    ) -> tuple[list[Insight], ProducerStats]:
        """Call one producer with timeout and progressive-backoff retries. Never raises."""
        producer_id = producer.producer_id
        stats = ProducerStats(producer_id=producer_id)
        start = time.monotonic()
        attempts = self._config.producer_retries + 1

        for attempt in range(1, attempts + 1):
            try:
                insights = await asyncio.wait_for(
                    producer.analyze(),
                    timeout=self._config.producer_timeout_secs,
                )
            except Exception as exc:
                stats.failures += 1
                stats.error = _describe(exc)
                if attempt < attempts:
                    logger.warning(
                        "producer_failed_retrying",
                        producer_id=producer_id,
                        attempt=attempt,
                        max_attempts=attempts,
                        error=stats.error,
                    )
                    await asyncio.sleep(self._config.retry_backoff_secs * attempt)
                    continue
                logger.error(
                    "producer_failed",
                    producer_id=producer_id,
                    attempts=attempts,
                    error=stats.error,
                )
                stats.duration_secs = time.monotonic() - start
                return [], stats

            stats.error = None
            stats.insights_produced = len(insights)
            stats.duration_secs = time.monotonic() - start
            logger.debug(
                "producer_completed",
                producer_id=producer_id,
                insights=len(insights),
                attempt=attempt,
            )
            return list(insights), stats

        return [], stats  # pragma: no cover

    async def _accept(self, insight: Insight, seen: set[str]) -> Alert | None:
        key = dedup_key(insight.title, insight.producer_id)
        if key in seen:
            logger.info(
                "insight_rejected",
                producer_id=insight.producer_id,
                title=insight.title,
                reason="duplicate_in_cycle",
            )
            return None

        decision = await self._dedup.accept(insight)
        if not decision.accepted:
            logger.info(
                "insight_rejected",
                producer_id=insight.producer_id,
                title=insight.title,
                reason=decision.reason,
            )
            return None
        seen.add(key)

        alert = alert_from_insight(insight, self._clock())
        async with self._registry.lock:
            self._registry.put(alert)

        if self._escalation is not None:
            self._escalation.schedule(alert)

        logger.info(
            "insight_accepted",
            alert_id=alert.id,
            producer_id=insight.producer_id,
            title=insight.title,
            flagged=decision.flagged,
        )
        await self._hub.publish(TOPIC_INSIGHT_ACCEPTED, insight)
        await self._recorder.record(LifecycleTransition.RAISED, alert)
        return alert
