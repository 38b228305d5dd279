"""AlertEngine — wires the lifecycle components and exposes the public entry points."""

from __future__ import annotations

import time
from collections.abc import Callable
from types import TracebackType

import structlog

from src.alerts.dedup import DedupFilter
from src.alerts.escalation import EscalationScheduler
from src.alerts.recorder import TransitionRecorder
from src.alerts.repository import AlertRepository, InMemoryAlertRepository
from src.alerts.state import transition
from src.alerts.store import AlertRegistry
from src.alerts.threshold import ThresholdEvaluator
from src.core.config import Settings
from src.core.scheduler import ScheduleHandle, TaskScheduler
from src.core.types import (
    Alert,
    AlertState,
    AnalysisCycleResult,
    LifecycleTransition,
    MonitoringStatus,
    ThresholdResult,
)
from src.engine.monitor import MetricsMonitor
from src.insights.orchestrator import InsightOrchestrator
from src.insights.producer import InsightProducer
from src.metrics.source import MetricSource
from src.notify.hub import NotificationHub

logger = structlog.stdlib.get_logger()


class AlertEngine:
    """Alert lifecycle engine.

    Usage::

        engine = AlertEngine(settings, metric_source)
        engine.register_producer(CompetitiveProducer())
        await engine.start()
        ...
        await engine.acknowledge(alert_id, "analyst-7")
        await engine.stop()
    """

    def __init__(
        self,
        settings: Settings,
        source: MetricSource,
        repository: AlertRepository | None = None,
        hub: NotificationHub | None = None,
        scheduler: TaskScheduler | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings
        self._clock = clock
        self._repository = repository or InMemoryAlertRepository()
        self._hub = hub or NotificationHub()
        self._scheduler = scheduler or TaskScheduler()
        self._registry = AlertRegistry()
        self._recorder = TransitionRecorder(self._repository, self._hub, clock)

        mon = settings.monitoring
        self._escalation = EscalationScheduler(
            registry=self._registry,
            scheduler=self._scheduler,
            delay_secs=mon.escalation_delay_minutes * 60,
            enabled=mon.escalation_enabled,
            clock=clock,
        )
        self._escalation.on_escalated(self._on_escalated)

        self._monitor = MetricsMonitor(
            source=source,
            thresholds=settings.thresholds,
            registry=self._registry,
            evaluator=ThresholdEvaluator(
                self._registry, cooldown_secs=mon.alert_cooldown_minutes * 60,
            ),
            recorder=self._recorder,
            hub=self._hub,
            escalation=self._escalation,
            window_hours=mon.metrics_window_hours,
            clock=clock,
        )
        self._dedup = DedupFilter(
            self._repository, settings.dedup, clock=clock, registry=self._registry,
        )
        self._orchestrator = InsightOrchestrator(
            dedup=self._dedup,
            registry=self._registry,
            recorder=self._recorder,
            hub=self._hub,
            escalation=self._escalation,
            config=settings.analysis,
            clock=clock,
        )

        self._monitor_handle: ScheduleHandle | None = None
        self._analysis_handle: ScheduleHandle | None = None

    # ── Properties ──────────────────────────────────────────────

    @property
    def hub(self) -> NotificationHub:
        return self._hub

    @property
    def registry(self) -> AlertRegistry:
        return self._registry

    @property
    def repository(self) -> AlertRepository:
        return self._repository

    @property
    def monitor(self) -> MetricsMonitor:
        return self._monitor

    @property
    def orchestrator(self) -> InsightOrchestrator:
        return self._orchestrator

    @property
    def escalation(self) -> EscalationScheduler:
        return self._escalation

    @property
    def dedup(self) -> DedupFilter:
        return self._dedup

    @property
    def running(self) -> bool:
        return self._monitor_handle is not None

    # ── Lifecycle ───────────────────────────────────────────────

    async def start(self) -> None:
        """Start the periodic monitoring and analysis cycles (first run immediate)."""
        if self.running:
            return
        mon = self._settings.monitoring
        self._monitor_handle = self._scheduler.schedule_every(
            mon.check_interval_minutes * 60,
            self._monitor.run_check,
            name="monitoring_cycle",
        )
        analysis = self._settings.analysis
        if analysis.enabled and self._orchestrator.producers:
            self._analysis_handle = self._scheduler.schedule_every(
                analysis.interval_minutes * 60,
                self._orchestrator.run_analysis_cycle,
                name="analysis_cycle",
            )
        logger.info(
            "engine_started",
            check_interval_minutes=mon.check_interval_minutes,
            metrics=len(self._settings.thresholds),
            producers=len(self._orchestrator.producers),
            analysis_active=self._analysis_handle is not None,
            escalation_enabled=mon.escalation_enabled,
        )

    async def stop(self) -> None:
        """Cancel periodic cycles and every pending escalation; close sinks."""
        self._scheduler.cancel(self._monitor_handle)
        self._scheduler.cancel(self._analysis_handle)
        self._monitor_handle = None
        self._analysis_handle = None
        cancelled = self._escalation.cancel_all()
        await self._scheduler.shutdown()
        await self._hub.close()
        logger.info("engine_stopped", cancelled_escalations=cancelled)

    async def __aenter__(self) -> AlertEngine:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.stop()

    # ── Entry points ────────────────────────────────────────────

    def register_producer(self, producer: InsightProducer) -> None:
        self._orchestrator.register(producer)

    async def run_monitoring_cycle(self) -> list[ThresholdResult] | None:
        return await self._monitor.run_check()

    async def run_analysis_cycle(
        self, producers: list[InsightProducer] | None = None,
    ) -> AnalysisCycleResult | None:
        return await self._orchestrator.run_analysis_cycle(producers)

    async def acknowledge(self, alert_id: str, actor_id: str) -> Alert | None:
        """Acknowledge an active alert.

        Idempotent: returns None without side effects when the alert is
        missing, resolved or already acknowledged.
        """
        async with self._registry.lock:
            current = self._registry.find_by_id(alert_id)
            if (
                current is None
                or not current.active
                or current.state == AlertState.ACKNOWLEDGED
            ):
                return None
            updated = transition(
                current, AlertState.ACKNOWLEDGED, self._clock(), actor_id,
            )
            self._registry.put(updated)

        self._escalation.cancel(alert_id)
        logger.info("alert_acknowledged", alert_id=alert_id, actor_id=actor_id)
        await self._recorder.record(
            LifecycleTransition.ACKNOWLEDGED, updated, actor_id,
        )
        return updated

    async def dismiss(self, alert_id: str, actor_id: str | None = None) -> Alert | None:
        """Resolve an active alert by explicit dismissal. No-op when missing."""
        async with self._registry.lock:
            current = self._registry.find_by_id(alert_id)
            if current is None or not current.active:
                return None
            resolved = transition(
                current, AlertState.RESOLVED, self._clock(), actor_id,
            )
            self._registry.remove(current.key)

        self._escalation.cancel(alert_id)
        logger.info("alert_dismissed", alert_id=alert_id, actor_id=actor_id)
        await self._recorder.record(
            LifecycleTransition.RESOLVED, resolved, actor_id,
        )
        return resolved

    def get_active_alerts(self) -> list[Alert]:
        return self._registry.active_alerts()

    def get_status(self) -> MonitoringStatus:
        return MonitoringStatus(
            monitoring_active=self._monitor_handle is not None,
            analysis_active=self._analysis_handle is not None,
            check_interval_minutes=self._settings.monitoring.check_interval_minutes,
            active_alert_count=self._registry.count,
            alerts_by_category=self._registry.alerts_by_category(),
            last_check_time=self._monitor.last_check_time,
            last_analysis_time=self._orchestrator.last_run_time,
        )

    # ── Internal ────────────────────────────────────────────────

    async def _on_escalated(self, alert: Alert) -> None:
        await self._recorder.record(LifecycleTransition.ESCALATED, alert)
