"""Threshold evaluation — pure severity rules plus the raise/update/resolve step."""

from __future__ import annotations

import structlog

from src.alerts.state import transition
from src.alerts.store import AlertRegistry
from src.core.types import (
    Alert,
    AlertSeverity,
    AlertState,
    EvaluationOutcome,
    ThresholdDirection,
    ThresholdResult,
    ThresholdSpec,
)

logger = structlog.stdlib.get_logger()

METRICS_PRODUCER_ID = "metrics_monitoring"


def evaluate_severity(value: float, spec: ThresholdSpec) -> AlertSeverity | None:
    """Severity for *value* under *spec*, or None when healthy."""
    if spec.direction == ThresholdDirection.HIGHER_IS_BETTER:
        if value < spec.critical:
            return AlertSeverity.CRITICAL
        if value < spec.warning:
            return AlertSeverity.WARNING
        return None

    if value > spec.critical:
        return AlertSeverity.CRITICAL
    if value > spec.warning:
        return AlertSeverity.WARNING
    return None


def breached_threshold(severity: AlertSeverity, spec: ThresholdSpec) -> float:
    """The configured threshold that *severity* was computed against."""
    return spec.critical if severity == AlertSeverity.CRITICAL else spec.warning


def alert_key(metric_name: str) -> str:
    """Stable registry key for a metric's threshold alert."""
    return f"{metric_name}_threshold"


def format_message(spec: ThresholdSpec, value: float, threshold: float) -> str:
    base = spec.message or f"{spec.metric_name} is outside its healthy range"
    return f"{base}. Current: {value:.2f}, Threshold: {threshold:g}"


class ThresholdEvaluator:
    """Applies one metric reading to the alert registry.

    Must be called with ``registry.lock`` held; the caller persists, publishes
    and arms/cancels escalation from the returned result once the lock is
    released.
    """

    def __init__(self, registry: AlertRegistry, cooldown_secs: float) -> None:
        self._registry = registry
        self._cooldown_secs = cooldown_secs

    @property
    def cooldown_secs(self) -> float:
        return self._cooldown_secs

    def evaluate(
        self,
        metric_name: str,
        value: float,
        spec: ThresholdSpec,
        now: float,
    ) -> ThresholdResult:
        severity = evaluate_severity(value, spec)
        key = alert_key(metric_name)
        existing = self._registry.get(key)

        if severity is None:
            if existing is None:
                return ThresholdResult(
                    metric_name=metric_name,
                    value=value,
                    outcome=EvaluationOutcome.HEALTHY,
                )
            resolved = transition(existing, AlertState.RESOLVED, now)
            self._registry.remove(key)
            logger.info(
                "alert_resolved",
                metric=metric_name,
                value=value,
                alert_id=resolved.id,
            )
            return ThresholdResult(
                metric_name=metric_name,
                value=value,
                outcome=EvaluationOutcome.RESOLVED,
                alert=resolved,
            )

        if self._registry.in_cooldown(key, now, self._cooldown_secs):
            logger.debug(
                "alert_suppressed_cooldown",
                metric=metric_name,
                value=value,
                severity=severity.value,
            )
            return ThresholdResult(
                metric_name=metric_name,
                value=value,
                severity=severity,
                outcome=EvaluationOutcome.SUPPRESSED,
                alert=existing,
            )

        threshold = breached_threshold(severity, spec)
        message = format_message(spec, value, threshold)

        if existing is not None:
            alert = existing.model_copy(update={
                "severity": severity,
                "current_value": value,
                "threshold": threshold,
                "description": message,
                "updated_at": now,
            })
            outcome = EvaluationOutcome.UPDATED
        else:
            alert = Alert(
                id=f"{key}_{int(now * 1000)}",
                key=key,
                metric_name=metric_name,
                category=spec.category.value,
                severity=severity,
                title=f"{metric_name} Threshold Alert",
                description=message,
                current_value=value,
                threshold=threshold,
                producer_id=METRICS_PRODUCER_ID,
                confidence=1.0,
                created_at=now,
                updated_at=now,
            )
            outcome = EvaluationOutcome.RAISED

        self._registry.put(alert)
        self._registry.record_fire(key, now)
        logger.warning(
            "threshold_breached",
            metric=metric_name,
            value=value,
            severity=severity.value,
            threshold=threshold,
            outcome=outcome.value,
        )
        return ThresholdResult(
            metric_name=metric_name,
            value=value,
            severity=severity,
            outcome=outcome,
            alert=alert,
        )
