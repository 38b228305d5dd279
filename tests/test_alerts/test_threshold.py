"""Tests for threshold severity rules and the evaluator's registry effects."""

from __future__ import annotations

import pytest

from src.alerts.store import AlertRegistry
from src.alerts.threshold import (
    METRICS_PRODUCER_ID,
    ThresholdEvaluator,
    alert_key,
    breached_threshold,
    evaluate_severity,
    format_message,
)
from src.core.config import DEFAULT_THRESHOLDS
from src.core.types import (
    AlertSeverity,
    AlertState,
    EvaluationOutcome,
    MetricCategory,
    ThresholdDirection,
    ThresholdResult,
    ThresholdSpec,
)

T0 = 1_700_000_000.0
COOLDOWN = 60 * 60.0

AVAILABILITY = ThresholdSpec(
    metric_name="system_availability",
    target=99.9,
    warning=99.5,
    critical=99.0,
    direction=ThresholdDirection.HIGHER_IS_BETTER,
    message="System availability has dropped below acceptable levels",
)

PROCESSING = ThresholdSpec(
    metric_name="nightshift_processing_time",
    target=45,
    warning=60,
    critical=90,
    direction=ThresholdDirection.LOWER_IS_BETTER,
)


async def _evaluate(
    evaluator: ThresholdEvaluator,
    registry: AlertRegistry,
    value: float,
    now: float,
    spec: ThresholdSpec = AVAILABILITY,
) -> ThresholdResult:
    async with registry.lock:
        return evaluator.evaluate(spec.metric_name, value, spec, now)


# ── Severity ────────────────────────────────────────────────────


class TestEvaluateSeverity:
    def test_availability_scenario(self) -> None:
        assert evaluate_severity(98.7, AVAILABILITY) == AlertSeverity.CRITICAL

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (99.95, None),
            (99.5, None),
            (99.4, AlertSeverity.WARNING),
            (99.0, AlertSeverity.WARNING),
            (98.99, AlertSeverity.CRITICAL),
        ],
    )
    def test_higher_is_better(
        self, value: float, expected: AlertSeverity | None,
    ) -> None:
        assert evaluate_severity(value, AVAILABILITY) == expected

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (30, None),
            (60, None),
            (61, AlertSeverity.WARNING),
            (90, AlertSeverity.WARNING),
            (91, AlertSeverity.CRITICAL),
        ],
    )
    def test_lower_is_better(
        self, value: float, expected: AlertSeverity | None,
    ) -> None:
        assert evaluate_severity(value, PROCESSING) == expected

    def test_deterministic_regardless_of_order(self) -> None:
        values = [98.0, 99.95, 99.2, 98.0, 99.2, 99.95]
        first = [evaluate_severity(v, AVAILABILITY) for v in values]
        second = [evaluate_severity(v, AVAILABILITY) for v in reversed(values)]
        assert first == list(reversed(second))

    def test_breached_threshold(self) -> None:
        assert breached_threshold(AlertSeverity.CRITICAL, AVAILABILITY) == 99.0
        assert breached_threshold(AlertSeverity.WARNING, AVAILABILITY) == 99.5

    def test_format_message(self) -> None:
        msg = format_message(AVAILABILITY, 98.7, 99.0)
        assert msg == (
            "System availability has dropped below acceptable levels."
            " Current: 98.70, Threshold: 99"
        )

    def test_default_table_insight_accuracy(self) -> None:
        spec = DEFAULT_THRESHOLDS["insight_accuracy_rate"]
        assert evaluate_severity(74, spec) == AlertSeverity.CRITICAL
        assert evaluate_severity(88, spec) is None


# ── Evaluator ───────────────────────────────────────────────────


class TestEvaluator:
    async def test_healthy_without_alert(self) -> None:
        reg = AlertRegistry()
        ev = ThresholdEvaluator(reg, COOLDOWN)
        result = await _evaluate(ev, reg, 99.95, T0)
        assert result.outcome == EvaluationOutcome.HEALTHY
        assert result.alert is None
        assert reg.count == 0

    async def test_breach_raises_alert(self) -> None:
        reg = AlertRegistry()
        ev = ThresholdEvaluator(reg, COOLDOWN)
        result = await _evaluate(ev, reg, 98.7, T0)

        assert result.outcome == EvaluationOutcome.RAISED
        alert = result.alert
        assert alert is not None
        assert alert.key == alert_key("system_availability")
        assert alert.severity == AlertSeverity.CRITICAL
        assert alert.state == AlertState.RAISED
        assert alert.current_value == 98.7
        assert alert.threshold == 99.0
        assert alert.producer_id == METRICS_PRODUCER_ID
        assert alert.category == MetricCategory.SYSTEM_PERFORMANCE.value
        assert alert.created_at == T0
        assert reg.get(alert.key) == alert
        assert reg.cooldown(alert.key).last_fired_at == T0  # type: ignore[union-attr]

    async def test_cooldown_suppresses_before_window(self) -> None:
        reg = AlertRegistry()
        ev = ThresholdEvaluator(reg, COOLDOWN)
        first = await _evaluate(ev, reg, 98.7, T0)

        result = await _evaluate(ev, reg, 98.5, T0 + COOLDOWN - 1)

        assert result.outcome == EvaluationOutcome.SUPPRESSED
        assert reg.count == 1
        assert reg.get(first.alert.key) == first.alert  # type: ignore[union-attr]
        assert reg.cooldown(first.alert.key).last_fired_at == T0  # type: ignore[union-attr]

    async def test_fires_again_after_window(self) -> None:
        reg = AlertRegistry()
        ev = ThresholdEvaluator(reg, COOLDOWN)
        first = await _evaluate(ev, reg, 98.7, T0)

        later = T0 + COOLDOWN + 1
        result = await _evaluate(ev, reg, 98.5, later)

        assert result.outcome == EvaluationOutcome.UPDATED
        alert = result.alert
        assert alert is not None
        assert alert.id == first.alert.id  # type: ignore[union-attr]
        assert alert.current_value == 98.5
        assert alert.updated_at == later
        assert reg.cooldown(alert.key).last_fired_at == later  # type: ignore[union-attr]

    async def test_update_can_change_severity(self) -> None:
        reg = AlertRegistry()
        ev = ThresholdEvaluator(reg, COOLDOWN)
        await _evaluate(ev, reg, 99.3, T0)
        result = await _evaluate(ev, reg, 98.0, T0 + COOLDOWN + 1)
        assert result.alert is not None
        assert result.alert.severity == AlertSeverity.CRITICAL
        assert result.alert.threshold == 99.0

    async def test_healthy_resolves_and_removes(self) -> None:
        reg = AlertRegistry()
        ev = ThresholdEvaluator(reg, COOLDOWN)
        raised = await _evaluate(ev, reg, 98.7, T0)

        result = await _evaluate(ev, reg, 99.95, T0 + 60)

        assert result.outcome == EvaluationOutcome.RESOLVED
        assert result.alert is not None
        assert result.alert.id == raised.alert.id  # type: ignore[union-attr]
        assert result.alert.state == AlertState.RESOLVED
        assert result.alert.resolved_at == T0 + 60
        assert reg.count == 0

    async def test_resolution_not_subject_to_cooldown(self) -> None:
        reg = AlertRegistry()
        ev = ThresholdEvaluator(reg, COOLDOWN)
        await _evaluate(ev, reg, 98.7, T0)
        result = await _evaluate(ev, reg, 99.95, T0 + 1)
        assert result.outcome == EvaluationOutcome.RESOLVED

    async def test_rebreach_after_resolution_respects_cooldown(self) -> None:
        reg = AlertRegistry()
        ev = ThresholdEvaluator(reg, COOLDOWN)
        await _evaluate(ev, reg, 98.7, T0)
        await _evaluate(ev, reg, 99.95, T0 + 60)

        result = await _evaluate(ev, reg, 98.7, T0 + 120)

        assert result.outcome == EvaluationOutcome.SUPPRESSED
        assert result.alert is None
        assert reg.count == 0

    async def test_lower_is_better_metric(self) -> None:
        reg = AlertRegistry()
        ev = ThresholdEvaluator(reg, COOLDOWN)
        result = await _evaluate(ev, reg, 120, T0, spec=PROCESSING)
        assert result.outcome == EvaluationOutcome.RAISED
        assert result.severity == AlertSeverity.CRITICAL
        assert result.alert is not None
        assert result.alert.title == "nightshift_processing_time Threshold Alert"

    async def test_requires_lock(self) -> None:
        reg = AlertRegistry()
        ev = ThresholdEvaluator(reg, COOLDOWN)
        with pytest.raises(RuntimeError):
            ev.evaluate("system_availability", 98.7, AVAILABILITY, T0)
