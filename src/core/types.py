"""Domain types for the alert lifecycle engine."""

from __future__ import annotations

import time
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ── Enums ───────────────────────────────────────────────────────


class AlertSeverity(StrEnum):
    """Alert severity."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class AlertState(StrEnum):
    """Lifecycle state of an alert."""

    RAISED = "raised"
    ACKNOWLEDGED = "acknowledged"
    ESCALATED = "escalated"
    RESOLVED = "resolved"


class ThresholdDirection(StrEnum):
    """Which side of the thresholds is healthy."""

    HIGHER_IS_BETTER = "higher_is_better"
    LOWER_IS_BETTER = "lower_is_better"


class MetricCategory(StrEnum):
    """Grouping used by dashboards and status summaries."""

    SYSTEM_PERFORMANCE = "system_performance"
    AI_ACCURACY = "ai_accuracy"
    BUSINESS_IMPACT = "business_impact"
    USER_ADOPTION = "user_adoption"
    DATA_QUALITY = "data_quality"
    OPERATIONAL_EFFICIENCY = "operational_efficiency"


class LifecycleTransition(StrEnum):
    """Name carried by every lifecycle event."""

    RAISED = "raised"
    UPDATED = "updated"
    ACKNOWLEDGED = "acknowledged"
    ESCALATED = "escalated"
    RESOLVED = "resolved"


class EvaluationOutcome(StrEnum):
    """What a single threshold evaluation did to the registry."""

    HEALTHY = "healthy"
    RAISED = "raised"
    UPDATED = "updated"
    SUPPRESSED = "suppressed"
    RESOLVED = "resolved"


# ── Insights & alerts ───────────────────────────────────────────


class Insight(BaseModel):
    """Candidate alert content produced by an analysis producer."""

    title: str
    description: str
    producer_id: str
    route_id: str | None = None
    confidence_score: float = 0.0
    supporting_data: dict[str, Any] = Field(default_factory=dict)
    generated_at: float = Field(default_factory=time.time)
    category: str = "insight"
    severity: AlertSeverity = AlertSeverity.WARNING
    recommendation: str | None = None

    @field_validator("confidence_score")
    @classmethod
    def _confidence_in_range(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"confidence_score must be in [0, 1], got {v}")
        return v


class Alert(BaseModel):
    """Lifecycle object tracked once an insight is accepted or a threshold breaches."""

    id: str
    key: str
    metric_name: str | None = None
    category: str
    severity: AlertSeverity
    title: str
    description: str = ""
    recommendation: str | None = None
    current_value: float | None = None
    threshold: float | None = None
    producer_id: str = ""
    route_id: str | None = None
    confidence: float = 1.0
    created_at: float
    updated_at: float = 0.0
    acknowledged_at: float | None = None
    acknowledged_by: str | None = None
    escalated_at: float | None = None
    resolved_at: float | None = None
    resolved_by: str | None = None
    state: AlertState = AlertState.RAISED

    @property
    def active(self) -> bool:
        return self.state != AlertState.RESOLVED


class ThresholdSpec(BaseModel):
    """Per-metric threshold configuration."""

    model_config = ConfigDict(frozen=True)

    metric_name: str
    target: float
    warning: float
    critical: float
    direction: ThresholdDirection = ThresholdDirection.HIGHER_IS_BETTER
    category: MetricCategory = MetricCategory.SYSTEM_PERFORMANCE
    message: str = ""
    default_value: float | None = None


class CooldownEntry(BaseModel):
    """Last time an alert key fired."""

    alert_key: str
    last_fired_at: float


class DateRange(BaseModel):
    """Window passed to metric sources (ISO dates)."""

    start_date: str
    end_date: str


# ── Events & results ────────────────────────────────────────────


class LifecycleEvent(BaseModel):
    """Published on every alert transition."""

    transition: LifecycleTransition
    alert: Alert
    actor_id: str | None = None
    timestamp: float = Field(default_factory=time.time)

    @property
    def topic(self) -> str:
        return f"alert_{self.transition.value}"


class DedupDecision(BaseModel):
    """Result of a duplicate check."""

    accepted: bool
    reason: str | None = None
    similarity: float | None = None
    flagged: bool = False


class ThresholdResult(BaseModel):
    """Result of one threshold evaluation."""

    metric_name: str
    value: float
    severity: AlertSeverity | None = None
    outcome: EvaluationOutcome
    alert: Alert | None = None


class ProducerStats(BaseModel):
    """Per-producer outcome of one analysis cycle."""

    producer_id: str
    insights_produced: int = 0
    insights_accepted: int = 0
    insights_rejected: int = 0
    failures: int = 0
    error: str | None = None
    duration_secs: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.error is None


class AnalysisCycleResult(BaseModel):
    """Aggregate outcome of one analysis cycle."""

    insights: list[Insight] = Field(default_factory=list)
    alerts: list[Alert] = Field(default_factory=list)
    per_producer_stats: dict[str, ProducerStats] = Field(default_factory=dict)
    total_insights: int = 0
    overall_confidence: float = 0.0
    started_at: float = 0.0
    duration_secs: float = 0.0


class MonitoringStatus(BaseModel):
    """Snapshot returned by the engine status entry point."""

    monitoring_active: bool = False
    analysis_active: bool = False
    check_interval_minutes: float = 0.0
    active_alert_count: int = 0
    alerts_by_category: dict[str, int] = Field(default_factory=dict)
    last_check_time: float | None = None
    last_analysis_time: float | None = None
