"""Alert lifecycle — state machine, registry, dedup, thresholds, escalation."""

from src.alerts.dedup import (
    DedupFilter,
    extract_keywords,
    find_duplicate_groups,
    jaccard_similarity,
)
from src.alerts.escalation import EscalationCallback, EscalationScheduler
from src.alerts.exceptions import AlertError, InvalidTransitionError, RepositoryError
from src.alerts.recorder import TransitionRecorder
from src.alerts.repository import AlertRepository, InMemoryAlertRepository
from src.alerts.state import ALLOWED_TRANSITIONS, can_transition, transition
from src.alerts.store import AlertRegistry
from src.alerts.threshold import (
    ThresholdEvaluator,
    alert_key,
    breached_threshold,
    evaluate_severity,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "AlertError",
    "AlertRegistry",
    "AlertRepository",
    "DedupFilter",
    "EscalationCallback",
    "EscalationScheduler",
    "InMemoryAlertRepository",
    "InvalidTransitionError",
    "RepositoryError",
    "ThresholdEvaluator",
    "TransitionRecorder",
    "alert_key",
    "breached_threshold",
    "can_transition",
    "evaluate_severity",
    "extract_keywords",
    "find_duplicate_groups",
    "jaccard_similarity",
    "transition",
]
