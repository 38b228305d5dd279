"""Alert state machine — allowed transitions and snapshot updates."""

from __future__ import annotations

from src.alerts.exceptions import InvalidTransitionError
from src.core.types import Alert, AlertState

ALLOWED_TRANSITIONS: dict[AlertState, frozenset[AlertState]] = {
    AlertState.RAISED: frozenset({
        AlertState.ACKNOWLEDGED,
        AlertState.ESCALATED,
        AlertState.RESOLVED,
    }),
    AlertState.ESCALATED: frozenset({
        AlertState.ACKNOWLEDGED,
        AlertState.RESOLVED,
    }),
    AlertState.ACKNOWLEDGED: frozenset({AlertState.RESOLVED}),
    AlertState.RESOLVED: frozenset(),
}


def can_transition(current: AlertState, target: AlertState) -> bool:
    """Return True if *current* → *target* is a legal lifecycle move."""
    return target in ALLOWED_TRANSITIONS[current]


def transition(
    alert: Alert,
    target: AlertState,
    now: float,
    actor_id: str | None = None,
) -> Alert:
    """Return a copy of *alert* moved to *target*, stamping the matching timestamp.

    Raises:
        InvalidTransitionError: if the move is not allowed from the current state.
    """
    if not can_transition(alert.state, target):
        raise InvalidTransitionError(
            f"alert {alert.id}: cannot move {alert.state} -> {target}"
        )

    update: dict[str, object] = {"state": target, "updated_at": now}
    if target == AlertState.ACKNOWLEDGED:
        update["acknowledged_at"] = now
        update["acknowledged_by"] = actor_id
    elif target == AlertState.ESCALATED:
        update["escalated_at"] = now
    elif target == AlertState.RESOLVED:
        update["resolved_at"] = now
        update["resolved_by"] = actor_id
    return alert.model_copy(update=update)
