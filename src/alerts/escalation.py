"""EscalationScheduler — promotes unacknowledged critical alerts after a delay."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable

import structlog

from src.alerts.state import transition
from src.alerts.store import AlertRegistry
from src.core.scheduler import ScheduleHandle, TaskScheduler
from src.core.types import Alert, AlertSeverity, AlertState

logger = structlog.stdlib.get_logger()

EscalationCallback = Callable[[Alert], Awaitable[None] | None]


class EscalationScheduler:
    """One deferred, cancellable escalation task per alert id.

    The task re-checks the registry when it fires: the alert must still be
    active, critical and in ``raised`` state, otherwise nothing happens.
    """

    def __init__(
        self,
        registry: AlertRegistry,
        scheduler: TaskScheduler,
        delay_secs: float = 30 * 60,
        enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._registry = registry
        self._scheduler = scheduler
        self._delay_secs = delay_secs
        self._enabled = enabled
        self._clock = clock
        self._handles: dict[str, ScheduleHandle] = {}
        self._callbacks: list[EscalationCallback] = []

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def delay_secs(self) -> float:
        return self._delay_secs

    @property
    def pending(self) -> list[str]:
        """Alert ids with an armed escalation."""
        return list(self._handles)

    def on_escalated(self, callback: EscalationCallback) -> None:
        """Register a callback run (outside the registry lock) after escalation."""
        self._callbacks.append(callback)

    def schedule(self, alert: Alert) -> bool:
        """Arm escalation for *alert* if it qualifies. Returns True if armed."""
        if not self._enabled:
            return False
        if alert.severity != AlertSeverity.CRITICAL:
            return False
        if alert.state != AlertState.RAISED or alert.escalated_at is not None:
            return False
        if alert.id in self._handles:
            return False
        if self._scheduler.closed:
            logger.warning(
                "escalation_not_armed",
                alert_id=alert.id,
                reason="scheduler_closed",
            )
            return False

        self._handles[alert.id] = self._scheduler.schedule(
            self._delay_secs,
            lambda: self._fire(alert.id),
            name=f"escalate:{alert.id}",
        )
        logger.debug(
            "escalation_scheduled",
            alert_id=alert.id,
            delay_secs=self._delay_secs,
        )
        return True

    def cancel(self, alert_id: str) -> bool:
        """Disarm the escalation for *alert_id*. Returns True if one was armed."""
        handle = self._handles.pop(alert_id, None)
        if handle is None:
            return False
        self._scheduler.cancel(handle)
        logger.debug("escalation_cancelled", alert_id=alert_id)
        return True

    def cancel_all(self) -> int:
        count = 0
        for alert_id in list(self._handles):
            if self.cancel(alert_id):
                count += 1
        return count

    async def _fire(self, alert_id: str) -> None:
        self._handles.pop(alert_id, None)

        async with self._registry.lock:
            current = self._registry.find_by_id(alert_id)
            if (
                current is None
                or current.state != AlertState.RAISED
                or current.severity != AlertSeverity.CRITICAL
            ):
                logger.debug(
                    "escalation_skipped",
                    alert_id=alert_id,
                    state=current.state.value if current else None,
                )
                return
            escalated = transition(current, AlertState.ESCALATED, self._clock())
            self._registry.put(escalated)

        logger.warning(
            "alert_escalated",
            alert_id=alert_id,
            key=escalated.key,
            title=escalated.title,
        )
        for cb in self._callbacks:
            try:
                result = cb(escalated)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                logger.exception("escalation_callback_error", alert_id=alert_id)
