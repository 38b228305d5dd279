"""TransitionRecorder — persists a transition and publishes its lifecycle event."""

from __future__ import annotations

import time
from collections.abc import Callable

import structlog

from src.alerts.repository import AlertRepository
from src.core.types import Alert, LifecycleEvent, LifecycleTransition
from src.notify.hub import NotificationHub

logger = structlog.stdlib.get_logger()


class TransitionRecorder:
    """Runs after the registry lock is released.

    A repository failure is logged and does not stop the event from being
    published; the in-memory registry is already updated by then and stays
    authoritative for cooldown and escalation.
    """

    def __init__(
        self,
        repository: AlertRepository,
        hub: NotificationHub,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._repository = repository
        self._hub = hub
        self._clock = clock

    async def record(
        self,
        transition: LifecycleTransition,
        alert: Alert,
        actor_id: str | None = None,
    ) -> LifecycleEvent:
        try:
            if transition == LifecycleTransition.RAISED:
                await self._repository.create(alert)
            else:
                await self._repository.update(alert)
        except Exception:
            logger.exception(
                "alert_persist_failed",
                alert_id=alert.id,
                key=alert.key,
                transition=transition.value,
            )

        event = LifecycleEvent(
            transition=transition,
            alert=alert,
            actor_id=actor_id,
            timestamp=self._clock(),
        )
        await self._hub.publish(event.topic, event)
        return event
