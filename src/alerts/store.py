"""AlertRegistry — active alerts and cooldown timestamps behind one lock."""

from __future__ import annotations

import asyncio

from src.core.types import Alert, CooldownEntry


class AlertRegistry:
    """In-memory registry of active alerts keyed by alert key.

    Every writer (monitoring cycle, acknowledgment, escalation, insight
    acceptance) takes ``lock`` for the whole read-modify-write; the mutators
    refuse to run without it. Reads return copies and are safe without the
    lock because they never await.

    Usage::

        async with registry.lock:
            existing = registry.get(key)
            registry.put(updated)
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._active: dict[str, Alert] = {}
        self._cooldowns: dict[str, CooldownEntry] = {}

    @property
    def lock(self) -> asyncio.Lock:
        return self._lock

    # ── Reads ───────────────────────────────────────────────────

    @property
    def count(self) -> int:
        """Number of active alerts."""
        return len(self._active)

    def get(self, key: str) -> Alert | None:
        """Active alert for *key*, if any."""
        return self._active.get(key)

    def find_by_id(self, alert_id: str) -> Alert | None:
        """Active alert with the given id, if any."""
        for alert in self._active.values():
            if alert.id == alert_id:
                return alert
        return None

    def active_alerts(self) -> list[Alert]:
        """Active alerts, oldest first."""
        return sorted(self._active.values(), key=lambda a: a.created_at)

    def alerts_by_category(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for alert in self._active.values():
            counts[alert.category] = counts.get(alert.category, 0) + 1
        return counts

    def cooldown(self, key: str) -> CooldownEntry | None:
        return self._cooldowns.get(key)

    def in_cooldown(self, key: str, now: float, window_secs: float) -> bool:
        """True while ``now - last_fired_at < window_secs`` for *key*."""
        entry = self._cooldowns.get(key)
        return entry is not None and now - entry.last_fired_at < window_secs

    # ── Writes (lock required) ──────────────────────────────────

    def put(self, alert: Alert) -> None:
        """Insert or replace the active alert for ``alert.key``."""
        self._require_lock()
        self._active[alert.key] = alert

    def remove(self, key: str) -> Alert | None:
        """Drop *key* from the active set, returning what was there."""
        self._require_lock()
        return self._active.pop(key, None)

    def record_fire(self, key: str, now: float) -> CooldownEntry:
        self._require_lock()
        entry = CooldownEntry(alert_key=key, last_fired_at=now)
        self._cooldowns[key] = entry
        return entry

    def _require_lock(self) -> None:
        if not self._lock.locked():
            raise RuntimeError("AlertRegistry mutation without holding its lock")
