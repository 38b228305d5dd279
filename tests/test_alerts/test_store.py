"""Tests for AlertRegistry — lock enforcement, lookups, cooldowns."""

from __future__ import annotations

import pytest

from src.alerts.store import AlertRegistry
from src.core.types import Alert, AlertSeverity


def _alert(key: str, created_at: float = 1000.0, **kw: object) -> Alert:
    defaults: dict[str, object] = {
        "id": f"{key}-id",
        "key": key,
        "category": "system_performance",
        "severity": AlertSeverity.WARNING,
        "title": key,
        "created_at": created_at,
    }
    defaults.update(kw)
    return Alert(**defaults)  # type: ignore[arg-type]


class TestLocking:
    def test_put_without_lock_rejected(self) -> None:
        reg = AlertRegistry()
        with pytest.raises(RuntimeError):
            reg.put(_alert("k"))

    def test_remove_without_lock_rejected(self) -> None:
        reg = AlertRegistry()
        with pytest.raises(RuntimeError):
            reg.remove("k")

    def test_record_fire_without_lock_rejected(self) -> None:
        reg = AlertRegistry()
        with pytest.raises(RuntimeError):
            reg.record_fire("k", 1000.0)

    async def test_put_under_lock(self) -> None:
        reg = AlertRegistry()
        async with reg.lock:
            reg.put(_alert("k"))
        assert reg.count == 1
        assert reg.get("k") is not None

    async def test_independent_instances(self) -> None:
        a, b = AlertRegistry(), AlertRegistry()
        async with a.lock:
            a.put(_alert("k"))
        assert b.count == 0


class TestLookups:
    async def test_find_by_id(self) -> None:
        reg = AlertRegistry()
        async with reg.lock:
            reg.put(_alert("k1"))
            reg.put(_alert("k2"))
        found = reg.find_by_id("k2-id")
        assert found is not None
        assert found.key == "k2"
        assert reg.find_by_id("missing") is None

    async def test_active_alerts_oldest_first(self) -> None:
        reg = AlertRegistry()
        async with reg.lock:
            reg.put(_alert("late", created_at=3000.0))
            reg.put(_alert("early", created_at=1000.0))
        assert [a.key for a in reg.active_alerts()] == ["early", "late"]

    async def test_put_replaces_by_key(self) -> None:
        reg = AlertRegistry()
        async with reg.lock:
            reg.put(_alert("k", current_value=1.0))
            reg.put(_alert("k", current_value=2.0))
        assert reg.count == 1
        assert reg.get("k").current_value == 2.0  # type: ignore[union-attr]

    async def test_remove_returns_previous(self) -> None:
        reg = AlertRegistry()
        async with reg.lock:
            reg.put(_alert("k"))
            removed = reg.remove("k")
            missing = reg.remove("k")
        assert removed is not None
        assert missing is None
        assert reg.count == 0

    async def test_alerts_by_category(self) -> None:
        reg = AlertRegistry()
        async with reg.lock:
            reg.put(_alert("a", category="ai_accuracy"))
            reg.put(_alert("b", category="ai_accuracy"))
            reg.put(_alert("c", category="user_adoption"))
        assert reg.alerts_by_category() == {"ai_accuracy": 2, "user_adoption": 1}


class TestCooldown:
    async def test_within_window(self) -> None:
        reg = AlertRegistry()
        async with reg.lock:
            reg.record_fire("k", 1000.0)
        assert reg.in_cooldown("k", 1000.0 + 3599, 3600) is True
        assert reg.in_cooldown("k", 1000.0 + 3600, 3600) is False

    def test_unknown_key_not_in_cooldown(self) -> None:
        reg = AlertRegistry()
        assert reg.in_cooldown("k", 1000.0, 3600) is False
        assert reg.cooldown("k") is None

    async def test_cooldown_survives_remove(self) -> None:
        reg = AlertRegistry()
        async with reg.lock:
            reg.put(_alert("k"))
            reg.record_fire("k", 1000.0)
            reg.remove("k")
        entry = reg.cooldown("k")
        assert entry is not None
        assert entry.last_fired_at == 1000.0
