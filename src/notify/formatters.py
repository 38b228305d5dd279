"""Pure functions that turn lifecycle payloads into JSON-ready dicts."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from src.core.types import Alert, AnalysisCycleResult, LifecycleEvent


def format_alert(alert: Alert) -> dict[str, Any]:
    """Flat alert snapshot suitable for dashboards and webhooks."""
    return alert.model_dump(mode="json")


def format_lifecycle_event(event: LifecycleEvent) -> dict[str, Any]:
    """Convert a LifecycleEvent to a flat dict keyed for sinks."""
    return {
        "type": event.topic,
        "transition": event.transition.value,
        "timestamp": event.timestamp,
        "actor_id": event.actor_id,
        "alert": format_alert(event.alert),
    }


def format_cycle_result(result: AnalysisCycleResult) -> dict[str, Any]:
    """Summarise an analysis cycle without the full insight bodies."""
    return {
        "type": "analysis_cycle_completed",
        "total_insights": result.total_insights,
        "accepted": len(result.insights),
        "overall_confidence": round(result.overall_confidence, 4),
        "started_at": result.started_at,
        "duration_secs": round(result.duration_secs, 3),
        "producers": {
            pid: stats.model_dump(mode="json")
            for pid, stats in result.per_producer_stats.items()
        },
    }


def format_payload(topic: str, payload: Any) -> dict[str, Any]:
    """Best-effort conversion of any published payload to a dict."""
    if isinstance(payload, LifecycleEvent):
        return format_lifecycle_event(payload)
    if isinstance(payload, AnalysisCycleResult):
        return format_cycle_result(payload)
    if isinstance(payload, BaseModel):
        return {"type": topic, **payload.model_dump(mode="json")}
    if isinstance(payload, dict):
        return {"type": topic, **payload}
    return {"type": topic, "payload": payload}


def log_fields(topic: str, payload: Any) -> dict[str, Any]:
    """Compact key/value context for structured log lines."""
    if isinstance(payload, LifecycleEvent):
        alert = payload.alert
        return {
            "topic": topic,
            "alert_id": alert.id,
            "key": alert.key,
            "severity": alert.severity.value,
            "state": alert.state.value,
            "title": alert.title,
            "actor_id": payload.actor_id,
        }
    if isinstance(payload, AnalysisCycleResult):
        return {
            "topic": topic,
            "accepted": len(payload.insights),
            "total_insights": payload.total_insights,
            "overall_confidence": round(payload.overall_confidence, 4),
        }
    return {"topic": topic}
