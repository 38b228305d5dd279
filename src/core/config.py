"""Pydantic settings loaded from YAML configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, SecretStr, field_validator

from src.core.types import MetricCategory, ThresholdDirection, ThresholdSpec

_settings: Settings | None = None

_DEFAULT_CONFIG_PATH = Path("config/settings.yaml")


class MonitoringConfig(BaseModel):
    """Threshold monitoring cycle configuration."""

    check_interval_minutes: float = 15.0
    alert_cooldown_minutes: float = 60.0
    escalation_enabled: bool = True
    escalation_delay_minutes: float = 30.0
    metrics_window_hours: float = 24.0


class DedupConfig(BaseModel):
    """Duplicate insight suppression configuration."""

    hours_back: float = 24.0
    fuzzy_hours_back: float = 12.0
    similarity_threshold: float = 0.7
    max_keywords: int = 10
    min_keyword_length: int = 4
    recent_limit: int = 20
    rate_window_hours: float = 1.0
    max_alerts_per_window: int = 10
    rate_limit_mode: Literal["reject", "flag"] = "reject"


class AnalysisConfig(BaseModel):
    """Insight producer fan-out configuration."""

    enabled: bool = True
    interval_minutes: float = 45.0
    producer_timeout_secs: float = 60.0
    producer_retries: int = 2
    retry_backoff_secs: float = 1.0


class MetricSourceConfig(BaseModel):
    """HTTP metric source configuration."""

    base_url: str = "http://localhost:5000/api/metrics"
    timeout_secs: float = 10.0
    value_field: str = "value"


class NotificationsConfig(BaseModel):
    """Lifecycle event delivery configuration."""

    log_events: bool = True
    webhook_enabled: bool = False
    webhook_url: SecretStr = SecretStr("")
    webhook_timeout_secs: float = 10.0


_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class LoggingConfig(BaseModel):
    """Logging configuration.

    ``event_level`` applies to the ``alert_events`` stream written by the log
    sink; ``quiet_loggers`` are held at WARNING or above.
    """

    level: str = "INFO"
    format: Literal["json", "console"] = "json"
    event_level: str = "INFO"
    service: str = "alert-engine"
    quiet_loggers: list[str] = Field(
        default_factory=lambda: ["httpx", "httpcore", "aiohttp.access"],
    )

    @field_validator("level", "event_level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        name = v.upper()
        if name not in _LOG_LEVELS:
            raise ValueError(f"unknown log level {v!r}")
        return name


def _spec(
    name: str,
    target: float,
    warning: float,
    critical: float,
    direction: ThresholdDirection,
    category: MetricCategory,
    message: str,
) -> ThresholdSpec:
    return ThresholdSpec(
        metric_name=name,
        target=target,
        warning=warning,
        critical=critical,
        direction=direction,
        category=category,
        message=message,
    )


_HIGHER = ThresholdDirection.HIGHER_IS_BETTER
_LOWER = ThresholdDirection.LOWER_IS_BETTER

DEFAULT_THRESHOLDS: dict[str, ThresholdSpec] = {
    spec.metric_name: spec
    for spec in (
        _spec(
            "system_availability", 99.9, 99.5, 99.0, _HIGHER,
            MetricCategory.SYSTEM_PERFORMANCE,
            "System availability has dropped below acceptable levels",
        ),
        _spec(
            "nightshift_processing_time", 45, 60, 90, _LOWER,
            MetricCategory.SYSTEM_PERFORMANCE,
            "NightShift processing time is exceeding targets",
        ),
        _spec(
            "data_freshness", 2, 4, 8, _LOWER,
            MetricCategory.SYSTEM_PERFORMANCE,
            "Data freshness is degrading across sources",
        ),
        _spec(
            "insight_accuracy_rate", 85, 80, 75, _HIGHER,
            MetricCategory.AI_ACCURACY,
            "AI insight accuracy has fallen below acceptable levels",
        ),
        _spec(
            "competitive_alert_precision", 70, 60, 50, _HIGHER,
            MetricCategory.AI_ACCURACY,
            "Competitive alert precision is declining",
        ),
        _spec(
            "confidence_score_distribution", 75, 65, 50, _HIGHER,
            MetricCategory.AI_ACCURACY,
            "AI confidence scores are dropping",
        ),
        _spec(
            "revenue_impact", 500000, 300000, 200000, _HIGHER,
            MetricCategory.BUSINESS_IMPACT,
            "AI-driven revenue impact is below targets",
        ),
        _spec(
            "competitive_response_speed", 4, 8, 24, _LOWER,
            MetricCategory.BUSINESS_IMPACT,
            "Competitive response time is too slow",
        ),
        _spec(
            "analyst_time_savings", 120, 90, 60, _HIGHER,
            MetricCategory.BUSINESS_IMPACT,
            "Analyst time savings are below expectations",
        ),
        _spec(
            "daily_active_users", 90, 80, 70, _HIGHER,
            MetricCategory.USER_ADOPTION,
            "Daily active user rate is declining",
        ),
        _spec(
            "user_satisfaction_score", 50, 30, 10, _HIGHER,
            MetricCategory.USER_ADOPTION,
            "User satisfaction (NPS) is below acceptable levels",
        ),
        _spec(
            "insight_action_rate", 60, 50, 40, _HIGHER,
            MetricCategory.USER_ADOPTION,
            "Insight action rate indicates low user engagement",
        ),
    )
}


class Settings(BaseModel):
    """Root settings container."""

    monitoring: MonitoringConfig = MonitoringConfig()
    dedup: DedupConfig = DedupConfig()
    analysis: AnalysisConfig = AnalysisConfig()
    metric_source: MetricSourceConfig = MetricSourceConfig()
    notifications: NotificationsConfig = NotificationsConfig()
    thresholds: dict[str, ThresholdSpec] = dict(DEFAULT_THRESHOLDS)
    logging: LoggingConfig = LoggingConfig()


def _normalise_thresholds(raw: dict[str, Any]) -> dict[str, Any]:
    """Fill ``metric_name`` from the table key when the YAML omits it."""
    table = raw.get("thresholds")
    if not isinstance(table, dict):
        return raw
    merged: dict[str, Any] = {}
    for name, entry in table.items():
        if isinstance(entry, dict):
            entry = {"metric_name": name, **entry}
        merged[name] = entry
    return {**raw, "thresholds": merged}


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from a YAML file and cache globally.

    Args:
        path: Path to YAML config. Defaults to config/settings.yaml.

    Returns:
        Parsed Settings instance.
    """
    global _settings  # noqa: PLW0603

    config_path = Path(path) if path else _DEFAULT_CONFIG_PATH

    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f)
            if isinstance(raw, dict):
                data = _normalise_thresholds(raw)

    _settings = Settings(**data)
    return _settings


def get_settings() -> Settings:
    """Return the cached settings, loading defaults if not yet loaded."""
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Reset the cached settings (useful for testing)."""
    global _settings  # noqa: PLW0603
    _settings = None
