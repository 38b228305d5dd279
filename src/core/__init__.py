"""Core module — config, types, logging, scheduling."""

from src.core.config import Settings, get_settings, load_settings, reset_settings
from src.core.logging import setup_logging
from src.core.scheduler import ScheduleHandle, SchedulerClosedError, TaskScheduler
from src.core.types import (
    Alert,
    AlertSeverity,
    AlertState,
    Insight,
    LifecycleEvent,
    LifecycleTransition,
    MetricCategory,
    ThresholdDirection,
    ThresholdSpec,
)

__all__ = [
    "Alert",
    "AlertSeverity",
    "AlertState",
    "Insight",
    "LifecycleEvent",
    "LifecycleTransition",
    "MetricCategory",
    "ScheduleHandle",
    "SchedulerClosedError",
    "Settings",
    "TaskScheduler",
    "ThresholdDirection",
    "ThresholdSpec",
    "get_settings",
    "load_settings",
    "reset_settings",
    "setup_logging",
]
