"""Engine facade — monitoring cycle, public entry points and wiring."""

from src.engine.engine import AlertEngine
from src.engine.factory import create_engine, create_hub
from src.engine.monitor import MetricsMonitor, date_range_for

__all__ = [
    "AlertEngine",
    "MetricsMonitor",
    "create_engine",
    "create_hub",
    "date_range_for",
]
