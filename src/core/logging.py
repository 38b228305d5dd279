"""Engine logging: structlog events rendered through the stdlib root logger."""

from __future__ import annotations

import logging
import sys

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from src.core.config import LoggingConfig

# Lifecycle events written by LogSink.
EVENT_LOGGER = "alert_events"


def _level(name: str) -> int:
    value = logging.getLevelName(name.upper())
    return value if isinstance(value, int) else logging.INFO


def _service_tag(service: str) -> Processor:
    def add_service(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", service)
        return event_dict

    return add_service


def _renderer(fmt: str) -> Processor:
    if fmt == "console":
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def setup_logging(
    config: LoggingConfig | None = None,
    *,
    level: str | None = None,
    fmt: str | None = None,
) -> None:
    """Route structlog and stdlib logging to one stderr handler.

    Args:
        config: The ``logging`` section of the engine settings.
        level: Root level override, e.g. from ``--log-level``.
        fmt: Renderer override (``"json"`` or ``"console"``).
    """
    cfg = config or LoggingConfig()
    root_level = _level(level or cfg.level)

    shared: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.stdlib.add_logger_name,
        _service_tag(cfg.service),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # foreign_pre_chain stamps records from plain stdlib loggers (aiohttp, httpx).
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(fmt or cfg.format),
        ],
    ))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(root_level)

    logging.getLogger(EVENT_LOGGER).setLevel(_level(cfg.event_level))
    for name in cfg.quiet_loggers:
        logging.getLogger(name).setLevel(max(root_level, logging.WARNING))
