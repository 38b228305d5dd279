#!/usr/bin/env python3
"""Engine entrypoint — wires the alert lifecycle engine and runs until interrupted.

Usage::

    # Run with default config
    python scripts/run.py

    # Custom config file
    python scripts/run.py --config config/settings.yaml

    # Override log level
    python scripts/run.py --log-level DEBUG

    # Human-readable output
    python scripts/run.py --log-format console
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys

import structlog

from src.core.config import load_settings
from src.core.logging import setup_logging
from src.engine.factory import create_engine
from src.metrics.source import HttpMetricSource

logger = structlog.get_logger(__name__)


async def run(args: argparse.Namespace) -> int:
    """Start the engine and run until interrupted."""
    settings = load_settings(args.config)
    setup_logging(settings.logging, level=args.log_level, fmt=args.log_format)

    source = HttpMetricSource(settings.metric_source)
    await source.connect()

    engine = create_engine(settings, source)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # add_signal_handler is unavailable on Windows event loops.
            signal.signal(sig, lambda *_: stop_event.set())

    logger.info(
        "engine_starting",
        metrics_url=settings.metric_source.base_url,
        metrics=len(settings.thresholds),
    )
    await engine.start()
    try:
        await stop_event.wait()
    finally:
        logger.info("engine_shutting_down")
        await engine.stop()
        await source.close()
    return 0


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the alert lifecycle engine")
    parser.add_argument(
        "--config", default=None, help="Path to settings YAML",
    )
    parser.add_argument(
        "--log-level", default=None, help="Override log level (DEBUG, INFO, ...)",
    )
    parser.add_argument(
        "--log-format", default=None, choices=["json", "console"],
        help="Override log renderer",
    )
    return parser.parse_args(argv)


def main() -> None:
    args = parse_args()
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
