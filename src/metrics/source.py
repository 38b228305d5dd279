"""Metric sources — where the monitoring cycle reads current metric values."""

from __future__ import annotations

import abc
import math
from types import TracebackType

import httpx
import structlog

from src.core.config import MetricSourceConfig
from src.core.types import DateRange
from src.metrics.exceptions import (
    MetricParseError,
    MetricSourceError,
    MetricUnavailableError,
)

logger = structlog.stdlib.get_logger()


class MetricSource(abc.ABC):
    """Supplies the current value of one metric over a date window."""

    @abc.abstractmethod
    async def get_value(self, metric_name: str, date_range: DateRange) -> float:
        """Return the metric value.

        Raises:
            MetricSourceError: if the value cannot be obtained.
        """

    async def close(self) -> None:
        """Release resources (HTTP clients, etc.)."""


class StaticMetricSource(MetricSource):
    """Values held in memory — for local runs and tests.

    Usage::

        source = StaticMetricSource({"system_availability": 99.95})
        source.set("system_availability", 98.7)
    """

    def __init__(self, values: dict[str, float] | None = None) -> None:
        self._values: dict[str, float] = dict(values or {})

    def set(self, metric_name: str, value: float) -> None:
        self._values[metric_name] = value

    def clear(self, metric_name: str) -> None:
        self._values.pop(metric_name, None)

    async def get_value(self, metric_name: str, date_range: DateRange) -> float:
        try:
            return self._values[metric_name]
        except KeyError:
            raise MetricUnavailableError(f"no value for {metric_name}") from None


class HttpMetricSource(MetricSource):
    """Reads ``GET {base_url}/{metric_name}?start_date=..&end_date=..``.

    The response must be a JSON object carrying the number under
    ``value_field``.
    """

    def __init__(self, config: MetricSourceConfig | None = None) -> None:
        self._config = config or MetricSourceConfig()
        self._http: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        """Create the httpx async client."""
        self._http = httpx.AsyncClient(
            timeout=httpx.Timeout(self._config.timeout_secs),
        )

    async def close(self) -> None:
        """Close the httpx async client."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def get_value(self, metric_name: str, date_range: DateRange) -> float:
        if self._http is None:
            await self.connect()
        assert self._http is not None

        url = f"{self._config.base_url.rstrip('/')}/{metric_name}"
        try:
            response = await self._http.get(
                url,
                params={
                    "start_date": date_range.start_date,
                    "end_date": date_range.end_date,
                },
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "metrics_api_error",
                metric=metric_name,
                status=exc.response.status_code,
                url=url,
            )
            if exc.response.status_code == 404:
                raise MetricUnavailableError(
                    f"metric {metric_name} not found"
                ) from exc
            raise MetricSourceError(
                f"metrics API returned {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "metrics_api_unreachable",
                metric=metric_name,
                error=type(exc).__name__,
            )
            raise MetricSourceError(f"metrics API request failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise MetricParseError("metrics API returned invalid JSON") from exc

        if not isinstance(body, dict) or self._config.value_field not in body:
            raise MetricParseError(
                f"response for {metric_name} has no '{self._config.value_field}'"
            )
        try:
            value = float(body[self._config.value_field])
        except (TypeError, ValueError) as exc:
            raise MetricParseError(
                f"non-numeric value for {metric_name}: {body[self._config.value_field]!r}"
            ) from exc
        if not math.isfinite(value):
            raise MetricParseError(f"non-finite value for {metric_name}")
        logger.debug(
            "metric_fetched",
            metric=metric_name,
            value=value,
            start_date=date_range.start_date,
            end_date=date_range.end_date,
        )
        return value

    async def __aenter__(self) -> HttpMetricSource:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
