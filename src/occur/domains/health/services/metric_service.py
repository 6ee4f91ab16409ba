"""Dual-source resolver — chart data from the device store, else the backend.

The device store is always tried first and always finishes before the
backend is asked; the two are never queried concurrently for one request.
Every public method degrades to an empty result instead of raising.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import datetime, tzinfo
from typing import Any

from occur.core.tasks.background import BackgroundExecutor
from occur.domains.health.connectors import HealthAdapter
from occur.domains.health.domain_logic.aggregator import to_chart_points
from occur.domains.health.domain_logic.date_ranges import local_now, period_range
from occur.domains.health.domain_logic.metric_models import (
    MetricKind,
    NormalizedMetricPoint,
    Period,
    coerce_metric,
    coerce_period,
)
from occur.domains.health.domain_logic.normalizer import as_number
from occur.domains.health.services.health_api import HealthDataAPI
from occur.domains.health.services.sync import HealthSyncUploader

logger = logging.getLogger(__name__)


def map_period_to_mode(period: Period | str) -> str:
    """``"Week"`` -> ``"weekly"``; unknown periods map to ``"daily"``."""
    try:
        return coerce_period(period).backend_mode
    except ValueError:
        return Period.DAY.backend_mode


def graph_to_points(graph: list[Any]) -> list[NormalizedMetricPoint]:
    """Backend ``[{x, y}, ...]`` to chart points (no timestamps)."""
    points = []
    for item in graph:
        if not isinstance(item, Mapping) or item.get("x") is None:
            continue
        value = as_number(item.get("y"))
        if value is None:
            continue
        points.append(NormalizedMetricPoint(label=str(item["x"]), value=value))
    return points


class HealthMetricService:
    """Resolves chart points for a metric and period.

    Usage::

        service = HealthMetricService(adapter, api, uploader, executor)
        points = await service.get_metric_data("steps", "Week")
    """

    def __init__(
        self,
        adapter: HealthAdapter,
        api: HealthDataAPI,
        uploader: HealthSyncUploader,
        executor: BackgroundExecutor,
        *,
        tz: tzinfo | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._adapter = adapter
        self._api = api
        self._uploader = uploader
        self._executor = executor
        self._tz = tz
        self._clock = clock or (lambda: local_now(self._tz))

    async def get_metric_data(
        self, metric: MetricKind | str, period: Period | str
    ) -> list[NormalizedMetricPoint]:
        try:
            metric = coerce_metric(metric)
            period = coerce_period(period)
        except ValueError:
            logger.warning("Unknown metric/period: %r/%r", metric, period)
            return []

        if not metric.is_implemented:
            logger.info("Metric %s has no data source", metric.value)
            return []

        points = await self._device_points(metric, period)
        if points:
            self._maybe_schedule_upload()
            return points

        return await self._backend_points(metric, period)

    async def get_metric_summary(self, metric: MetricKind | str, period: Period | str) -> Any:
        """Backend summary for a metric, or None when unavailable."""
        try:
            metric = coerce_metric(metric)
            mode = coerce_period(period).backend_mode
            return await self._api.get_summary(metric.value, mode)
        except Exception:
            logger.exception("Failed to fetch %r summary", metric)
            return None

    async def get_health_goals(self) -> Any:
        """The user's stored health goals. Backend errors propagate."""
        return await self._api.get_health_goals()

    async def update_health_goals(self, goals: dict[str, Any]) -> Any:
        """Replace the user's health goals. Backend errors propagate."""
        result = await self._api.update_health_goals(goals)
        logger.info("Health goals updated: %s", sorted(goals))
        return result

    async def get_steps_data(self, period: Period | str) -> list[NormalizedMetricPoint]:
        return await self.get_metric_data(MetricKind.STEPS, period)

    async def get_heart_rate_data(self, period: Period | str) -> list[NormalizedMetricPoint]:
        return await self.get_metric_data(MetricKind.HEART_RATE, period)

    async def get_spo2_data(self, period: Period | str) -> list[NormalizedMetricPoint]:
        return await self.get_metric_data(MetricKind.SPO2, period)

    async def get_sleep_data(self, period: Period | str) -> list[NormalizedMetricPoint]:
        return await self.get_metric_data(MetricKind.SLEEP, period)

    async def get_mood_data(self, period: Period | str) -> list[NormalizedMetricPoint]:
        return await self.get_metric_data(MetricKind.MOOD, period)

    async def get_calories_data(self, period: Period | str) -> list[NormalizedMetricPoint]:
        return await self.get_metric_data(MetricKind.CALORIES, period)

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    async def _device_points(
        self, metric: MetricKind, period: Period
    ) -> list[NormalizedMetricPoint]:
        try:
            now = self._clock()
            start, end = period_range(period, now)
            records = await self._adapter.fetch_metric(metric, start, end)
            points = to_chart_points(records, period, metric, tz=self._tz)
        except Exception:
            logger.exception("Device store failed for %s/%s", metric.value, period.value)
            return []
        logger.debug(
            "Device store: %d points for %s/%s", len(points), metric.value, period.value
        )
        return points

    async def _backend_points(
        self, metric: MetricKind, period: Period
    ) -> list[NormalizedMetricPoint]:
        try:
            graph = await self._api.get_graph_data(metric.value, period.backend_mode)
            points = graph_to_points(graph)
        except Exception:
            logger.exception("Backend graph-data failed for %s/%s", metric.value, period.value)
            return []
        if not points:
            logger.info("No %s data for %s from either source", metric.value, period.value)
        return points

    def _maybe_schedule_upload(self) -> None:
        try:
            if self._uploader.should_upload_health_device_data():
                self._executor.spawn(
                    self._uploader.upload_health_device_data,
                    name="health-device-upload",
                )
        except Exception:
            logger.exception("Could not schedule health device upload")
