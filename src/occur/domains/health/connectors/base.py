"""Behaviour shared by the platform adapters: range builders and dispatch."""

from __future__ import annotations

import logging
from datetime import datetime, timezone, tzinfo

from occur.domains.health.domain_logic.date_ranges import (
    local_now,
    sleep_bounds,
    today_bounds,
    weekly_bounds,
)
from occur.domains.health.domain_logic.metric_models import MetricKind, RawHealthRecord

logger = logging.getLogger(__name__)


class InvalidRangeError(ValueError):
    """Raised (and caught by the fetch methods) for an unusable time range."""


def validate_range(start: datetime, end: datetime) -> None:
    if not isinstance(start, datetime) or not isinstance(end, datetime):
        raise InvalidRangeError("Invalid date parameters")
    if start.tzinfo is None or end.tzinfo is None:
        raise InvalidRangeError("Date parameters must be timezone-aware")


def to_iso(moment: datetime) -> str:
    """UTC ISO 8601 with milliseconds, as the stores expect."""
    return (
        moment.astimezone(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


class BaseHealthAdapter:
    """Convenience windows on top of the four fetch methods.

    Subclasses implement ``fetch_*_data``; ``tz`` decides where "today"
    starts (system local zone when None).
    """

    def __init__(self, *, tz: tzinfo | None = None) -> None:
        self._tz = tz

    def _now(self) -> datetime:
        return local_now(self._tz)

    async def fetch_steps_data(self, start: datetime, end: datetime) -> list[RawHealthRecord]:
        raise NotImplementedError

    async def fetch_heart_rate_data(self, start: datetime, end: datetime) -> list[RawHealthRecord]:
        raise NotImplementedError

    async def fetch_oxygen_saturation_data(
        self, start: datetime, end: datetime
    ) -> list[RawHealthRecord]:
        raise NotImplementedError

    async def fetch_sleep_session_data(
        self, start: datetime, end: datetime
    ) -> list[RawHealthRecord]:
        raise NotImplementedError

    async def fetch_metric(
        self, metric: MetricKind, start: datetime, end: datetime
    ) -> list[RawHealthRecord]:
        if metric is MetricKind.STEPS:
            return await self.fetch_steps_data(start, end)
        if metric is MetricKind.HEART_RATE:
            return await self.fetch_heart_rate_data(start, end)
        if metric is MetricKind.SPO2:
            return await self.fetch_oxygen_saturation_data(start, end)
        if metric is MetricKind.SLEEP:
            return await self.fetch_sleep_session_data(start, end)
        logger.info("Unsupported metric type for device store: %s", metric.value)
        return []

    async def get_today_steps(self) -> list[RawHealthRecord]:
        return await self.fetch_steps_data(*today_bounds(self._now()))

    async def get_weekly_steps(self) -> list[RawHealthRecord]:
        return await self.fetch_steps_data(*weekly_bounds(self._now()))

    async def get_today_heart_rate(self) -> list[RawHealthRecord]:
        return await self.fetch_heart_rate_data(*today_bounds(self._now()))

    async def get_today_oxygen_saturation(self) -> list[RawHealthRecord]:
        return await self.fetch_oxygen_saturation_data(*today_bounds(self._now()))

    async def get_today_sleep_data(self) -> list[RawHealthRecord]:
        return await self.fetch_sleep_session_data(*sleep_bounds(self._now()))
