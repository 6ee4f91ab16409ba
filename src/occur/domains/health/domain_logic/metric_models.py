"""Metric kinds, chart periods and chart-point models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

RawHealthRecord = dict[str, Any]

# Health Connect style permission request/result entries: {accessType, recordType}
PermissionResult = list[dict[str, str]]


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class MetricKind(str, Enum):
    STEPS = "steps"
    HEART_RATE = "heartRate"
    SPO2 = "spo2"
    SLEEP = "sleep"
    # Recognised by the API surface, backed by no data source.
    MOOD = "mood"
    CALORIES = "calories"

    @property
    def is_implemented(self) -> bool:
        return self in IMPLEMENTED_METRICS

    @property
    def is_cumulative(self) -> bool:
        """Cumulative kinds are summed per bucket; the rest are averaged."""
        return self in (MetricKind.STEPS, MetricKind.SLEEP)


IMPLEMENTED_METRICS = frozenset({
    MetricKind.STEPS,
    MetricKind.HEART_RATE,
    MetricKind.SPO2,
    MetricKind.SLEEP,
})


class Period(str, Enum):
    DAY = "Day"
    WEEK = "Week"
    MONTH = "Month"
    YEAR = "Year"

    @property
    def backend_mode(self) -> str:
        return _BACKEND_MODES[self]

    @property
    def lookback_days(self) -> int:
        """Days fetched from the device store; 0 means "today only"."""
        return _LOOKBACK_DAYS[self]


_BACKEND_MODES = {
    Period.DAY: "daily",
    Period.WEEK: "weekly",
    Period.MONTH: "monthly",
    Period.YEAR: "yearly",
}

_LOOKBACK_DAYS = {
    Period.DAY: 0,
    Period.WEEK: 7,
    Period.MONTH: 30,
    Period.YEAR: 365,
}


def coerce_metric(value: MetricKind | str) -> MetricKind:
    """Accept an enum member or its wire value ("heartRate").

    Raises:
        ValueError: If the value names no known metric.
    """
    if isinstance(value, MetricKind):
        return value
    return MetricKind(value)


def coerce_period(value: Period | str) -> Period:
    """Accept an enum member, its value ("Week") or a lowercase name ("week").

    Raises:
        ValueError: If the value names no known period.
    """
    if isinstance(value, Period):
        return value
    for period in Period:
        if value in (period.value, period.value.lower(), period.backend_mode):
            return period
    raise ValueError(f"Unknown period: {value!r}")


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NormalizedMetricPoint:
    """One chart point.

    ``timestamp`` is the bucket start as ISO 8601 UTC (``...T08:00:00.000Z``).
    Points relayed from the backend graph carry no timestamp.
    """

    label: str
    value: float | int
    timestamp: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"label": self.label, "value": self.value}
        if self.timestamp is not None:
            data["timestamp"] = self.timestamp
        return data
