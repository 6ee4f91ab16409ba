"""Record normalizer — reduces loosely-shaped health records to scalars.

Health Connect and HealthKit report the same measurement under different
field names (``beatsPerMinute`` vs ``value``, ``percentage`` vs
``saturation``, top-level vs ``samples[0]``). Each metric kind has an
ordered list of extraction strategies; the first one that yields a number
wins. A record nothing can be extracted from yields ``None`` and is dropped
by the aggregator.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

from occur.domains.health.domain_logic.metric_models import MetricKind

Strategy = Callable[[Mapping[str, Any]], "float | int | None"]

# Timestamp fields in priority order.
TIMESTAMP_FIELDS = ("time", "startTime", "endTime", "timestamp", "startDate")

_APPLE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S %z"


# ---------------------------------------------------------------------------
# Primitive coercion
# ---------------------------------------------------------------------------

def as_number(value: Any) -> float | int | None:
    """Return ``value`` as a finite int/float, or None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            parsed = float(value)
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a record timestamp into an aware datetime.

    Accepts datetimes (naive ones are taken as UTC), ISO 8601 strings with
    ``Z`` or an offset, Apple Health export strings
    (``2025-12-01 08:30:00 -0500``) and epoch milliseconds.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        try:
            parsed = datetime.strptime(text, _APPLE_DATE_FORMAT)
        except ValueError:
            return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves up (70.5 -> 71), unlike the banker's rounding of round()."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


# ---------------------------------------------------------------------------
# Extraction strategies
# ---------------------------------------------------------------------------

def _field(name: str) -> Strategy:
    def strategy(record: Mapping[str, Any]) -> float | int | None:
        return as_number(record.get(name))
    return strategy


def _first_sample(name: str) -> Strategy:
    def strategy(record: Mapping[str, Any]) -> float | int | None:
        samples = record.get("samples")
        if not isinstance(samples, (list, tuple)) or not samples:
            return None
        first = samples[0]
        if not isinstance(first, Mapping):
            return None
        return as_number(first.get(name))
    return strategy


_HEART_RATE_STRATEGIES: tuple[Strategy, ...] = (
    _field("beatsPerMinute"),
    _field("value"),
    _first_sample("beatsPerMinute"),
    _first_sample("value"),
)

_SPO2_STRATEGIES: tuple[Strategy, ...] = (
    _field("percentage"),
    _field("value"),
    _field("saturation"),
    _first_sample("value"),
)


def _first_match(record: Mapping[str, Any], strategies: Iterable[Strategy]) -> float | int | None:
    for strategy in strategies:
        value = strategy(record)
        if value is not None:
            return value
    return None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def normalize_spo2(value: float) -> float:
    """Bring an SpO2 reading to a fraction in [0, 1].

    ``96`` and ``0.96`` both become ``0.96``; a double-encoded ``9600`` is
    divided twice. Readings that are still above 1 after the first division
    are divided again and capped at 1.0, which cannot tell a corrupt 150%
    reading apart from a double-encoded one.
    """
    if value > 1.0:
        value = value / 100
        if value > 1.0:
            value = min(1.0, value / 100)
    return value


def sleep_duration_minutes(record: Mapping[str, Any]) -> float | None:
    """Session length in minutes, floored at 0. None without both bounds."""
    start = parse_timestamp(record.get("startTime"))
    end = parse_timestamp(record.get("endTime"))
    if start is None or end is None:
        return None
    return max(0.0, (end - start).total_seconds() / 60)


def extract_value(record: Mapping[str, Any] | None, metric: MetricKind) -> float | int | None:
    """Reduce one raw record to the scalar charted for ``metric``."""
    if record is None or not isinstance(record, Mapping):
        return None

    if metric is MetricKind.STEPS:
        count = as_number(record.get("count"))
        return 0 if count is None else count
    if metric is MetricKind.HEART_RATE:
        return _first_match(record, _HEART_RATE_STRATEGIES)
    if metric is MetricKind.SPO2:
        raw = _first_match(record, _SPO2_STRATEGIES)
        return None if raw is None else normalize_spo2(raw)
    if metric is MetricKind.SLEEP:
        return sleep_duration_minutes(record)
    return None


def extract_raw_spo2(record: Mapping[str, Any]) -> float | int | None:
    """SpO2 as the store reported it, before fraction normalization."""
    return _first_match(record, _SPO2_STRATEGIES)


def extract_timestamp(record: Mapping[str, Any] | None) -> datetime | None:
    """Representative timestamp: the first parseable of TIMESTAMP_FIELDS."""
    if record is None or not isinstance(record, Mapping):
        return None
    for name in TIMESTAMP_FIELDS:
        if record.get(name) is None:
            continue
        parsed = parse_timestamp(record[name])
        if parsed is not None:
            return parsed
    return None


# ---------------------------------------------------------------------------
# Display helpers
# ---------------------------------------------------------------------------

def total_sleep_minutes(sessions: Iterable[Mapping[str, Any]] | None) -> float:
    """Sum of positive session durations.

    Reads ``startTime``/``endTime`` and falls back to HealthKit's
    ``startDate``/``endDate``. Malformed or negative sessions are skipped.
    """
    total = 0.0
    for session in sessions or ():
        if not isinstance(session, Mapping):
            continue
        start = parse_timestamp(session.get("startTime") or session.get("startDate"))
        end = parse_timestamp(session.get("endTime") or session.get("endDate"))
        if start is None or end is None:
            continue
        minutes = (end - start).total_seconds() / 60
        if minutes > 0:
            total += minutes
    return total


def format_sleep_duration(total_minutes: float | None) -> str:
    """``450`` -> ``"7h 30m"``."""
    if total_minutes is None or not math.isfinite(total_minutes) or total_minutes < 0:
        return "0h 0m"
    hours = int(total_minutes // 60)
    minutes = int(total_minutes % 60)
    return f"{hours}h {minutes}m"


def format_spo2_value(fraction: float | None) -> str:
    """``0.97`` -> ``"97"``; ``"--"`` when there is no reading."""
    if fraction is None:
        return "--"
    return str(int(round_half_up(normalize_spo2(fraction) * 100)))
