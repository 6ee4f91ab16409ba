"""Time-bucketing aggregator — raw device records to chart points.

Buckets follow the period's granularity in the caller's timezone:

- Day   → hour of day, labelled ``"08"``
- Week  → calendar day, labelled ``"Mon"``
- Month → calendar day, labelled ``"15"``
- Year  → calendar month, labelled ``"Jan"``

Cumulative metrics (steps, sleep) are summed per bucket; rate metrics
(heart rate, SpO2) are averaged.
"""

from __future__ import annotations

import logging
import statistics
from collections import defaultdict
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone, tzinfo
from typing import Any

from occur.domains.health.domain_logic.metric_models import (
    MetricKind,
    NormalizedMetricPoint,
    Period,
)
from occur.domains.health.domain_logic.normalizer import (
    extract_timestamp,
    extract_value,
    round_half_up,
)

logger = logging.getLogger(__name__)

WEEKDAY_LABELS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")
MONTH_LABELS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

# SpO2 is charted as a fraction; keep three decimals (0.953).
_SPO2_DIGITS = 3


def bucket_start(
    moment: datetime, period: Period, tz: tzinfo | None = timezone.utc
) -> datetime:
    """Truncate ``moment`` (in ``tz``) to the start of its bucket.

    ``tz=None`` means the system local zone, with the daylight-saving offset
    of each moment rather than the current one.
    """
    local = moment.astimezone(tz)
    if period is Period.DAY:
        start = local.replace(minute=0, second=0, microsecond=0)
    elif period in (Period.WEEK, Period.MONTH):
        start = local.replace(hour=0, minute=0, second=0, microsecond=0)
    else:
        start = local.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if tz is None:
        # astimezone() yields a fixed offset; take the offset in force at the bucket start.
        start = start.replace(tzinfo=None).astimezone()
    return start


def format_bucket_label(start: datetime, period: Period) -> str:
    if period is Period.DAY:
        return f"{start.hour:02d}"
    if period is Period.WEEK:
        # isoweekday(): Monday=1 ... Sunday=7
        return WEEKDAY_LABELS[start.isoweekday() % 7]
    if period is Period.MONTH:
        return str(start.day)
    return MONTH_LABELS[start.month - 1]


def to_iso_utc(moment: datetime) -> str:
    """``2024-01-15T08:00:00.000Z``"""
    return (
        moment.astimezone(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def aggregate_values(values: list[float | int], metric: MetricKind) -> float | int:
    """Reduce one bucket's values (non-empty) with the metric's aggregation."""
    if metric.is_cumulative:
        return sum(values)
    mean = statistics.fmean(values)
    if metric is MetricKind.SPO2:
        return round_half_up(mean, _SPO2_DIGITS)
    return int(round_half_up(mean))


def to_chart_points(
    records: Iterable[Mapping[str, Any]] | None,
    period: Period,
    metric: MetricKind,
    *,
    tz: tzinfo | None = timezone.utc,
) -> list[NormalizedMetricPoint]:
    """Group raw records into period buckets and reduce each bucket.

    Args:
        records: Raw device-store records in platform-native shape.
        period: Chart period; fixes bucket granularity and labels.
        metric: Metric kind; fixes value extraction and aggregation.
        tz: Timezone the buckets are aligned to; None for the system zone.

    Returns:
        One point per bucket with at least one extractable value, in
        ascending timestamp order. Records without a usable timestamp are
        discarded.
    """
    buckets: dict[datetime, list[float | int]] = defaultdict(list)
    discarded = 0

    for record in records or ():
        moment = extract_timestamp(record)
        if moment is None:
            discarded += 1
            continue
        key = bucket_start(moment, period, tz)
        value = extract_value(record, metric)
        if value is None:
            discarded += 1
            continue
        buckets[key].append(value)

    if discarded:
        logger.debug("Discarded %d unextractable %s records", discarded, metric.value)

    points = [
        NormalizedMetricPoint(
            label=format_bucket_label(key, period),
            value=aggregate_values(values, metric),
            timestamp=to_iso_utc(key),
        )
        for key, values in sorted(buckets.items())
        if values
    ]
    return points
