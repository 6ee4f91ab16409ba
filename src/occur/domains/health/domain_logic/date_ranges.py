"""Fetch windows for device-store queries.

All functions take ``now`` as an aware datetime in the user's timezone, so
"midnight" is local midnight.
"""

from __future__ import annotations

from datetime import datetime, time, timedelta, tzinfo

from occur.domains.health.domain_logic.metric_models import Period

SYNC_LOOKBACK = timedelta(days=7)

# Sleep sessions commonly start before midnight.
_SLEEP_WINDOW_START = time(20, 0)


def local_now(tz: tzinfo | None = None) -> datetime:
    """Current time in ``tz``, or in the system local zone when None."""
    if tz is None:
        return datetime.now().astimezone()
    return datetime.now(tz)


def start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=23, minute=59, second=59, microsecond=999000)


def today_bounds(now: datetime) -> tuple[datetime, datetime]:
    """Local midnight to 23:59:59.999 of the same day."""
    return start_of_day(now), end_of_day(now)


def weekly_bounds(now: datetime) -> tuple[datetime, datetime]:
    return now - timedelta(days=7), now


def sleep_bounds(now: datetime) -> tuple[datetime, datetime]:
    """8 PM the previous day to the end of today."""
    yesterday = now - timedelta(days=1)
    start = yesterday.replace(
        hour=_SLEEP_WINDOW_START.hour,
        minute=_SLEEP_WINDOW_START.minute,
        second=0,
        microsecond=0,
    )
    return start, end_of_day(now)


def period_range(period: Period, now: datetime) -> tuple[datetime, datetime]:
    """Lookback window for a chart period, always ending at ``now``."""
    if period is Period.DAY:
        return start_of_day(now), now
    return now - timedelta(days=period.lookback_days), now
