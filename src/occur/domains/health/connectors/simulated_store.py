"""Simulated Health Connect store for development and testing.

All generated data represents a median healthy adult: 200–1200 steps per
waking hour, resting-range heart rate, SpO2 in the mid-to-high 90s and
roughly seven hours of sleep. Values are deterministic for a given seed and
timestamp, so repeated queries over the same range agree.
"""

from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone
from typing import Any

from occur.domains.health.domain_logic.normalizer import parse_timestamp

_ORIGIN = {"dataOrigin": {"packageName": "com.occur.simulated"}}

_WAKING_HOURS = range(7, 22)
_SPO2_EVERY_HOURS = 4


def _iso(moment: datetime) -> str:
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class SimulatedHealthConnectStore:
    """HealthConnectClient generating synthetic records on demand.

    ``available=False`` simulates a device without Health Connect; ``grant``
    controls whether permission requests succeed.
    """

    def __init__(self, seed: int = 7, *, available: bool = True, grant: bool = True) -> None:
        self._seed = seed
        self._available = available
        self._grant = grant

    async def initialize(self) -> bool:
        return self._available

    async def request_permission(
        self, permissions: list[dict[str, str]]
    ) -> list[dict[str, str]] | None:
        if not self._available or not self._grant:
            return []
        return [dict(p) for p in permissions]

    async def read_records(self, record_type: str, options: dict[str, Any]) -> dict[str, Any]:
        if not self._available:
            raise RuntimeError("Health Connect is not available on this device")

        time_filter = options.get("timeRangeFilter") or {}
        start = parse_timestamp(time_filter.get("startTime"))
        end = parse_timestamp(time_filter.get("endTime"))
        if start is None or end is None:
            raise ValueError("timeRangeFilter requires startTime and endTime")

        generators = {
            "Steps": self._steps,
            "HeartRate": self._heart_rate,
            "OxygenSaturation": self._oxygen_saturation,
            "SleepSession": self._sleep_sessions,
        }
        if record_type not in generators:
            raise ValueError(f"Unsupported record type: {record_type}")
        return {"records": generators[record_type](start, end)}

    # ------------------------------------------------------------------
    # Generators
    # ------------------------------------------------------------------

    def _rng(self, record_type: str, slot: datetime) -> random.Random:
        return random.Random(f"{self._seed}:{record_type}:{slot.isoformat()}")

    @staticmethod
    def _hours(start: datetime, end: datetime):
        slot = start.astimezone(timezone.utc).replace(minute=0, second=0, microsecond=0)
        if slot < start:
            slot += timedelta(hours=1)
        while slot <= end:
            yield slot
            slot += timedelta(hours=1)

    def _steps(self, start: datetime, end: datetime) -> list[dict[str, Any]]:
        records = []
        for slot in self._hours(start, end):
            if slot.hour not in _WAKING_HOURS:
                continue
            rng = self._rng("Steps", slot)
            records.append({
                "count": rng.randint(200, 1200),
                "startTime": _iso(slot),
                "endTime": _iso(slot + timedelta(hours=1)),
                "metadata": _ORIGIN,
            })
        return records

    def _heart_rate(self, start: datetime, end: datetime) -> list[dict[str, Any]]:
        records = []
        for slot in self._hours(start, end):
            rng = self._rng("HeartRate", slot)
            sample_time = slot + timedelta(minutes=rng.randint(0, 59))
            records.append({
                "startTime": _iso(slot),
                "endTime": _iso(slot + timedelta(hours=1)),
                "samples": [{"time": _iso(sample_time), "beatsPerMinute": rng.randint(58, 84)}],
                "metadata": _ORIGIN,
            })
        return records

    def _oxygen_saturation(self, start: datetime, end: datetime) -> list[dict[str, Any]]:
        records = []
        for slot in self._hours(start, end):
            if slot.hour % _SPO2_EVERY_HOURS:
                continue
            rng = self._rng("OxygenSaturation", slot)
            records.append({
                "time": _iso(slot),
                "percentage": round(rng.uniform(94.5, 99.0), 1),
                "metadata": _ORIGIN,
            })
        return records

    def _sleep_sessions(self, start: datetime, end: datetime) -> list[dict[str, Any]]:
        records = []
        day = (start - timedelta(days=1)).astimezone(timezone.utc).replace(
            hour=0, minute=0, second=0, microsecond=0
        )
        while day <= end:
            rng = self._rng("SleepSession", day)
            bedtime = day + timedelta(hours=23, minutes=rng.randint(0, 45))
            wake = day + timedelta(days=1, hours=6, minutes=30 + rng.randint(0, 40))
            if start <= bedtime <= end:
                records.append({
                    "startTime": _iso(bedtime),
                    "endTime": _iso(wake),
                    "metadata": _ORIGIN,
                })
            day += timedelta(days=1)
        return records
