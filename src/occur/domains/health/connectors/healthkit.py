"""iOS adapter — reads samples through a HealthKit client.

HealthKit samples are ``{value, startDate, endDate}``. Two record kinds are
reshaped so they carry the fields their kind is defined by: step samples
gain ``count`` and sleep samples gain ``startTime``/``endTime``. Everything
else is returned as the store reported it.

Sleep samples are limited to time asleep. In-bed and awake samples overlap
the asleep ones and would be counted twice when a night is summed.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, tzinfo
from typing import Any

from occur.domains.health.connectors import HealthKitClient
from occur.domains.health.connectors.base import BaseHealthAdapter, to_iso, validate_range
from occur.domains.health.domain_logic.metric_models import PermissionResult, RawHealthRecord

logger = logging.getLogger(__name__)

HEALTHKIT_READ_PERMISSIONS = ("StepCount", "HeartRate", "OxygenSaturation", "SleepAnalysis")

# HealthKit permission name -> Health Connect record type
_GRANTED_RECORD_TYPES = {
    "StepCount": "Steps",
    "HeartRate": "HeartRate",
    "OxygenSaturation": "OxygenSaturation",
    "SleepAnalysis": "SleepSession",
}

# Sleep categories that are not time asleep, as export identifiers and as
# the short names the native bridge reports; compared upper-cased.
_NOT_ASLEEP = frozenset({
    "HKCATEGORYVALUESLEEPANALYSISINBED",
    "HKCATEGORYVALUESLEEPANALYSISAWAKE",
    "INBED",
    "AWAKE",
})


def is_asleep_sample(sample: dict[str, Any]) -> bool:
    """False for in-bed and awake samples. Samples without a category count as asleep."""
    value = sample.get("value")
    return not (isinstance(value, str) and value.upper() in _NOT_ASLEEP)


class HealthKitAdapter(BaseHealthAdapter):
    """HealthAdapter backed by HealthKit.

    HealthKit asks for authorization during ``init``; there is no later
    per-permission introspection, so ``check_all_permissions`` reports
    whether ``init`` succeeded.
    """

    def __init__(self, client: HealthKitClient, *, tz: tzinfo | None = None) -> None:
        super().__init__(tz=tz)
        self._client = client
        self._initialized = False

    @property
    def platform(self) -> str:
        return "ios"

    async def init(self) -> bool:
        if self._initialized:
            return True
        try:
            await self._client.init_health_kit(
                {"permissions": {"read": list(HEALTHKIT_READ_PERMISSIONS)}}
            )
        except Exception:
            logger.exception("HealthKit init error")
            return False
        self._initialized = True
        return True

    async def request_all_permissions(self) -> PermissionResult | None:
        if not await self.init():
            return None
        return [
            {"accessType": "read", "recordType": _GRANTED_RECORD_TYPES[name]}
            for name in HEALTHKIT_READ_PERMISSIONS
        ]

    async def check_all_permissions(self) -> bool:
        return self._initialized

    async def fetch_steps_data(self, start: datetime, end: datetime) -> list[RawHealthRecord]:
        samples = await self._query("steps", self._client.get_step_samples, start, end)
        return [{**s, "count": s.get("value", 0)} for s in samples]

    async def fetch_heart_rate_data(self, start: datetime, end: datetime) -> list[RawHealthRecord]:
        return await self._query("heart rate", self._client.get_heart_rate_samples, start, end)

    async def fetch_oxygen_saturation_data(
        self, start: datetime, end: datetime
    ) -> list[RawHealthRecord]:
        return await self._query(
            "oxygen saturation", self._client.get_oxygen_saturation_samples, start, end
        )

    async def fetch_sleep_session_data(
        self, start: datetime, end: datetime
    ) -> list[RawHealthRecord]:
        samples = await self._query("sleep", self._client.get_sleep_samples, start, end)
        return [
            {**s, "startTime": s.get("startDate"), "endTime": s.get("endDate")}
            for s in samples
            if is_asleep_sample(s)
        ]

    async def _query(
        self,
        label: str,
        query: Callable[[dict[str, Any]], Awaitable[list[dict[str, Any]]]],
        start: datetime,
        end: datetime,
    ) -> list[dict[str, Any]]:
        try:
            validate_range(start, end)
            samples = await query({"startDate": to_iso(start), "endDate": to_iso(end)})
        except Exception:
            logger.exception("Error fetching HealthKit %s samples", label)
            return []
        return [s for s in samples or [] if isinstance(s, dict)]
