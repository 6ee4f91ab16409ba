"""Android adapter — reads records through a Health Connect client."""

from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from typing import Any

from occur.domains.health.connectors import SUPPORTED_RECORD_TYPES, HealthConnectClient
from occur.domains.health.connectors.base import BaseHealthAdapter, to_iso, validate_range
from occur.domains.health.domain_logic.metric_models import PermissionResult, RawHealthRecord

logger = logging.getLogger(__name__)

READ_PERMISSIONS: list[dict[str, str]] = [
    {"accessType": "read", "recordType": record_type}
    for record_type in SUPPORTED_RECORD_TYPES
]


class HealthConnectAdapter(BaseHealthAdapter):
    """HealthAdapter backed by Health Connect.

    Usage::

        adapter = HealthConnectAdapter(health_connect_client)
        if await adapter.init():
            records = await adapter.get_today_steps()
    """

    def __init__(self, client: HealthConnectClient, *, tz: tzinfo | None = None) -> None:
        super().__init__(tz=tz)
        self._client = client
        self._initialized = False

    @property
    def platform(self) -> str:
        return "android"

    async def init(self) -> bool:
        if self._initialized:
            return True
        try:
            self._initialized = bool(await self._client.initialize())
        except Exception:
            logger.exception("Error initializing Health Connect")
            return False
        logger.info("Health Connect initialization status: %s", self._initialized)
        return self._initialized

    async def request_all_permissions(self) -> PermissionResult | None:
        try:
            return await self._client.request_permission([dict(p) for p in READ_PERMISSIONS])
        except Exception:
            logger.exception("Error requesting Health Connect permissions")
            return None

    async def check_all_permissions(self) -> bool:
        # Health Connect offers no silent status query here: re-request and
        # treat a truthy grant as "has permissions".
        return bool(await self.request_all_permissions())

    async def fetch_steps_data(self, start: datetime, end: datetime) -> list[RawHealthRecord]:
        return await self._read_records("Steps", start, end)

    async def fetch_heart_rate_data(self, start: datetime, end: datetime) -> list[RawHealthRecord]:
        return await self._read_records("HeartRate", start, end)

    async def fetch_oxygen_saturation_data(
        self, start: datetime, end: datetime
    ) -> list[RawHealthRecord]:
        return await self._read_records("OxygenSaturation", start, end)

    async def fetch_sleep_session_data(
        self, start: datetime, end: datetime
    ) -> list[RawHealthRecord]:
        return await self._read_records("SleepSession", start, end)

    async def _read_records(
        self, record_type: str, start: datetime, end: datetime
    ) -> list[RawHealthRecord]:
        try:
            validate_range(start, end)
            result = await self._client.read_records(
                record_type,
                {
                    "timeRangeFilter": {
                        "operator": "between",
                        "startTime": to_iso(start),
                        "endTime": to_iso(end),
                    }
                },
            )
        except Exception:
            logger.exception("Error fetching %s records", record_type)
            return []

        records = (result or {}).get("records") or []
        for record in records:
            logger.debug("%s record from: %s", record_type, _data_origin(record))
        return list(records)


def _data_origin(record: Any) -> str:
    if not isinstance(record, dict):
        return "Unknown"
    metadata = record.get("metadata") or {}
    origin = metadata.get("dataOrigin") or {}
    if isinstance(origin, dict):
        return origin.get("packageName") or "Unknown"
    return str(origin)
