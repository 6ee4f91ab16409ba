"""Health data connectors — abstraction layer over the platform health store."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from occur.domains.health.domain_logic.metric_models import (
    MetricKind,
    PermissionResult,
    RawHealthRecord,
)

# Record types read from the store, in Health Connect naming.
SUPPORTED_RECORD_TYPES = ("Steps", "HeartRate", "OxygenSaturation", "SleepSession")


@runtime_checkable
class HealthAdapter(Protocol):
    """Platform health store access with one contract for Android and iOS.

    Services call these methods without knowing which store is underneath.
    Fetch methods return raw records in platform-native shape and never
    raise: any store failure degrades to an empty list.
    """

    @property
    def platform(self) -> str:
        """'android' or 'ios'."""
        ...

    async def init(self) -> bool:
        """Connect to the store. False (never an exception) when unavailable."""
        ...

    async def request_all_permissions(self) -> PermissionResult | None:
        """Request read access for steps, heart rate, SpO2 and sleep."""
        ...

    async def check_all_permissions(self) -> bool:
        ...

    async def fetch_steps_data(self, start: datetime, end: datetime) -> list[RawHealthRecord]:
        ...

    async def fetch_heart_rate_data(self, start: datetime, end: datetime) -> list[RawHealthRecord]:
        ...

    async def fetch_oxygen_saturation_data(
        self, start: datetime, end: datetime
    ) -> list[RawHealthRecord]:
        ...

    async def fetch_sleep_session_data(
        self, start: datetime, end: datetime
    ) -> list[RawHealthRecord]:
        ...

    async def fetch_metric(
        self, metric: MetricKind, start: datetime, end: datetime
    ) -> list[RawHealthRecord]:
        """Dispatch to the fetch method for ``metric``; [] for unsupported kinds."""
        ...

    async def get_today_steps(self) -> list[RawHealthRecord]:
        ...

    async def get_weekly_steps(self) -> list[RawHealthRecord]:
        ...

    async def get_today_heart_rate(self) -> list[RawHealthRecord]:
        ...

    async def get_today_oxygen_saturation(self) -> list[RawHealthRecord]:
        ...

    async def get_today_sleep_data(self) -> list[RawHealthRecord]:
        ...


# ---------------------------------------------------------------------------
# Store capabilities consumed by the adapters
# ---------------------------------------------------------------------------

@runtime_checkable
class HealthConnectClient(Protocol):
    """The Android Health Connect surface the adapter relies on."""

    async def initialize(self) -> bool:
        ...

    async def request_permission(
        self, permissions: list[dict[str, str]]
    ) -> PermissionResult | None:
        ...

    async def read_records(self, record_type: str, options: dict[str, Any]) -> dict[str, Any]:
        """Return ``{"records": [...]}`` for a ``timeRangeFilter`` query."""
        ...


@runtime_checkable
class HealthKitClient(Protocol):
    """The iOS HealthKit surface the adapter relies on.

    Sample queries take ``{"startDate": iso, "endDate": iso}`` and return
    HealthKit samples (``{"value", "startDate", "endDate", ...}``).
    """

    async def init_health_kit(self, permissions: dict[str, Any]) -> None:
        """Raise if HealthKit is unavailable or authorization fails."""
        ...

    async def get_step_samples(self, options: dict[str, Any]) -> list[dict[str, Any]]:
        ...

    async def get_heart_rate_samples(self, options: dict[str, Any]) -> list[dict[str, Any]]:
        ...

    async def get_oxygen_saturation_samples(
        self, options: dict[str, Any]
    ) -> list[dict[str, Any]]:
        ...

    async def get_sleep_samples(self, options: dict[str, Any]) -> list[dict[str, Any]]:
        ...
