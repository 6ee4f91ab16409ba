"""Tests for the simulated Health Connect store and the adapter factory."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from occur.domains.health.connectors import HealthConnectClient
from occur.domains.health.connectors.factory import create_health_adapter
from occur.domains.health.connectors.health_connect import READ_PERMISSIONS, HealthConnectAdapter
from occur.domains.health.connectors.healthkit import HealthKitAdapter
from occur.domains.health.connectors.simulated_store import SimulatedHealthConnectStore
from occur.domains.health.domain_logic.aggregator import to_chart_points
from occur.domains.health.domain_logic.metric_models import MetricKind, Period


def _run(coro):
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


START = datetime(2024, 1, 15, tzinfo=timezone.utc)
END = datetime(2024, 1, 15, 23, 59, 59, tzinfo=timezone.utc)


def _window(start=START, end=END):
    return {
        "timeRangeFilter": {
            "operator": "between",
            "startTime": start.isoformat(),
            "endTime": end.isoformat(),
        }
    }


class TestSimulatedStore:
    def test_satisfies_protocol(self):
        assert isinstance(SimulatedHealthConnectStore(), HealthConnectClient)

    def test_deterministic_for_seed(self):
        a = _run(SimulatedHealthConnectStore(seed=3).read_records("Steps", _window()))
        b = _run(SimulatedHealthConnectStore(seed=3).read_records("Steps", _window()))
        c = _run(SimulatedHealthConnectStore(seed=4).read_records("Steps", _window()))
        assert a == b
        assert a != c

    def test_steps_only_in_waking_hours(self):
        records = _run(SimulatedHealthConnectStore().read_records("Steps", _window()))["records"]
        hours = {int(r["startTime"][11:13]) for r in records}
        assert hours == set(range(7, 22))
        assert all(200 <= r["count"] <= 1200 for r in records)

    def test_heart_rate_has_samples(self):
        records = _run(SimulatedHealthConnectStore().read_records("HeartRate", _window()))["records"]
        assert len(records) == 24
        assert all(58 <= r["samples"][0]["beatsPerMinute"] <= 84 for r in records)

    def test_spo2_is_percentage(self):
        records = _run(
            SimulatedHealthConnectStore().read_records("OxygenSaturation", _window())
        )["records"]
        assert len(records) == 6
        assert all(94.5 <= r["percentage"] <= 99.0 for r in records)

    def test_sleep_session_starts_in_window(self):
        start = datetime(2024, 1, 14, 20, tzinfo=timezone.utc)
        end = datetime(2024, 1, 15, 12, tzinfo=timezone.utc)
        records = _run(
            SimulatedHealthConnectStore().read_records("SleepSession", _window(start, end))
        )["records"]
        assert len(records) == 1
        assert records[0]["startTime"].startswith("2024-01-14T23:")
        assert records[0]["endTime"].startswith("2024-01-15T0")

    def test_unavailable_store(self):
        store = SimulatedHealthConnectStore(available=False)
        assert _run(store.initialize()) is False
        assert _run(store.request_permission(READ_PERMISSIONS)) == []
        with pytest.raises(RuntimeError):
            _run(store.read_records("Steps", _window()))

    def test_denied_permissions(self):
        store = SimulatedHealthConnectStore(grant=False)
        assert _run(store.request_permission(READ_PERMISSIONS)) == []

    def test_unknown_record_type(self):
        with pytest.raises(ValueError):
            _run(SimulatedHealthConnectStore().read_records("Weight", _window()))

    def test_missing_time_filter(self):
        with pytest.raises(ValueError):
            _run(SimulatedHealthConnectStore().read_records("Steps", {}))

    def test_week_of_steps_charts_one_point_per_day(self):
        adapter = HealthConnectAdapter(SimulatedHealthConnectStore(), tz=timezone.utc)
        records = _run(adapter.fetch_steps_data(START - timedelta(days=6), END))
        points = to_chart_points(records, Period.WEEK, MetricKind.STEPS)
        assert len(points) == 7
        assert all(p.value > 0 for p in points)


class TestFactory:
    def test_android_uses_simulated_store_by_default(self):
        adapter = create_health_adapter("android")
        assert isinstance(adapter, HealthConnectAdapter)
        assert adapter.platform == "android"
        assert _run(adapter.init()) is True

    def test_ios_adapter(self):
        adapter = create_health_adapter("ios", apple_health_export_path="/nonexistent/export.xml")
        assert isinstance(adapter, HealthKitAdapter)
        # Missing export surfaces as an unavailable store, not an exception.
        assert _run(adapter.init()) is False

    def test_explicit_client(self):
        store = SimulatedHealthConnectStore(available=False)
        adapter = create_health_adapter("android", client=store)
        assert _run(adapter.init()) is False

    def test_unknown_platform(self):
        with pytest.raises(ValueError, match="Unknown health platform"):
            create_health_adapter("windows")
