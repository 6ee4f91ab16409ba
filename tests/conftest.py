"""Shared test fixtures for Occur Health tests."""

from __future__ import annotations

import json
import os
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any

import pytest

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STATE_DB_PATH", ":memory:")
    monkeypatch.setenv("BACKEND_TOKEN", "")
    monkeypatch.setenv("ENCRYPTION_KEY", "")
    monkeypatch.setenv("DISPLAY_TIMEZONE", "UTC")
    monkeypatch.setenv("HEALTH_PLATFORM", "android")

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

import httpx  # noqa: E402

from occur.core.api.auth import StaticTokenProvider  # noqa: E402
from occur.core.api.client import BackendClient  # noqa: E402
from occur.core.storage.state_store import InMemoryThrottleStore  # noqa: E402
from occur.domains.health.domain_logic.metric_models import MetricKind  # noqa: E402

BACKEND_URL = "http://backend.test"


# ---------------------------------------------------------------------------
# Fake platform health adapter
# ---------------------------------------------------------------------------

class FakeHealthAdapter:
    """HealthAdapter returning canned records and recording every fetch.

    ``fail`` makes every fetch raise, to exercise callers' own guards (the
    real adapters never raise from a fetch).
    """

    def __init__(
        self,
        records: dict[MetricKind, list[dict[str, Any]]] | None = None,
        *,
        available: bool = True,
        permissions: bool = True,
        fail: bool = False,
    ) -> None:
        self.records = dict(records or {})
        self.available = available
        self.permissions = permissions
        self.fail = fail
        self.fail_metrics: set[MetricKind] = set()
        self.fetch_calls: list[tuple[MetricKind, datetime, datetime]] = []
        self.init_calls = 0
        self.permission_requests = 0

    @property
    def platform(self) -> str:
        return "android"

    async def init(self) -> bool:
        self.init_calls += 1
        return self.available

    async def request_all_permissions(self):
        self.permission_requests += 1
        if not self.permissions:
            return None
        return [{"accessType": "read", "recordType": "Steps"}]

    async def check_all_permissions(self) -> bool:
        return self.permissions

    async def fetch_metric(self, metric, start, end):
        self.fetch_calls.append((metric, start, end))
        if self.fail or metric in self.fail_metrics:
            raise RuntimeError(f"store exploded reading {metric.value}")
        return [dict(r) for r in self.records.get(metric, [])]

    async def fetch_steps_data(self, start, end):
        return await self.fetch_metric(MetricKind.STEPS, start, end)

    async def fetch_heart_rate_data(self, start, end):
        return await self.fetch_metric(MetricKind.HEART_RATE, start, end)

    async def fetch_oxygen_saturation_data(self, start, end):
        return await self.fetch_metric(MetricKind.SPO2, start, end)

    async def fetch_sleep_session_data(self, start, end):
        return await self.fetch_metric(MetricKind.SLEEP, start, end)


@pytest.fixture
def fake_adapter() -> FakeHealthAdapter:
    return FakeHealthAdapter()


# ---------------------------------------------------------------------------
# Fake backend (httpx.MockTransport)
# ---------------------------------------------------------------------------

class RecordingBackend:
    """Canned backend routes keyed by (method, path); records every request.

    Unrouted requests get a 404. A route set to an exception raises it from
    the transport (e.g. ``httpx.ConnectError``).
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Any] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, body: Any = None, *, status: int = 200) -> None:
        self.routes[(method.upper(), path)] = (status, body)

    def fail(self, method: str, path: str, exc: Exception) -> None:
        self.routes[(method.upper(), path)] = exc

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"detail": "Not Found"})
        if isinstance(route, Exception):
            raise route
        status, body = route
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method.upper() and r.url.path == path
        ]

    def json_body(self, request: httpx.Request) -> Any:
        return json.loads(request.content)

    def client(self, token: str | None = "test-token") -> BackendClient:
        return BackendClient(
            BACKEND_URL,
            token_provider=StaticTokenProvider(token),
            transport=httpx.MockTransport(self.handler),
        )


@pytest.fixture
def backend() -> RecordingBackend:
    return RecordingBackend()


@pytest.fixture
def backend_client(backend: RecordingBackend) -> BackendClient:
    return backend.client()


# ---------------------------------------------------------------------------
# Background executor and throttle store
# ---------------------------------------------------------------------------

class RecordingExecutor:
    """BackgroundExecutor that only records what was spawned."""

    def __init__(self) -> None:
        self.spawned: list[tuple[Any, str]] = []

    def spawn(self, factory, *, name: str = "") -> None:
        self.spawned.append((factory, name))

    async def run_all(self) -> list[Any]:
        results = [await factory() for factory, _ in self.spawned]
        self.spawned.clear()
        return results


@pytest.fixture
def executor() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture
def throttle_store() -> InMemoryThrottleStore:
    return InMemoryThrottleStore()


# ---------------------------------------------------------------------------
# In-memory storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def local_db():
    """Create an in-memory LocalStateDatabase for testing."""
    from occur.core.storage.database import LocalStateDatabase

    db = LocalStateDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def kv_store(local_db):
    from occur.core.storage.state_store import KeyValueStore

    return KeyValueStore(local_db)


@pytest.fixture
def field_encryptor():
    """Create a FieldEncryptor with a test key."""
    from occur.core.storage.encryption import FieldEncryptor

    return FieldEncryptor(FieldEncryptor.generate_key())


# ---------------------------------------------------------------------------
# System timezone
# ---------------------------------------------------------------------------

@pytest.fixture
def new_york_system_tz():
    """Make America/New_York the process-local zone for one test."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset() is not available on this platform")
    previous = os.environ.get("TZ")
    os.environ["TZ"] = "America/New_York"
    time.tzset()
    yield
    if previous is None:
        os.environ.pop("TZ", None)
    else:
        os.environ["TZ"] = previous
    time.tzset()
