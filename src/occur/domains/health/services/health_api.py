"""Health data endpoints of the backend REST API."""

from __future__ import annotations

from typing import Any

from occur.core.api.client import API_PREFIX, BackendClient, BackendResponseError

GRAPH_DATA_PATH = f"{API_PREFIX}/health_data/health/graph-data"
SUMMARY_PATH = f"{API_PREFIX}/health_data/health/summary"
SAVE_PATH = f"{API_PREFIX}/health_data/health/save"
HEALTH_GOALS_PATH = f"{API_PREFIX}/user/health-goals"

UPLOAD_METRICS = ("steps", "heartRate", "spo2", "sleep")


class HealthDataAPI:
    """Thin wrapper over the health_data endpoints. Errors propagate as
    ``BackendClientError`` subclasses; callers decide how to degrade."""

    def __init__(self, client: BackendClient) -> None:
        self._client = client

    async def get_graph_data(self, metric: str, mode: str) -> list[dict[str, Any]]:
        data = await self._client.get(GRAPH_DATA_PATH, params={"metric": metric, "mode": mode})
        if data is None:
            return []
        if not isinstance(data, dict):
            raise BackendResponseError(
                f"Expected JSON object from graph-data, got {type(data).__name__}"
            )
        graph = data.get("graph") or []
        if not isinstance(graph, list):
            raise BackendResponseError("graph-data 'graph' is not a list")
        return graph

    async def get_summary(self, metric: str, mode: str) -> Any:
        data = await self._client.get(SUMMARY_PATH, params={"metric": metric, "mode": mode})
        if isinstance(data, dict):
            return data.get("summary")
        return None

    async def save_health_data(self, health_data: dict[str, dict[str, float]]) -> Any:
        """POST the per-metric ``{iso_timestamp: value}`` mappings.

        Missing metrics are sent as empty mappings.
        """
        payload = {metric: dict(health_data.get(metric) or {}) for metric in UPLOAD_METRICS}
        return await self._client.post(SAVE_PATH, json=payload)

    async def get_health_goals(self) -> Any:
        return await self._client.get(HEALTH_GOALS_PATH)

    async def update_health_goals(self, goals: dict[str, Any]) -> Any:
        """PUT the full goals object; the backend replaces what it stores."""
        return await self._client.put(HEALTH_GOALS_PATH, json=goals)
