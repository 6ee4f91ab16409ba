"""MCP tools for health metric charts and device sync.

Chart tools never fail: a metric with no data on either source returns an
empty ``points`` list, which clients render as "No data available".
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from fastmcp import Context, FastMCP

from occur.core.api.client import BackendClientError

if TYPE_CHECKING:
    from occur.domains.health.services.init_service import HealthInitService
    from occur.domains.health.services.metric_service import HealthMetricService

logger = logging.getLogger(__name__)


def register_health_metric_tools(
    mcp: FastMCP,
    metric_service: HealthMetricService,
    init_service: HealthInitService,
) -> None:
    """Register health metric and sync tools on the MCP server."""

    @mcp.tool
    async def get_metric_data(ctx: Context, metric: str, period: str = "Day") -> str:
        """Chart points for a health metric over a period.

        Device-store data is used when available; otherwise the backend
        mirror is queried.

        Args:
            metric: One of 'steps', 'heartRate', 'spo2', 'sleep' ('mood' and
                'calories' are accepted but have no data source).
            period: 'Day', 'Week', 'Month' or 'Year'.
        """
        # First call connects to the store and schedules the throttled initial upload.
        await init_service.initialize_health_services()
        points = await metric_service.get_metric_data(metric, period)
        logger.info("get_metric_data %s/%s -> %d points", metric, period, len(points))
        return json.dumps({
            "metric": metric,
            "period": period,
            "points": [p.to_dict() for p in points],
        })

    @mcp.tool
    async def get_metric_summary(ctx: Context, metric: str, period: str = "Day") -> str:
        """Backend summary for a health metric over a period.

        Args:
            metric: Metric name, e.g. 'steps'.
            period: 'Day', 'Week', 'Month' or 'Year'.
        """
        summary = await metric_service.get_metric_summary(metric, period)
        return json.dumps({"metric": metric, "period": period, "summary": summary})

    @mcp.tool
    async def get_health_goals(ctx: Context) -> str:
        """The user's health goals as stored on the backend."""
        try:
            goals = await metric_service.get_health_goals()
        except BackendClientError as exc:
            logger.error("Failed to fetch health goals: %s", exc)
            return json.dumps({"status": "error", "message": str(exc)})
        return json.dumps({"goals": goals})

    @mcp.tool
    async def update_health_goals(ctx: Context, goals: dict[str, Any]) -> str:
        """Replace the user's health goals.

        Args:
            goals: Complete goals object, e.g. {"steps": 10000, "sleep": 480}.
        """
        try:
            result = await metric_service.update_health_goals(goals)
        except BackendClientError as exc:
            logger.error("Failed to update health goals: %s", exc)
            return json.dumps({"status": "error", "message": str(exc)})
        return json.dumps({"status": "updated", "goals": result})

    @mcp.tool
    async def health_store_status(ctx: Context) -> str:
        """Whether the device health store is available and readable."""
        return json.dumps(await init_service.get_health_store_status())

    @mcp.tool
    async def request_health_permissions(ctx: Context) -> str:
        """Request read access to steps, heart rate, SpO2 and sleep, then sync."""
        return json.dumps(await init_service.request_permissions_and_sync())

    @mcp.tool
    async def sync_health_data(ctx: Context) -> str:
        """Upload recent device data to the backend if the last upload is stale."""
        uploaded = await init_service.sync_health_data_if_needed()
        return json.dumps({"status": "uploaded" if uploaded else "skipped"})
