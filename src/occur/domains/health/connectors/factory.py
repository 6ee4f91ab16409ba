"""Selects the platform adapter once at startup."""

from __future__ import annotations

import logging
from datetime import tzinfo
from typing import Any

from occur.domains.health.connectors import HealthAdapter

logger = logging.getLogger(__name__)


def create_health_adapter(
    platform: str,
    *,
    client: Any = None,
    apple_health_export_path: str = "",
    simulated_seed: int = 7,
    tz: tzinfo | None = None,
) -> HealthAdapter:
    """Factory function to create a HealthAdapter by platform.

    Args:
        platform: "android" (Health Connect) or "ios" (HealthKit).
        client: Store client to wrap. Defaults to the simulated Health
            Connect store on Android and the Apple Health export on iOS.
        apple_health_export_path: export.xml used by the default iOS client.
        simulated_seed: Seed for the default Android client.
        tz: Timezone for "today" windows (system local when None).

    Returns:
        A HealthAdapter instance.
    """
    if platform == "android":
        from occur.domains.health.connectors.health_connect import HealthConnectAdapter

        if client is None:
            from occur.domains.health.connectors.simulated_store import (
                SimulatedHealthConnectStore,
            )

            client = SimulatedHealthConnectStore(seed=simulated_seed)
            logger.info("Using simulated Health Connect store (seed=%d)", simulated_seed)
        return HealthConnectAdapter(client, tz=tz)
    elif platform == "ios":
        from occur.domains.health.connectors.healthkit import HealthKitAdapter

        if client is None:
            from occur.domains.health.connectors.apple_health_export import (
                AppleHealthExportStore,
            )

            client = AppleHealthExportStore(apple_health_export_path)
            logger.info("Using Apple Health export at %r", apple_health_export_path)
        return HealthKitAdapter(client, tz=tz)
    else:
        raise ValueError(f"Unknown health platform: {platform}")
