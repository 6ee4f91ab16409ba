"""Startup and periodic health-store orchestration."""

from __future__ import annotations

import logging
from typing import Any

from occur.core.tasks.background import BackgroundExecutor
from occur.domains.health.connectors import HealthAdapter
from occur.domains.health.services.sync import HealthSyncUploader

logger = logging.getLogger(__name__)


class HealthInitService:
    """Connects to the health store at startup and keeps the backend in sync.

    A second ``initialize_health_services`` call while one is in flight
    returns the current state instead of starting another. The initial
    upload runs on ``executor`` so startup never waits on the backend.
    """

    def __init__(
        self,
        adapter: HealthAdapter,
        uploader: HealthSyncUploader,
        executor: BackgroundExecutor,
    ) -> None:
        self._adapter = adapter
        self._uploader = uploader
        self._executor = executor
        self.is_initialized = False
        self._initializing = False

    async def initialize_health_services(self) -> bool:
        """Init the store and, if permissions are already granted, schedule
        a throttled initial upload.

        A missing store is not a failure: the app runs on backend data.
        """
        if self.is_initialized or self._initializing:
            return self.is_initialized

        self._initializing = True
        try:
            logger.info("Initializing health device services")
            if not await self._adapter.init():
                logger.info("Health device not available on this device")
                self.is_initialized = True
                return True

            if not await self._adapter.check_all_permissions():
                logger.info("Health device permissions not granted")
            elif self._uploader.should_upload_health_device_data():
                self._executor.spawn(
                    self._uploader.upload_health_device_data,
                    name="health-initial-upload",
                )
                logger.info("Initial health device upload scheduled")
            else:
                logger.info("Health device data uploaded recently; skipping")

            self.is_initialized = True
            logger.info("Health services initialization completed")
            return True
        except Exception:
            logger.exception("Failed to initialize health services")
            self.is_initialized = False
            return False
        finally:
            self._initializing = False

    async def request_permissions_and_sync(self) -> dict[str, Any]:
        """Ask for permissions, then upload whatever is on the device."""
        try:
            if not await self._adapter.request_all_permissions():
                logger.info("Health device permissions denied")
                return {"success": False, "message": "Health data permissions denied"}

            logger.info("Health device permissions granted")
            if await self._uploader.upload_health_device_data():
                return {"success": True, "message": "Health data permissions granted and synced"}
            return {"success": True, "message": "Permissions granted, but no data to sync yet"}
        except Exception:
            logger.exception("Error requesting health permissions")
            return {"success": False, "message": "Failed to request permissions"}

    async def get_health_store_status(self) -> dict[str, Any]:
        try:
            if not await self._adapter.init():
                return {
                    "available": False,
                    "has_permissions": False,
                    "message": "Health device not available on this device",
                }
            has_permissions = await self._adapter.check_all_permissions()
        except Exception:
            logger.exception("Error checking health device status")
            return {
                "available": False,
                "has_permissions": False,
                "message": "Error checking health device status",
            }

        return {
            "available": True,
            "has_permissions": has_permissions,
            "message": (
                "Health device available and permissions granted"
                if has_permissions
                else "Health device available but permissions needed"
            ),
        }

    async def sync_health_data_if_needed(self) -> bool:
        """Periodic hook. True only when an upload ran and succeeded."""
        try:
            status = await self.get_health_store_status()
            if not (status["available"] and status["has_permissions"]):
                return False
            if not self._uploader.should_upload_health_device_data():
                return False
            return await self._uploader.upload_health_device_data()
        except Exception:
            logger.exception("Error in periodic health sync")
            return False
