"""Occur Health MCP Server — application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery (`fastmcp run .../app.py:mcp`)
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import timedelta, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastmcp import FastMCP

from occur.core.api.auth import StaticTokenProvider, StoredTokenProvider, TokenProvider
from occur.core.api.client import BackendClient
from occur.core.config.settings import Settings, get_settings
from occur.core.storage.database import DatabaseError, LocalStateDatabase
from occur.core.storage.encryption import EncryptionError, FieldEncryptor
from occur.core.storage.state_store import (
    InMemoryThrottleStore,
    KeyValueStore,
    SqliteThrottleStore,
    ThrottleStore,
)
from occur.core.tasks.background import AsyncioBackgroundExecutor, BackgroundExecutor
from occur.domains.chat.service import ChatService
from occur.domains.chat.tools.chat_tools import register_chat_tools
from occur.domains.health.connectors import HealthAdapter
from occur.domains.health.connectors.factory import create_health_adapter
from occur.domains.health.services.health_api import HealthDataAPI
from occur.domains.health.services.init_service import HealthInitService
from occur.domains.health.services.metric_service import HealthMetricService
from occur.domains.health.services.sync import HealthSyncUploader
from occur.domains.health.tools.health_metric_tools import register_health_metric_tools
from occur.domains.journal.service import JournalService
from occur.domains.journal.tools.journal_tools import register_journal_tools

logger = logging.getLogger(__name__)

SERVER_NAME = "Occur Health"
SERVER_VERSION = "0.1.0"


def _resolve_timezone(name: str) -> tzinfo | None:
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown DISPLAY_TIMEZONE %r; using system local time", name)
        return None


def _open_local_state(settings: Settings) -> KeyValueStore | None:
    try:
        db = LocalStateDatabase(settings.state_db_path)
        db.initialize()
    except (DatabaseError, sqlite3.Error, OSError) as exc:
        logger.error("Failed to open local state at %s: %s", settings.state_db_path, exc)
        logger.warning("Continuing without persistence; upload marker kept in memory")
        return None
    logger.info(
        "Local state initialized: %s (schema v%d)",
        settings.state_db_path,
        db.get_schema_version(),
    )
    return KeyValueStore(db)


def _token_provider(settings: Settings, store: KeyValueStore | None) -> TokenProvider:
    if settings.backend_token or store is None:
        return StaticTokenProvider(settings.backend_token)

    encryptor: FieldEncryptor | None = None
    if settings.encryption_key:
        try:
            encryptor = FieldEncryptor(settings.encryption_key)
        except EncryptionError as exc:
            logger.error("Invalid ENCRYPTION_KEY: %s", exc)
            logger.warning("Auth token will be stored unencrypted")
    return StoredTokenProvider(store, encryptor)


def create_app(
    *,
    health_adapter_override: HealthAdapter | None = None,
    backend_client_override: BackendClient | None = None,
    throttle_store_override: ThrottleStore | None = None,
    executor_override: BackgroundExecutor | None = None,
) -> FastMCP:
    """Create and configure the Occur Health MCP server.

    This is the main application factory. It:
    1. Creates the FastMCP server instance
    2. Opens local state (upload marker, auth token)
    3. Creates the backend client
    4. Selects the platform health adapter
    5. Wires the resolver, uploader and init services
    6. Registers all tools
    """
    settings = get_settings()

    # --- Server instance ---
    server = FastMCP(
        SERVER_NAME,
        instructions=(
            "Occur Health server. Provides chart-ready health metrics "
            "(steps, heart rate, SpO2, sleep) from the device health store "
            "with a backend fallback, device-to-backend sync, health goals, the "
            "journaling conversation and the health assistant chat."
        ),
    )

    tz = _resolve_timezone(settings.display_timezone)

    # --- Local state ---
    store = _open_local_state(settings)

    if throttle_store_override is not None:
        throttle_store = throttle_store_override
    elif store is not None:
        throttle_store = SqliteThrottleStore(store)
    else:
        throttle_store = InMemoryThrottleStore()

    # --- Backend client ---
    if backend_client_override is not None:
        client = backend_client_override
    else:
        client = BackendClient(
            settings.backend_base_url,
            token_provider=_token_provider(settings, store),
            timeout=settings.backend_timeout_seconds,
        )
        logger.info("Backend client configured for %s", settings.backend_base_url)

    # --- Platform health adapter ---
    if health_adapter_override is not None:
        adapter = health_adapter_override
    else:
        adapter = create_health_adapter(
            settings.health_platform,
            apple_health_export_path=settings.apple_health_export_path,
            simulated_seed=settings.simulated_store_seed,
            tz=tz,
        )
    logger.info("Health adapter: %s", adapter.platform)

    executor = executor_override or AsyncioBackgroundExecutor()

    # --- Services ---
    api = HealthDataAPI(client)
    uploader = HealthSyncUploader(
        adapter,
        api,
        throttle_store,
        upload_interval=timedelta(hours=settings.health_upload_interval_hours),
    )
    metric_service = HealthMetricService(adapter, api, uploader, executor, tz=tz)
    init_service = HealthInitService(adapter, uploader, executor)
    journal = JournalService(client)
    chat = ChatService(client)

    # --- Register tools ---
    @server.tool
    def health_check() -> dict:
        """Check server health and return basic status information."""
        last_upload = throttle_store.get_last_upload()
        return {
            "status": "ok",
            "server": SERVER_NAME,
            "version": SERVER_VERSION,
            "platform": adapter.platform,
            "backend_base_url": client.base_url,
            "health_initialized": init_service.is_initialized,
            "last_health_upload": last_upload.isoformat() if last_upload else None,
        }

    register_health_metric_tools(server, metric_service, init_service)
    logger.info("Health metric tools registered")

    register_journal_tools(server, journal)
    logger.info("Journal tools registered")

    register_chat_tools(server, chat)
    logger.info("Chat tools registered")

    return server


# Module-level instance for FastMCP discovery (`fastmcp run src/occur/core/server/app.py:mcp`).
# Lazy: only created when this module is loaded directly (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
