"""Application settings loaded from environment variables."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Occur Health configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Loopback by default; the MCP surface has no auth layer of its own.
    occur_host: str = "127.0.0.1"
    occur_port: int = 8001
    occur_log_level: str = "info"
    occur_allow_insecure_bind: bool = False
    # "stdio" for MCP hosts that spawn the server as a subprocess.
    occur_transport: Literal["streamable-http", "stdio"] = "streamable-http"

    # Backend REST API
    backend_base_url: str = "http://127.0.0.1:8000"
    backend_timeout_seconds: float = 10.0
    # Optional static bearer token; when empty the token comes from local state.
    backend_token: str = ""

    # Platform health store
    health_platform: Literal["android", "ios"] = "android"
    apple_health_export_path: str = ""
    simulated_store_seed: int = 7

    # Empty means the system local timezone.
    display_timezone: str = ""

    # Local state (last-upload marker, auth token)
    state_db_path: str = "~/.occur/state.db"
    encryption_key: str = ""

    # Sync
    health_upload_interval_hours: float = 4.0


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
