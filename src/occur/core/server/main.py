"""Occur server entry point: ``occur-server`` or ``python -m occur.core.server.main``."""

from __future__ import annotations

import logging
from ipaddress import ip_address

from occur.core.config.settings import Settings, get_settings
from occur.core.server.app import create_app

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _is_loopback_host(host: str) -> bool:
    if host == "localhost":
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def check_bind_address(settings: Settings) -> None:
    """Refuse a network bind off loopback unless explicitly allowed.

    Raises:
        RuntimeError: If the HTTP transport would listen on a public address.
    """
    if settings.occur_transport == "stdio" or settings.occur_allow_insecure_bind:
        return
    if not _is_loopback_host(settings.occur_host):
        raise RuntimeError(
            f"Refusing to bind Occur server to {settings.occur_host} without an auth layer. "
            "Set OCCUR_ALLOW_INSECURE_BIND=true to override (unsafe)."
        )


def run() -> None:
    """Start the Occur MCP server on the configured transport."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.occur_log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    logger = logging.getLogger(__name__)

    check_bind_address(settings)
    mcp = create_app()

    if settings.occur_transport == "stdio":
        logger.info("Starting Occur Health server on stdio (platform=%s)", settings.health_platform)
        mcp.run(transport="stdio")
        return

    logger.info(
        "Starting Occur Health server on %s:%d (platform=%s, backend=%s)",
        settings.occur_host,
        settings.occur_port,
        settings.health_platform,
        settings.backend_base_url,
    )
    mcp.run(
        transport="streamable-http",
        host=settings.occur_host,
        port=settings.occur_port,
    )


if __name__ == "__main__":
    run()
