"""HTTP client for the Occur backend REST API.

Every request carries ``Authorization: Bearer <token>`` from the configured
TokenProvider, except the public auth endpoints. A 401 response clears the
stored token so the next login starts clean.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from occur.core.api.auth import TokenProvider

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v2"

PUBLIC_ENDPOINTS = frozenset({
    f"{API_PREFIX}/auth/token",
    f"{API_PREFIX}/auth/register",
})

_DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}


class BackendClient:
    """Async JSON client for the backend.

    A fresh ``httpx.AsyncClient`` is opened per request. Pass ``transport``
    (e.g. ``httpx.MockTransport``) to route requests without a network.

    Usage::

        client = BackendClient("http://127.0.0.1:8000", token_provider=tokens)
        data = await client.get(
            "/api/v2/health_data/health/graph-data",
            params={"metric": "steps", "mode": "daily"},
        )
    """

    def __init__(
        self,
        base_url: str,
        *,
        token_provider: TokenProvider | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._tokens = token_provider
        self._timeout = httpx.Timeout(timeout)
        self._transport = transport

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def token_provider(self) -> TokenProvider | None:
        return self._tokens

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get(self, path: str, *, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(
        self,
        path: str,
        *,
        json: Any = None,
        data: dict[str, Any] | None = None,
    ) -> Any:
        return await self.request("POST", path, json=json, data=data)

    async def patch(self, path: str, *, json: Any = None) -> Any:
        return await self.request("PATCH", path, json=json)

    async def put(self, path: str, *, json: Any = None) -> Any:
        return await self.request("PUT", path, json=json)

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        data: dict[str, Any] | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body (None if empty).

        Raises:
            BackendConnectionError: The backend could not be reached.
            BackendAuthError: The backend answered 401.
            BackendResponseError: Any other non-2xx status or a non-JSON body.
        """
        headers = dict(_DEFAULT_HEADERS)
        if data is not None:
            # Form posts (login) let httpx pick the content type.
            headers.pop("Content-Type")
        if path not in PUBLIC_ENDPOINTS and self._tokens is not None:
            token = await self._tokens.get_token()
            if token:
                headers["Authorization"] = f"Bearer {token}"

        logger.debug("%s %s params=%s", method, path, params)

        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(
                    method,
                    path,
                    params=params,
                    json=json,
                    data=data,
                    headers=headers,
                )
        except httpx.TransportError as exc:
            logger.warning("Backend unreachable for %s %s: %s", method, path, exc)
            raise BackendConnectionError(
                "Network error. Please check your connection."
            ) from exc

        if response.status_code == 401:
            if self._tokens is not None:
                await self._tokens.clear_token()
            raise BackendAuthError(f"Unauthorized: {method} {path}")

        if response.is_error:
            raise BackendResponseError(
                f"{method} {path} failed with HTTP {response.status_code}",
                status_code=response.status_code,
                detail=_error_detail(response),
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise BackendResponseError(
                f"Invalid JSON from {method} {path}: {exc}",
                status_code=response.status_code,
            ) from exc


# ------------------------------------------------------------------
# Exceptions
# ------------------------------------------------------------------

class BackendClientError(Exception):
    """Base exception for BackendClient errors."""


class BackendConnectionError(BackendClientError):
    """Could not reach the backend."""


class BackendAuthError(BackendClientError):
    """The backend rejected the bearer token."""


class BackendResponseError(BackendClientError):
    """The backend answered with an error status or an unreadable body."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        detail: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


def _error_detail(response: httpx.Response) -> Any:
    """Pull ``detail`` out of a FastAPI-style error body, if there is one."""
    try:
        body = response.json()
    except ValueError:
        return response.text or None
    if isinstance(body, dict):
        return body.get("detail", body)
    return body
