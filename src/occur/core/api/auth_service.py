"""Login and registration against the backend's public auth endpoints."""

from __future__ import annotations

import logging
from typing import Any

from occur.core.api.client import API_PREFIX, BackendClient, BackendResponseError

logger = logging.getLogger(__name__)


class AuthService:
    """Obtains bearer tokens and hands them to the client's TokenProvider."""

    def __init__(self, client: BackendClient) -> None:
        self._client = client

    async def login(self, username: str, password: str) -> dict[str, Any]:
        """Exchange credentials for a token (form-encoded, OAuth2 password style).

        The returned ``access_token`` is stored through the client's token
        provider so later requests are authenticated.
        """
        data = await self._client.post(
            f"{API_PREFIX}/auth/token",
            data={"username": username, "password": password},
        )
        if not isinstance(data, dict) or not data.get("access_token"):
            raise BackendResponseError("Login response did not include an access_token")

        tokens = self._client.token_provider
        if tokens is not None:
            await tokens.set_token(data["access_token"])
        logger.info("Logged in as %s", username)
        return data

    async def register(self, user_data: dict[str, Any]) -> Any:
        return await self._client.post(f"{API_PREFIX}/auth/register", json=user_data)

    async def logout(self) -> None:
        tokens = self._client.token_provider
        if tokens is not None:
            await tokens.clear_token()
