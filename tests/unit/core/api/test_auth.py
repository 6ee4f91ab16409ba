"""Tests for token providers and AuthService."""

from __future__ import annotations

import asyncio
from urllib.parse import parse_qs

import httpx
import pytest

from occur.core.api.auth import (
    AUTH_TOKEN_KEY,
    StaticTokenProvider,
    StoredTokenProvider,
    TokenProvider,
)
from occur.core.api.auth_service import AuthService
from occur.core.api.client import BackendClient, BackendResponseError
from occur.core.storage.encryption import FieldEncryptor

LOGIN = "/api/v2/auth/token"


def _run(coro):
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


class TestStaticTokenProvider:
    def test_protocol(self):
        assert isinstance(StaticTokenProvider("t"), TokenProvider)

    def test_empty_token_is_none(self):
        assert _run(StaticTokenProvider("").get_token()) is None

    def test_clear(self):
        tokens = StaticTokenProvider("t")
        _run(tokens.clear_token())
        assert _run(tokens.get_token()) is None


class TestStoredTokenProvider:
    def test_plain_persistence(self, kv_store):
        _run(StoredTokenProvider(kv_store).set_token("abc"))
        assert kv_store.get(AUTH_TOKEN_KEY) == "abc"
        # A fresh provider reads it back from storage.
        assert _run(StoredTokenProvider(kv_store).get_token()) == "abc"

    def test_encrypted_persistence(self, kv_store, field_encryptor):
        _run(StoredTokenProvider(kv_store, field_encryptor).set_token("abc"))
        stored = kv_store.get(AUTH_TOKEN_KEY)
        assert stored != "abc"
        assert _run(StoredTokenProvider(kv_store, field_encryptor).get_token()) == "abc"

    def test_token_from_rotated_key_is_ignored(self, kv_store, field_encryptor):
        _run(StoredTokenProvider(kv_store, field_encryptor).set_token("abc"))
        other = FieldEncryptor(FieldEncryptor.generate_key())
        assert _run(StoredTokenProvider(kv_store, other).get_token()) is None

    def test_clear_removes_stored_token(self, kv_store):
        tokens = StoredTokenProvider(kv_store)
        _run(tokens.set_token("abc"))
        _run(tokens.clear_token())
        assert kv_store.get(AUTH_TOKEN_KEY) is None
        assert _run(tokens.get_token()) is None


class TestAuthService:
    def _client(self, backend, kv_store) -> BackendClient:
        return BackendClient(
            "http://backend.test",
            token_provider=StoredTokenProvider(kv_store),
            transport=httpx.MockTransport(backend.handler),
        )

    def test_login_stores_access_token(self, backend, kv_store):
        backend.add("POST", LOGIN, {"access_token": "jwt-123", "token_type": "bearer"})
        client = self._client(backend, kv_store)
        result = _run(AuthService(client).login("ada", "pw"))
        assert result["access_token"] == "jwt-123"
        assert kv_store.get(AUTH_TOKEN_KEY) == "jwt-123"

        form = parse_qs(backend.requests[0].content.decode())
        assert form == {"username": ["ada"], "password": ["pw"]}

    def test_login_without_token_raises(self, backend, kv_store):
        backend.add("POST", LOGIN, {"token_type": "bearer"})
        with pytest.raises(BackendResponseError, match="access_token"):
            _run(AuthService(self._client(backend, kv_store)).login("ada", "pw"))

    def test_later_requests_are_authenticated(self, backend, kv_store):
        backend.add("POST", LOGIN, {"access_token": "jwt-123"})
        backend.add("GET", "/api/v2/journal/journal/summary/month", {"entries": 3})
        client = self._client(backend, kv_store)

        async def _flow():
            await AuthService(client).login("ada", "pw")
            await client.get("/api/v2/journal/journal/summary/month")

        _run(_flow())
        assert backend.requests[1].headers["Authorization"] == "Bearer jwt-123"

    def test_register_is_public(self, backend, kv_store):
        backend.add("POST", "/api/v2/auth/register", {"id": 1})
        _run(AuthService(self._client(backend, kv_store)).register({"username": "ada"}))
        assert "Authorization" not in backend.requests[0].headers
        assert backend.json_body(backend.requests[0]) == {"username": "ada"}

    def test_logout_clears_token(self, backend, kv_store):
        client = self._client(backend, kv_store)
        kv_store.set(AUTH_TOKEN_KEY, "jwt-123")
        _run(AuthService(client).logout())
        assert kv_store.get(AUTH_TOKEN_KEY) is None
