"""Bearer token providers for outgoing backend requests."""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from occur.core.storage.encryption import EncryptionError, FieldEncryptor
from occur.core.storage.state_store import KeyValueStore

logger = logging.getLogger(__name__)

AUTH_TOKEN_KEY = "auth_token"


@runtime_checkable
class TokenProvider(Protocol):
    """Supplies the bearer token attached to authenticated requests."""

    async def get_token(self) -> str | None:
        ...

    async def set_token(self, token: str) -> None:
        ...

    async def clear_token(self) -> None:
        """Forget the token (called when the backend answers 401)."""
        ...


class StaticTokenProvider:
    """A fixed token, e.g. from configuration. Clearing only drops it in memory."""

    def __init__(self, token: str | None = None) -> None:
        self._token = token or None

    async def get_token(self) -> str | None:
        return self._token

    async def set_token(self, token: str) -> None:
        self._token = token or None

    async def clear_token(self) -> None:
        self._token = None


class StoredTokenProvider:
    """Token cached in memory and persisted to local key-value storage.

    When an encryptor is given the token is stored encrypted. A token that
    can no longer be decrypted (key rotated) is treated as absent.
    """

    def __init__(
        self,
        store: KeyValueStore,
        encryptor: FieldEncryptor | None = None,
        key: str = AUTH_TOKEN_KEY,
    ) -> None:
        self._store = store
        self._enc = encryptor
        self._key = key
        self._cached: str | None = None

    async def get_token(self) -> str | None:
        if self._cached:
            return self._cached

        raw = self._store.get(self._key)
        if not raw:
            return None
        if self._enc is None:
            self._cached = raw
            return raw
        try:
            self._cached = self._enc.decrypt(raw)
        except EncryptionError:
            logger.warning("Stored auth token could not be decrypted; ignoring it")
            return None
        return self._cached

    async def set_token(self, token: str) -> None:
        self._cached = token
        value = self._enc.encrypt(token) if self._enc is not None else token
        self._store.set(self._key, value)

    async def clear_token(self) -> None:
        self._cached = None
        self._store.delete(self._key)
