"""Fernet-based encryption for secrets kept in local state.

The bearer token is written to the key-value store encrypted; everything
else in local state (the upload marker) is plain text.
"""

from __future__ import annotations

import logging

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class EncryptionError(Exception):
    """Raised when encryption/decryption fails."""


class FieldEncryptor:
    """Encrypts and decrypts string values using Fernet symmetric encryption.

    Usage::

        encryptor = FieldEncryptor(key="...")
        encrypted = encryptor.encrypt("eyJhbGciOi...")
        encryptor.decrypt(encrypted)  # "eyJhbGciOi..."
    """

    def __init__(self, key: str) -> None:
        """Initialize with a Fernet key.

        Args:
            key: A valid Fernet key string. Generate with
                 ``FieldEncryptor.generate_key()``.

        Raises:
            EncryptionError: If the key is empty or invalid.
        """
        if not key or not key.strip():
            raise EncryptionError("Encryption key must not be empty")
        try:
            self._fernet = Fernet(key.encode())
        except ValueError as exc:
            raise EncryptionError(f"Invalid encryption key: {exc}") from exc

    def encrypt(self, value: str | None) -> str:
        """Encrypt a string to a Fernet token string. ``None`` encrypts to ``""``."""
        if value is None:
            return ""
        try:
            return self._fernet.encrypt(value.encode("utf-8")).decode("utf-8")
        except (TypeError, AttributeError) as exc:
            raise EncryptionError(f"Encryption failed: {exc}") from exc

    def decrypt(self, token: str) -> str | None:
        """Decrypt a Fernet token string back to the original value.

        Raises:
            EncryptionError: If the token is invalid or was made with another key.
        """
        if not token:
            return None
        try:
            return self._fernet.decrypt(token.encode("utf-8")).decode("utf-8")
        except InvalidToken as exc:
            raise EncryptionError("Decryption failed: invalid token or wrong key") from exc

    @staticmethod
    def generate_key() -> str:
        """Generate a new URL-safe base64-encoded 32-byte Fernet key."""
        return Fernet.generate_key().decode("utf-8")
