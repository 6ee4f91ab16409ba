"""Key-value device storage and the last-upload throttle marker."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

from occur.core.storage.database import LocalStateDatabase

logger = logging.getLogger(__name__)

LAST_HEALTH_UPLOAD_KEY = "last_health_upload"


class KeyValueStore:
    """String key-value storage on top of the ``kv_store`` table.

    Usage::

        db = LocalStateDatabase(":memory:")
        db.initialize()
        store = KeyValueStore(db)
        store.set("auth_token", "...")
    """

    def __init__(self, database: LocalStateDatabase) -> None:
        self._db = database

    def get(self, key: str) -> str | None:
        row = self._db.connection.execute(
            "SELECT value FROM kv_store WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        with self._db.transaction() as conn:
            conn.execute(
                """INSERT INTO kv_store (key, value, updated_at)
                   VALUES (?, ?, datetime('now'))
                   ON CONFLICT(key) DO UPDATE SET
                       value = excluded.value,
                       updated_at = excluded.updated_at""",
                (key, value),
            )

    def delete(self, key: str) -> bool:
        """Remove a key. Returns True if a row was deleted."""
        with self._db.transaction() as conn:
            cursor = conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        return cursor.rowcount > 0


@runtime_checkable
class ThrottleStore(Protocol):
    """Persistence for the time of the last successful health upload."""

    def get_last_upload(self) -> datetime | None:
        """Return the stored marker, or None when no upload was recorded."""
        ...

    def set_last_upload(self, timestamp: datetime) -> None:
        ...

    def clear(self) -> None:
        ...


class InMemoryThrottleStore:
    """Process-local marker. Used when no local database is configured."""

    def __init__(self, last_upload: datetime | None = None) -> None:
        self._last_upload = last_upload

    def get_last_upload(self) -> datetime | None:
        return self._last_upload

    def set_last_upload(self, timestamp: datetime) -> None:
        self._last_upload = timestamp

    def clear(self) -> None:
        self._last_upload = None


class SqliteThrottleStore:
    """Marker stored as an ISO 8601 string under ``last_health_upload``."""

    def __init__(self, store: KeyValueStore, key: str = LAST_HEALTH_UPLOAD_KEY) -> None:
        self._store = store
        self._key = key

    def get_last_upload(self) -> datetime | None:
        raw = self._store.get(self._key)
        if not raw:
            return None
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            logger.warning("Ignoring unreadable %s marker: %r", self._key, raw)
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    def set_last_upload(self, timestamp: datetime) -> None:
        self._store.set(self._key, timestamp.isoformat())

    def clear(self) -> None:
        self._store.delete(self._key)
