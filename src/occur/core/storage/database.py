"""SQLite file for state the client keeps between runs.

Only two things live here: the last-upload marker read by the sync
uploader's throttle, and the (optionally encrypted) backend auth token.
Both sit in a single ``kv_store`` table.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)

MEMORY = ":memory:"

# (version, DDL) pairs, applied in order to databases older than ``version``.
_MIGRATIONS: tuple[tuple[int, str], ...] = (
    (
        1,
        """
        CREATE TABLE IF NOT EXISTS kv_store (
            key        TEXT PRIMARY KEY,
            value      TEXT NOT NULL,
            updated_at TEXT NOT NULL DEFAULT (datetime('now'))
        );
        """,
    ),
)

SCHEMA_VERSION = _MIGRATIONS[-1][0]

_VERSION_TABLE = """
CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);
"""


class DatabaseError(Exception):
    """Raised when the state database is used before it is opened."""


class LocalStateDatabase:
    """Owns the connection to the local state file.

    Usage::

        with LocalStateDatabase("~/.occur/state.db") as db:
            KeyValueStore(db).set("last_health_upload", "...")
    """

    def __init__(self, db_path: str = MEMORY) -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def connection(self) -> sqlite3.Connection:
        """The open connection.

        Raises:
            DatabaseError: If ``initialize()`` has not been called.
        """
        if self._conn is None:
            raise DatabaseError("Database not initialized. Call initialize() first.")
        return self._conn

    def initialize(self) -> None:
        """Open the file (creating parent directories) and migrate it.

        A second call is a no-op.
        """
        if self._conn is not None:
            return

        if self._db_path == MEMORY:
            conn = sqlite3.connect(MEMORY)
        else:
            db_file = Path(self._db_path).expanduser()
            db_file.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(db_file))
            conn.execute("PRAGMA journal_mode=WAL")
        conn.row_factory = sqlite3.Row
        self._conn = conn

        self._migrate()
        logger.info("Local state database opened: %s", self._db_path)

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Commit on success, roll back on error."""
        conn = self.connection
        with conn:
            yield conn

    def _migrate(self) -> None:
        with self.transaction() as conn:
            conn.executescript(_VERSION_TABLE)
        current = self.get_schema_version()

        pending = [(version, ddl) for version, ddl in _MIGRATIONS if version > current]
        for version, ddl in pending:
            with self.transaction() as conn:
                conn.executescript(ddl)
                conn.execute("INSERT INTO schema_version (version) VALUES (?)", (version,))
            logger.info("Local state schema migrated to version %d", version)

    def get_schema_version(self) -> int:
        """Highest applied migration, 0 for a fresh file."""
        row = self.connection.execute("SELECT MAX(version) FROM schema_version").fetchone()
        return row[0] or 0

    def close(self) -> None:
        if self._conn is None:
            return
        self._conn.close()
        self._conn = None
        logger.info("Local state database closed")

    def __enter__(self) -> LocalStateDatabase:
        self.initialize()
        return self

    def __exit__(self, *args) -> None:
        self.close()
