"""Database access — aiosqlite key/value store.

A single ``kv`` table holds namespaced string values (``<player>.<field>``),
the same shape as a host application's per-profile configuration store.
Every failure surfaces as :class:`PersistenceError`.
"""

from __future__ import annotations

import logging
import sqlite3

import aiosqlite

from unlockgate.util.errors import PersistenceError

log = logging.getLogger(__name__)

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""


class Database:
    """Async SQLite key/value wrapper.

    Args:
        db_path: Path to the SQLite database file (``:memory:`` works).
    """

    def __init__(self, db_path: str = "unlockgate.db") -> None:
        self._db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open the database connection and create tables if needed."""
        try:
            self._conn = await aiosqlite.connect(self._db_path)
            await self._conn.executescript(_SCHEMA)
            await self._conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"cannot open database {self._db_path}: {e}") from e
        log.info("Database connected: %s", self._db_path)

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _require(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise PersistenceError("database is not connected")
        return self._conn

    # -- Key/value operations --------------------------------------------

    async def get_value(self, key: str) -> str | None:
        """Return the stored value for *key*, or None."""
        conn = self._require()
        try:
            async with conn.execute("SELECT value FROM kv WHERE key = ?", (key,)) as cursor:
                row = await cursor.fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"read of {key!r} failed: {e}") from e
        return row[0] if row is not None else None

    async def set_value(self, key: str, value: str) -> None:
        """Insert or replace the value for *key*."""
        conn = self._require()
        try:
            await conn.execute(
                "INSERT INTO kv (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
                "updated_at = CURRENT_TIMESTAMP",
                (key, value),
            )
            await conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"write of {key!r} failed: {e}") from e
