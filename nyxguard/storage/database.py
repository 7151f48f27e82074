"""SQLite key-value persistence for settings and scan results."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Optional

import aiosqlite

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when the persistent store cannot be read or written."""


class Database:
    """Async SQLite store of JSON values keyed by string."""

    def __init__(self, db_path: Path | str):
        self.db_path = db_path
        self._connection: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    async def connect(self):
        """Establish database connection and create tables."""
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self._connection = await aiosqlite.connect(self.db_path)
            self._connection.row_factory = aiosqlite.Row
            await self._create_tables()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to open database {self.db_path}: {exc}") from exc

    async def close(self):
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def __aenter__(self) -> "Database":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
        return False

    async def _create_tables(self):
        async with self._lock:
            await self._connection.executescript(
                """
                    CREATE TABLE IF NOT EXISTS kv (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    );
                """
            )
            await self._connection.commit()

    def _require_connection(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise StorageError("Database is not connected")
        return self._connection

    async def get_json(self, key: str) -> Optional[Any]:
        """Return the decoded value stored under key, or None."""
        conn = self._require_connection()
        try:
            async with self._lock:
                cursor = await conn.execute("SELECT value FROM kv WHERE key = ?", (key,))
                row = await cursor.fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to read {key}: {exc}") from exc
        if row is None:
            return None
        try:
            return json.loads(row["value"])
        except json.JSONDecodeError:
            logger.warning("Discarding corrupt stored value for %s", key)
            return None

    async def set_json(self, key: str, value: Any) -> None:
        conn = self._require_connection()
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise StorageError(f"Value for {key} is not JSON serializable: {exc}") from exc
        try:
            async with self._lock:
                await conn.execute(
                    """
                    INSERT INTO kv (key, value, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP
                    """,
                    (key, payload),
                )
                await conn.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to write {key}: {exc}") from exc

    async def delete(self, key: str) -> None:
        conn = self._require_connection()
        try:
            async with self._lock:
                await conn.execute("DELETE FROM kv WHERE key = ?", (key,))
                await conn.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to delete {key}: {exc}") from exc

    async def keys(self, prefix: str = "") -> list[str]:
        conn = self._require_connection()
        try:
            async with self._lock:
                cursor = await conn.execute(
                    "SELECT key FROM kv WHERE key LIKE ? ORDER BY key",
                    (f"{prefix}%",),
                )
                rows = await cursor.fetchall()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to list keys: {exc}") from exc
        return [row["key"] for row in rows]
