"""
Persistent Key-Value Store.
~~~~~~~~~~~~~~~~~~~~~~~~~~~

String key/value storage that survives process restarts.
Backs the location queue and the device identity.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from pathlib import Path
from typing import Any

from ...errors import StorageError

logger = logging.getLogger(__name__)


class KeyValueStore:
    """
    SQLite-based key/value store.

    Every write is committed immediately, so a reader (or a restarted
    process) sees either the previous value or the new one.

    Example:
        >>> async with KeyValueStore(Path("data/geoqueue.db")) as store:
        ...     await store.set_item("greeting", "hello")
        ...     await store.get_item("greeting")
        'hello'
    """

    def __init__(self, db_path: Path | str = "geoqueue.db"):
        """
        Initialize store.

        Args:
            db_path: Path to SQLite database
        """
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None
        self._lock = asyncio.Lock()

    # ==================== Lifecycle ====================

    async def initialize(self) -> None:
        """Open database and create table."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.executescript("""
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
                );
            """)
            self._conn.commit()
        except (OSError, sqlite3.Error) as e:
            raise StorageError(f"cannot open store {self.db_path}: {e}") from e

        logger.info("Key-value store initialized: %s", self.db_path)

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StorageError("store is not initialized")
        return self._conn

    # ==================== Operations ====================

    async def get_item(self, key: str) -> str | None:
        """Return the value stored under key, or None."""
        conn = self._require_conn()
        async with self._lock:
            try:
                row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
            except sqlite3.Error as e:
                raise StorageError(f"read failed for {key!r}: {e}") from e
        return row[0] if row else None

    async def set_item(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""
        conn = self._require_conn()
        async with self._lock:
            try:
                conn.execute(
                    """
                    INSERT INTO kv (key, value, updated_at)
                    VALUES (?, ?, CURRENT_TIMESTAMP)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = CURRENT_TIMESTAMP
                    """,
                    (key, value),
                )
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise StorageError(f"write failed for {key!r}: {e}") from e

    async def remove_item(self, key: str) -> None:
        """Delete key. Missing keys are ignored."""
        conn = self._require_conn()
        async with self._lock:
            try:
                conn.execute("DELETE FROM kv WHERE key = ?", (key,))
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise StorageError(f"delete failed for {key!r}: {e}") from e

    async def keys(self) -> list[str]:
        """List stored keys."""
        conn = self._require_conn()
        async with self._lock:
            try:
                rows = conn.execute("SELECT key FROM kv ORDER BY key").fetchall()
            except sqlite3.Error as e:
                raise StorageError(f"listing keys failed: {e}") from e
        return [row[0] for row in rows]

    # ==================== Context Manager ====================

    async def __aenter__(self) -> KeyValueStore:
        """Async context manager entry."""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
