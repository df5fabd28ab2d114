# chess_presenter/services/kv_store.py
"""
Provides the shared, durable key-value area using SQLite.

Both display surfaces open the same database file from independent
processes; it is the only channel between them. SQLite guarantees that a
single-key read never observes a half-written value, and WAL mode lets the
presenter keep reading while the viewer writes.
"""

from pathlib import Path
from typing import Dict, Optional, Tuple, Type, Union

import aiosqlite
import structlog

from chess_presenter.exceptions import StorageConnectionError, StorageReadError, StorageWriteError
from chess_presenter.utils.retry import retry_with_backoff

logger = structlog.get_logger(__name__)

# "database is locked" while the other surface holds the write lock.
RETRYABLE_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    aiosqlite.OperationalError,
)

CREATE_SHARED_STATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS shared_state (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
)
"""


class SqliteKeyValueStore:
    """
    A `KeyValueStore` implementation backed by a local SQLite database.

    This class is an async context manager, managing its own database connection
    lifecycle.
    """

    def __init__(self, db_filepath: Union[str, Path], timeout_s: float = 10.0):
        self._db_path = Path(db_filepath)
        self._timeout_s = timeout_s
        self._connection: Optional[aiosqlite.Connection] = None

    @property
    def path(self) -> Path:
        return self._db_path

    async def __aenter__(self) -> "SqliteKeyValueStore":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def open(self) -> None:
        """Opens the connection and creates the schema. Opening twice is a no-op."""
        if self._connection is not None:
            return
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = await aiosqlite.connect(self._db_path, timeout=self._timeout_s)
            await self._connection.execute("PRAGMA journal_mode=WAL;")
            await self._connection.execute(CREATE_SHARED_STATE_TABLE_SQL)
            await self._connection.commit()
        except aiosqlite.Error as e:
            raise StorageConnectionError(f"Failed to open shared storage at {self._db_path}: {e}") from e
        logger.debug("Shared storage opened.", path=str(self._db_path))

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None

    def _ensure_connected(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise StorageConnectionError("Shared storage is not connected.")
        return self._connection

    @retry_with_backoff(exceptions_to_catch=RETRYABLE_EXCEPTIONS, operation="get", final_error=StorageReadError)
    async def get(self, key: str) -> Optional[str]:
        """
        Returns the raw value stored under `key`, or None if the key is absent.

        Raises:
            StorageReadError: If a non-retriable database error occurs.
        """
        conn = self._ensure_connected()
        try:
            async with conn.execute("SELECT value FROM shared_state WHERE key = ?", (key,)) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.OperationalError:
            raise
        except aiosqlite.Error as e:
            raise StorageReadError(f"Failed to read key '{key}': {e}") from e
        return row[0] if row else None

    @retry_with_backoff(exceptions_to_catch=RETRYABLE_EXCEPTIONS, operation="set", final_error=StorageWriteError)
    async def set(self, key: str, value: str) -> None:
        """
        Stores `value` under `key`, replacing any previous value (last write wins).

        Raises:
            StorageWriteError: If a non-retriable database error occurs.
        """
        conn = self._ensure_connected()
        query = (
            "INSERT INTO shared_state (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP"
        )
        try:
            await conn.execute(query, (key, value))
            await conn.commit()
        except aiosqlite.OperationalError:
            await conn.rollback()
            raise
        except aiosqlite.Error as e:
            await conn.rollback()
            raise StorageWriteError(f"Failed to write key '{key}': {e}") from e

    @retry_with_backoff(exceptions_to_catch=RETRYABLE_EXCEPTIONS, operation="remove", final_error=StorageWriteError)
    async def remove(self, *keys: str) -> None:
        """
        Removes all given keys in one transaction; absent keys are ignored.

        Raises:
            StorageWriteError: If a non-retriable database error occurs.
        """
        conn = self._ensure_connected()
        if not keys:
            return
        placeholders = ", ".join(["?"] * len(keys))
        try:
            await conn.execute(f"DELETE FROM shared_state WHERE key IN ({placeholders})", keys)
            await conn.commit()
        except aiosqlite.OperationalError:
            await conn.rollback()
            raise
        except aiosqlite.Error as e:
            await conn.rollback()
            raise StorageWriteError(f"Failed to remove keys {list(keys)}: {e}") from e

    @retry_with_backoff(exceptions_to_catch=RETRYABLE_EXCEPTIONS, operation="snapshot", final_error=StorageReadError)
    async def snapshot(self) -> Dict[str, str]:
        """
        Returns every key and raw value currently stored.

        Raises:
            StorageReadError: If a non-retriable database error occurs.
        """
        conn = self._ensure_connected()
        try:
            async with conn.execute("SELECT key, value FROM shared_state") as cursor:
                rows = await cursor.fetchall()
        except aiosqlite.OperationalError:
            raise
        except aiosqlite.Error as e:
            raise StorageReadError(f"Failed to snapshot shared storage: {e}") from e
        return {key: value for key, value in rows}
