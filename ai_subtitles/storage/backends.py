"""Persistent key/value storage backends.

This module provides two backends behind the :class:`KeyValueStorage` protocol:

- InMemoryStorage: thread-safe dict, lost on exit.
  Best for: tests, throwaway sessions.

- SQLiteStorage: single-table SQLite file in WAL mode.
  Best for: the CLI, where the token and cached metadata must survive restarts.

Values are opaque strings. Callers own serialization, which is what lets the
cache and session layers detect and heal corrupted documents themselves.
"""
from __future__ import annotations

import logging
import sqlite3
import time
from pathlib import Path
from threading import Lock, RLock, local
from typing import Dict, Iterable, List, Optional, Protocol, Union, runtime_checkable

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when the underlying store cannot be read or written."""


@runtime_checkable
class KeyValueStorage(Protocol):
    """String-keyed, string-valued persistent store."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...

    def remove_many(self, keys: Iterable[str]) -> None:
        """Remove several keys as one unit."""
        ...

    def keys(self) -> List[str]:
        ...


class InMemoryStorage:
    """Thread-safe in-memory storage.

    All operations are protected by an RLock.
    """

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = RLock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError(f"Storage values must be str, got {type(value).__name__}")
        with self._lock:
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def remove_many(self, keys: Iterable[str]) -> None:
        with self._lock:
            for key in keys:
                self._data.pop(key, None)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._data.keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


class SQLiteStorage:
    """Persistent, thread-safe storage using SQLite with WAL mode.

    Thread Safety:
        Uses thread-local storage for SQLite connections (one per thread) since
        SQLite connections are not thread-safe. Writes are additionally
        serialized by a Lock.

    Attributes:
        db_path (Path): Path to SQLite database file
        _lock (Lock): Global lock for consistency across threads
        _local (threading.local): Thread-local storage for connections
    """

    def __init__(self, db_path: Union[str, Path]):
        """Initialize SQLite storage.

        Args:
            db_path: Database file; parent directories are created

        Raises:
            StorageError: If the file cannot be created or opened
        """
        self.db_path = Path(db_path)
        self._lock = Lock()
        self._local = local()
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._init_database()
        except (OSError, sqlite3.Error) as e:
            raise StorageError(f"Cannot open storage at {self.db_path}: {e}") from e
        logger.debug(f"Initialized SQLiteStorage at {self.db_path}")

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the thread-local database connection."""
        if not hasattr(self._local, "conn"):
            self._local.conn = sqlite3.connect(str(self.db_path))
            # WAL allows readers while a writer is active
            self._local.conn.execute("PRAGMA journal_mode=WAL")
            self._local.conn.execute("PRAGMA synchronous=NORMAL")
        return self._local.conn

    def _init_database(self) -> None:
        conn = self._get_connection()
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at REAL NOT NULL
            )
        """
        )
        conn.commit()

    def get(self, key: str) -> Optional[str]:
        try:
            cursor = self._get_connection().execute("SELECT value FROM kv_store WHERE key = ?", (key,))
            row = cursor.fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read {key!r}: {e}") from e
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError(f"Storage values must be str, got {type(value).__name__}")
        with self._lock:
            try:
                conn = self._get_connection()
                conn.execute(
                    "INSERT OR REPLACE INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)",
                    (key, value, time.time()),
                )
                conn.commit()
            except sqlite3.Error as e:
                raise StorageError(f"Failed to write {key!r}: {e}") from e

    def remove(self, key: str) -> None:
        with self._lock:
            try:
                conn = self._get_connection()
                conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
                conn.commit()
            except sqlite3.Error as e:
                raise StorageError(f"Failed to delete {key!r}: {e}") from e

    def remove_many(self, keys: Iterable[str]) -> None:
        """Delete ``keys`` in a single transaction."""
        keys = list(keys)
        with self._lock:
            conn = self._get_connection()
            try:
                with conn:
                    conn.executemany("DELETE FROM kv_store WHERE key = ?", [(key,) for key in keys])
            except sqlite3.Error as e:
                raise StorageError(f"Failed to delete {keys!r}: {e}") from e

    def keys(self) -> List[str]:
        try:
            cursor = self._get_connection().execute("SELECT key FROM kv_store")
            return [row[0] for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise StorageError(f"Failed to list keys: {e}") from e

    def close(self) -> None:
        """Close this thread's connection."""
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            del self._local.conn
