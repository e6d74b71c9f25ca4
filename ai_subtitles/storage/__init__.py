"""Key/value persistence and the session/config store built on it."""

from .backends import InMemoryStorage, KeyValueStorage, SQLiteStorage, StorageError
from .session import TOKEN_VALIDITY_HOURS, SessionStore

__all__ = [
    "InMemoryStorage",
    "KeyValueStorage",
    "SQLiteStorage",
    "SessionStore",
    "StorageError",
    "TOKEN_VALIDITY_HOURS",
]
