"""Expiring read-through cache for API metadata."""
from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Optional

from ..storage.backends import KeyValueStorage, StorageError
from ..storage.session import SessionStore

logger = logging.getLogger(__name__)

CACHE_PREFIX = "ai_subtitles_cache_"
DEFAULT_TTL_HOURS = 24.0


class CacheManager:
    """Namespaced TTL cache over a :class:`KeyValueStorage`.

    Entries are stored as ``{"data": ..., "created_at": ..., "expires_at": ...}``.
    The TTL is read from the session store's config when an entry is written,
    so changing the setting later does not move existing expiries.

    Args:
        storage: Backing store, possibly shared with the session store
        session_store: Source of ``cache_expiration_hours``; 24h when omitted
        clock: Returns the current time in seconds since the epoch
        prefix: Key namespace owned by this cache
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        session_store: Optional[SessionStore] = None,
        clock: Callable[[], float] = time.time,
        prefix: str = CACHE_PREFIX,
    ):
        self._storage = storage
        self._session_store = session_store
        self._clock = clock
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def _ttl_seconds(self) -> float:
        if self._session_store is None:
            return DEFAULT_TTL_HOURS * 3600
        return self._session_store.get_config().cache_expiration_hours * 3600

    def _load(self, key: str) -> Optional[dict]:
        """Parsed entry, or None after evicting a missing/corrupt one."""
        raw = self._storage.get(self._key(key))
        if raw is None:
            return None
        try:
            entry = json.loads(raw)
            float(entry["expires_at"])
            return entry
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Removing corrupted cache entry {key!r}: {e}")
            self.remove(key)
            return None

    def set(self, key: str, data: Any) -> None:
        now = self._clock()
        entry = {"data": data, "created_at": now, "expires_at": now + self._ttl_seconds()}
        try:
            self._storage.set(self._key(key), json.dumps(entry))
        except (StorageError, TypeError, ValueError) as e:
            logger.error(f"Failed to cache {key!r}: {e}")

    def get(self, key: str) -> Optional[Any]:
        entry = self._load(key)
        if entry is None:
            return None
        if self._clock() >= float(entry["expires_at"]):
            logger.debug(f"Cache entry {key!r} expired")
            self.remove(key)
            return None
        return entry.get("data")

    def remove(self, key: str) -> None:
        self._storage.remove(self._key(key))

    def clear(self) -> None:
        """Remove every entry under this cache's prefix and nothing else."""
        keys = [k for k in self._storage.keys() if k.startswith(self._prefix)]
        self._storage.remove_many(keys)
        logger.info(f"Cleared {len(keys)} cache entries")

    def is_expired(self, key: str) -> bool:
        """True for missing, corrupted and expired entries."""
        entry = self._load(key)
        if entry is None:
            return True
        return self._clock() >= float(entry["expires_at"])
