"""Session and user-settings persistence.

The bearer token lives under its own keys with its own fixed validity window,
independent of the metadata cache TTL.
"""
from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from ..config.app_config import AppConfig
from .backends import KeyValueStorage, StorageError

logger = logging.getLogger(__name__)

CONFIG_KEY = "ai_subtitles_config"
TOKEN_KEY = "ai_subtitles_token"
TOKEN_EXPIRY_KEY = "ai_subtitles_token_expiry"
TOKEN_VALIDITY_HOURS = 6


class SessionStore:
    """Persists :class:`AppConfig` and the bearer token.

    Args:
        storage: Backing key/value store
        clock: Returns the current time in seconds since the epoch
        token_validity_hours: Lifetime stamped on every saved token
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        clock: Callable[[], float] = time.time,
        token_validity_hours: float = TOKEN_VALIDITY_HOURS,
    ):
        self._storage = storage
        self._clock = clock
        self.token_validity_seconds = token_validity_hours * 3600
        self._session_id: Optional[str] = None

    # ========== Config ==========

    def get_config(self) -> AppConfig:
        """Stored settings, or defaults if nothing (or garbage) is stored."""
        raw = self._storage.get(CONFIG_KEY)
        if raw is None:
            return AppConfig()
        try:
            return AppConfig.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable stored config: {e}")
            return AppConfig()

    def save_config(self, partial: Dict[str, Any]) -> bool:
        """Shallow-merge ``partial`` into the stored settings.

        Returns:
            True if the merged config was written, False if it was rejected
        """
        try:
            merged = self.get_config().merged(partial)
        except ValidationError as e:
            logger.error(f"Rejected config update {sorted(partial)}: {e.error_count()} validation error(s)")
            return False
        try:
            self._storage.set(CONFIG_KEY, merged.model_dump_json())
        except StorageError as e:
            logger.error(f"Failed to save config: {e}")
            return False
        return True

    def reset_all_settings(self) -> None:
        """Remove the config and the token together."""
        self._storage.remove_many((CONFIG_KEY, TOKEN_KEY, TOKEN_EXPIRY_KEY))
        logger.info("All settings reset")

    # ========== Token ==========

    def get_valid_token(self) -> Optional[str]:
        """Return the token if present and unexpired; otherwise clear what is stored."""
        token = self._storage.get(TOKEN_KEY)
        expiry_raw = self._storage.get(TOKEN_EXPIRY_KEY)
        if not token and not expiry_raw:
            return None
        if not token or not expiry_raw:
            logger.warning("Stored token has no matching expiry, clearing it")
            self.clear_token()
            return None

        try:
            expires_at = float(expiry_raw)
        except ValueError:
            logger.warning("Stored token expiry is corrupt, clearing token")
            self.clear_token()
            return None

        if self._clock() >= expires_at:
            logger.info("Stored token expired, clearing it")
            self.clear_token()
            return None
        return token

    def save_token(self, token: str) -> None:
        expires_at = self._clock() + self.token_validity_seconds
        self._storage.set(TOKEN_KEY, token)
        self._storage.set(TOKEN_EXPIRY_KEY, repr(expires_at))

    def clear_token(self) -> None:
        self._storage.remove_many((TOKEN_KEY, TOKEN_EXPIRY_KEY))

    def get_token_expiry(self) -> Optional[float]:
        raw = self._storage.get(TOKEN_EXPIRY_KEY)
        try:
            return float(raw) if raw else None
        except ValueError:
            return None

    def get_session_id(self) -> str:
        """Random identifier for this process, sent on connectivity probes."""
        if self._session_id is None:
            self._session_id = str(uuid.uuid4())
        return self._session_id
