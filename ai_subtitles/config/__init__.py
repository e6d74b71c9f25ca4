"""Process-level configuration loaded from environment variables.

User-level settings that survive restarts (credentials, polling overrides,
cache TTL) live in :class:`~ai_subtitles.config.app_config.AppConfig` and are
persisted by the session store. This module only covers deployment knobs.
"""
from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .app_config import AppConfig, CreditsInfo
from .network import (
    BackoffStrategy,
    ErrorTypeRule,
    NetworkConfigManager,
    NetworkSettings,
    get_network_config,
)

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://api.opensubtitles.com/api/v1"
DEFAULT_USER_AGENT = "AI.Opensubtitles.com-Web v1.0.0"
DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
TRUTHY = frozenset({"1", "true", "yes", "on", "enabled"})
SECRET_FIELDS = frozenset({"api_key"})


def _env(name: str, default: str = "") -> str:
    return os.environ.get(name, default)


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in TRUTHY


def _env_float(name: str, default: float) -> float:
    """Read a float variable.

    Raises:
        ValueError: The variable is set but is not a number
    """
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


def _env_list(name: str, separator: str = ",") -> List[str]:
    return [part.strip() for part in _env(name).split(separator) if part.strip()]


def _env_path(name: str) -> Optional[Path]:
    raw = _env(name)
    return Path(raw) if raw else None


_env_loaded = False


def load_environment(env_file: Optional[Path] = None) -> None:
    """Load a .env file into the process environment once.

    Existing environment variables always win over values from the file.
    """
    global _env_loaded
    if _env_loaded and env_file is None:
        return

    candidates = [env_file] if env_file else [Path(".env"), Path.home() / ".ai_subtitles.env"]
    for env_path in candidates:
        if env_path and env_path.exists():
            load_dotenv(env_path, override=False)
            logger.debug(f"Environment file {env_path} loaded")
            break
    _env_loaded = True


@dataclass
class Config:
    """Deployment settings; every field maps to one environment variable."""

    # Storage
    data_dir: Path = field(
        default_factory=lambda: Path(_env("AI_SUBTITLES_DATA_DIR", str(Path.home() / ".ai_subtitles")))
    )
    storage_file: str = field(default_factory=lambda: _env("AI_SUBTITLES_STORAGE_FILE", "storage.db"))
    network_config_path: Optional[Path] = field(default_factory=lambda: _env_path("AI_SUBTITLES_NETWORK_CONFIG"))

    # Logging
    log_level: str = field(default_factory=lambda: _env("LOG_LEVEL", "INFO").upper())
    log_format: str = field(default_factory=lambda: _env("LOG_FORMAT", DEFAULT_LOG_FORMAT))
    log_file: Optional[str] = field(default_factory=lambda: _env("LOG_FILE") or None)
    log_to_console: bool = field(default_factory=lambda: _env_flag("LOG_TO_CONSOLE", True))

    # Remote API
    api_base_url: str = field(default_factory=lambda: _env("AI_SUBTITLES_API_BASE_URL", DEFAULT_API_BASE_URL))
    api_url_parameter: str = field(default_factory=lambda: _env("AI_SUBTITLES_API_URL_PARAMETER"))
    api_key: Optional[str] = field(default_factory=lambda: _env("AI_SUBTITLES_API_KEY") or None)
    user_agent: str = field(default_factory=lambda: _env("AI_SUBTITLES_USER_AGENT", DEFAULT_USER_AGENT))
    request_timeout: float = field(default_factory=lambda: _env_float("REQUEST_TIMEOUT", 60.0))
    connect_timeout: float = field(default_factory=lambda: _env_float("CONNECT_TIMEOUT", 10.0))

    # Defaults for settings the user has not stored
    polling_interval_seconds: float = field(default_factory=lambda: _env_float("POLLING_INTERVAL_SECONDS", 10.0))
    polling_timeout_seconds: float = field(default_factory=lambda: _env_float("POLLING_TIMEOUT_SECONDS", 7200.0))
    cache_expiration_hours: float = field(default_factory=lambda: _env_float("CACHE_EXPIRATION_HOURS", 24.0))

    # Terminal output
    debug: bool = field(default_factory=lambda: _env_flag("DEBUG"))
    no_color: bool = field(default_factory=lambda: "NO_COLOR" in os.environ)
    hidden_languages: List[str] = field(default_factory=lambda: _env_list("HIDDEN_LANGUAGES"))

    def __post_init__(self):
        for name, value in (
            ("POLLING_INTERVAL_SECONDS", self.polling_interval_seconds),
            ("POLLING_TIMEOUT_SECONDS", self.polling_timeout_seconds),
            ("CACHE_EXPIRATION_HOURS", self.cache_expiration_hours),
        ):
            if value <= 0:
                raise ValueError(f"{name} must be positive")

    @property
    def storage_path(self) -> Path:
        """Absolute path of the persistent key/value database."""
        return self.data_dir / self.storage_file

    def ensure_dirs(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def __repr__(self) -> str:
        parts = []
        for f in fields(self):
            value = getattr(self, f.name)
            shown = "'***REDACTED***'" if f.name in SECRET_FIELDS and value else repr(value)
            parts.append(f"{f.name}={shown}")
        return f"Config({', '.join(parts)})"


_config: Optional[Config] = None
_config_guard = threading.Lock()


def get_config() -> Config:
    """Shared Config, built on first use after loading the .env file."""
    global _config
    if _config is not None:
        return _config
    with _config_guard:
        if _config is None:
            load_environment()
            _config = Config()
        return _config


def reset_config() -> None:
    """Drop the cached config so the next get_config() re-reads the environment."""
    global _config
    with _config_guard:
        _config = None


__all__ = [
    "AppConfig",
    "BackoffStrategy",
    "Config",
    "CreditsInfo",
    "DEFAULT_API_BASE_URL",
    "DEFAULT_USER_AGENT",
    "ErrorTypeRule",
    "NetworkConfigManager",
    "NetworkSettings",
    "get_config",
    "get_network_config",
    "load_environment",
    "reset_config",
]
