"""Data-driven retry policy.

The rule table lives in ``network_config.json`` next to this module so limits,
keywords and user-facing messages can be tuned without touching code. The
models below validate the document on load; :class:`NetworkConfigManager`
answers the questions the classifier and the executor ask of it.
"""
from __future__ import annotations

import json
import logging
import random
import threading
from pathlib import Path
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic.types import NonNegativeFloat, NonNegativeInt, PositiveFloat, PositiveInt

from ..utils.retry import MIN_RETRY_DELAY, apply_jitter, calculate_delay

logger = logging.getLogger(__name__)

DEFAULT_NETWORK_CONFIG_PATH = Path(__file__).with_name("network_config.json")

ErrorTypeName = Literal[
    "offline",
    "timeout",
    "proxy_error",
    "cloudflare_error",
    "server_error",
    "auth_error",
    "rate_limit",
    "unknown",
]


class RetryTimeouts(BaseModel):
    """Per-request timeouts in seconds."""

    request: PositiveFloat = 60.0
    connect: PositiveFloat = 10.0
    connectivity_check: PositiveFloat = 5.0


class RetrySettings(BaseModel):
    """Global retry switches."""

    enabled: bool = True
    max_attempts: PositiveInt = Field(3, description="Default retry budget per call")
    default_base_delay: PositiveFloat = Field(1.0, description="Base delay when a rule has no schedule")
    timeouts: RetryTimeouts = Field(default_factory=RetryTimeouts)


class ErrorTypeRule(BaseModel):
    """One row of the classification table."""

    name: str
    error_type: ErrorTypeName
    enabled: bool = True
    status_codes: List[int] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)
    max_retries: NonNegativeInt = 0
    delays: List[NonNegativeFloat] = Field(default_factory=list)
    max_delay: NonNegativeFloat = 30.0
    message_key: str = "unknown"

    @field_validator("keywords")
    @classmethod
    def lowercase_keywords(cls, v: List[str]) -> List[str]:
        """Keywords are matched case-insensitively."""
        return [keyword.lower() for keyword in v if keyword]

    def matches(self, status: Optional[int], haystack: str) -> bool:
        """Return True if the status code or any keyword matches."""
        if status is not None and status in self.status_codes:
            return True
        return any(keyword in haystack for keyword in self.keywords)


class BackoffStrategy(BaseModel):
    """How delays grow past a rule's schedule and how much they wobble."""

    type: Literal["exponential", "fixed"] = "exponential"
    multiplier: float = Field(2.0, ge=1.0)
    jitter: bool = True
    jitter_percent: float = Field(10.0, ge=0.0, le=100.0)


class NetworkLoggingSettings(BaseModel):
    """Which executor events get logged."""

    enabled: bool = True
    log_retries: bool = True
    log_errors: bool = True
    log_success: bool = False


class NetworkSettings(BaseModel):
    """Root of the network rule document."""

    retry: RetrySettings = Field(default_factory=RetrySettings)
    error_types: List[ErrorTypeRule] = Field(default_factory=list)
    backoff_strategy: BackoffStrategy = Field(default_factory=BackoffStrategy)
    logging: NetworkLoggingSettings = Field(default_factory=NetworkLoggingSettings)
    user_messages: Dict[str, str] = Field(default_factory=dict)

    @field_validator("user_messages")
    @classmethod
    def require_unknown_message(cls, v: Dict[str, str]) -> Dict[str, str]:
        """The fallback message must always be present."""
        if "unknown" not in v:
            v = {**v, "unknown": "An unexpected error occurred. Please try again."}
        return v

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "NetworkSettings":
        """Load and validate a rule document from disk.

        Raises:
            ValueError: If the file is not valid JSON or fails validation
        """
        path = Path(path)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            return cls.model_validate(raw)
        except (json.JSONDecodeError, ValidationError) as e:
            raise ValueError(f"Invalid network configuration in {path}: {e}") from e


class NetworkConfigManager:
    """Read-side facade over :class:`NetworkSettings`.

    Args:
        settings: Pre-built settings; loaded from ``path`` when omitted
        path: JSON rule document (defaults to the packaged table)
        rng: Random source used for jitter
    """

    def __init__(
        self,
        settings: Optional[NetworkSettings] = None,
        path: Optional[Union[str, Path]] = None,
        rng: Optional[random.Random] = None,
    ):
        self._path = Path(path) if path else DEFAULT_NETWORK_CONFIG_PATH
        self.settings = settings if settings is not None else NetworkSettings.from_file(self._path)
        self._rng = rng or random.Random()

    def reload(self, path: Optional[Union[str, Path]] = None) -> None:
        """Re-read the rule document, keeping the current one if the new one is invalid."""
        target = Path(path) if path else self._path
        try:
            self.settings = NetworkSettings.from_file(target)
            self._path = target
            logger.info(f"Reloaded network configuration from {target}")
        except (OSError, ValueError) as e:
            logger.error(f"Keeping previous network configuration: {e}")

    def get_retry_config(self) -> RetrySettings:
        return self.settings.retry

    def get_backoff_strategy(self) -> BackoffStrategy:
        return self.settings.backoff_strategy

    def get_logging_config(self) -> NetworkLoggingSettings:
        return self.settings.logging

    def get_rules(self) -> List[ErrorTypeRule]:
        """Enabled rules in priority order."""
        return [rule for rule in self.settings.error_types if rule.enabled]

    def get_error_type_config(self, error_type: str) -> Optional[ErrorTypeRule]:
        """Look a rule up by its error type value (``"rate_limit"``) or table name."""
        error_type = getattr(error_type, "value", error_type)
        for rule in self.settings.error_types:
            if rule.error_type == error_type or rule.name == error_type:
                return rule
        return None

    def is_retry_enabled(self) -> bool:
        return self.settings.retry.enabled

    def base_delay_for_error_type(self, error_type: str, attempt: int) -> float:
        """Delay before retry ``attempt`` without jitter."""
        rule = self.get_error_type_config(error_type)
        strategy = self.settings.backoff_strategy
        if rule is None:
            return calculate_delay(
                attempt,
                [],
                max_delay=30.0,
                multiplier=strategy.multiplier,
                default_base_delay=self.settings.retry.default_base_delay,
            )
        multiplier = strategy.multiplier if strategy.type == "exponential" else 1.0
        return calculate_delay(
            attempt,
            rule.delays,
            max_delay=rule.max_delay or 30.0,
            multiplier=multiplier,
            default_base_delay=self.settings.retry.default_base_delay,
        )

    def get_delay_for_error_type(self, error_type: str, attempt: int) -> float:
        """Delay in seconds before retry ``attempt`` (0-based), jittered."""
        return self.apply_jitter(self.base_delay_for_error_type(error_type, attempt))

    def apply_jitter(self, delay: float) -> float:
        strategy = self.settings.backoff_strategy
        if not strategy.jitter:
            return max(MIN_RETRY_DELAY, delay)
        return apply_jitter(delay, strategy.jitter_percent, rng=self._rng)

    def get_user_message(self, key: str) -> str:
        """Message template for ``key``, falling back to the ``unknown`` entry."""
        messages = self.settings.user_messages
        return messages.get(key) or messages["unknown"]


_network_config: Optional[NetworkConfigManager] = None
_network_config_lock = threading.Lock()


def get_network_config() -> NetworkConfigManager:
    """Shared manager over the packaged (or env-overridden) rule table."""
    global _network_config
    if _network_config is None:
        with _network_config_lock:
            if _network_config is None:
                from . import get_config

                _network_config = NetworkConfigManager(path=get_config().network_config_path)
    return _network_config
