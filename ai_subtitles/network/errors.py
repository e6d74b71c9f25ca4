"""Failure taxonomy and the rule-table classifier."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple

import httpx

from ..config.network import NetworkConfigManager, get_network_config

logger = logging.getLogger(__name__)

NETWORK_ERROR_PATTERNS = (
    "failed to fetch",
    "network error",
    "err_internet_disconnected",
    "err_network_changed",
    "err_connection_refused",
    "err_name_not_resolved",
    "err_connection_timed_out",
    "err_connection_reset",
)


class NetworkErrorType(str, Enum):
    """Classified failure categories."""

    OFFLINE = "offline"
    TIMEOUT = "timeout"
    PROXY_ERROR = "proxy_error"
    CLOUDFLARE_ERROR = "cloudflare_error"
    SERVER_ERROR = "server_error"
    AUTH_ERROR = "auth_error"
    RATE_LIMIT = "rate_limit"
    UNKNOWN = "unknown"


# Error type -> key in the user message table
_MESSAGE_KEYS = {
    NetworkErrorType.OFFLINE: "offline",
    NetworkErrorType.TIMEOUT: "timeout",
    NetworkErrorType.PROXY_ERROR: "proxy",
    NetworkErrorType.CLOUDFLARE_ERROR: "cloudflare",
    NetworkErrorType.SERVER_ERROR: "server",
    NetworkErrorType.AUTH_ERROR: "auth",
    NetworkErrorType.RATE_LIMIT: "rate_limited",
    NetworkErrorType.UNKNOWN: "unknown",
}


class APIRequestError(Exception):
    """Non-2xx HTTP response.

    Attributes:
        status: HTTP status code
        response_text: Raw response body, if any
        authenticated: Whether the request carried a bearer token
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        response_text: Optional[str] = None,
        authenticated: bool = False,
    ):
        super().__init__(message)
        self.status = status
        self.response_text = response_text
        self.authenticated = authenticated

    @property
    def server_message(self) -> Optional[str]:
        """Human-readable error the server put in its JSON body, if any."""
        return extract_server_message(self.response_text)


class ResponseFormatError(APIRequestError):
    """2xx response whose body does not have the expected shape."""


class OfflineError(ConnectionError):
    """The device or the API host is known to be unreachable."""


@dataclass
class NetworkError:
    """A classified failure."""

    type: NetworkErrorType
    message: str
    is_retryable: bool
    original_error: Any = None
    status: Optional[int] = None


class NetworkRequestError(Exception):
    """Final failure of a retried request, carrying its classification."""

    def __init__(self, network_error: NetworkError, attempts: int = 1):
        self.network_error = network_error
        self.attempts = attempts
        original = network_error.original_error
        detail = str(original) if original is not None and str(original) else network_error.message
        super().__init__(detail)

    @property
    def error_type(self) -> NetworkErrorType:
        return self.network_error.type

    @property
    def is_retryable(self) -> bool:
        return self.network_error.is_retryable

    @property
    def status(self) -> Optional[int]:
        return self.network_error.status

    @property
    def original_error(self) -> Any:
        return self.network_error.original_error

    @property
    def user_message(self) -> str:
        return self.network_error.message


def extract_server_message(response_text: Optional[str]) -> Optional[str]:
    """Pull ``error`` / ``message`` / ``errors`` out of a JSON error body."""
    if not response_text:
        return None
    try:
        body = json.loads(response_text)
    except (json.JSONDecodeError, TypeError):
        return None
    if not isinstance(body, dict):
        return None
    for field_name in ("error", "message"):
        value = body.get(field_name)
        if isinstance(value, str) and value:
            return value
    errors = body.get("errors")
    if isinstance(errors, list) and errors:
        return ", ".join(str(item) for item in errors)
    if isinstance(errors, str) and errors:
        return errors
    return None


def _describe(error: BaseException) -> str:
    """Message text used for keyword matching.

    Some transport exceptions stringify to nothing, so fall back to a phrase
    the rule table knows.
    """
    text = str(error)
    if text:
        return text
    if isinstance(error, (httpx.TimeoutException, TimeoutError)):
        return "request timeout"
    if isinstance(error, (httpx.TransportError, ConnectionError)):
        return "network error"
    return type(error).__name__


def _extract_fields(error: Any) -> Tuple[Optional[int], str, str]:
    status = getattr(error, "status", None)
    response_text = getattr(error, "response_text", None) or ""
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        response_text = error.response.text
    message = _describe(error) if isinstance(error, BaseException) else str(error)
    return status, message, response_text


def categorize_network_error(
    error: Any,
    config: Optional[NetworkConfigManager] = None,
    is_online: bool = True,
) -> NetworkError:
    """Classify ``error`` against the rule table.

    Args:
        error: Exception (or anything with ``status``/``response_text``)
        config: Rule table; the shared one when omitted
        is_online: Device connectivity signal at the time of failure

    Returns:
        The first matching rule's classification, OFFLINE when nothing
        matched and the device is offline, UNKNOWN otherwise
    """
    config = config or get_network_config()
    if error is None:
        return NetworkError(
            type=NetworkErrorType.UNKNOWN,
            message=config.get_user_message("unknown"),
            is_retryable=False,
            original_error=None,
        )

    status, message, response_text = _extract_fields(error)
    haystack = f"{message}\n{response_text}".lower()

    for rule in config.get_rules():
        if rule.matches(status, haystack):
            error_type = NetworkErrorType(rule.error_type)
            return NetworkError(
                type=error_type,
                message=config.get_user_message(rule.message_key),
                is_retryable=rule.max_retries > 0,
                original_error=error,
                status=status,
            )

    if not is_online:
        return NetworkError(
            type=NetworkErrorType.OFFLINE,
            message=config.get_user_message("offline"),
            is_retryable=True,
            original_error=error,
            status=status,
        )

    return NetworkError(
        type=NetworkErrorType.UNKNOWN,
        message=config.get_user_message("unknown"),
        is_retryable=False,
        original_error=error,
        status=status,
    )


def is_network_error(error: Any) -> bool:
    """True for transport-level failures (as opposed to HTTP error responses)."""
    if error is None:
        return False
    if isinstance(error, (httpx.TransportError, ConnectionError, TimeoutError)):
        return True
    message = str(error).lower()
    return any(pattern in message for pattern in NETWORK_ERROR_PATTERNS)


def get_user_friendly_error_message(
    error: Any, config: Optional[NetworkConfigManager] = None, is_online: bool = True
) -> str:
    """Message from the table for ``error``.

    Unclassifiable failures that carry their own server-provided message
    surface that message instead of the generic fallback.
    """
    if isinstance(error, NetworkRequestError):
        network_error = error.network_error
        original = error.original_error
    else:
        network_error = categorize_network_error(error, config, is_online)
        original = error
    if network_error.type is NetworkErrorType.UNKNOWN:
        server_message = extract_server_message(getattr(original, "response_text", None))
        if server_message:
            return server_message
    return network_error.message


def message_key_for(error_type: NetworkErrorType) -> str:
    return _MESSAGE_KEYS[error_type]
