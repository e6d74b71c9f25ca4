"""Network classification, connectivity, activity tracking and resilient execution."""

from .activity import ActivityListener, ActivityTracker
from .connectivity import ConnectivityMonitor
from .errors import (
    APIRequestError,
    NetworkError,
    NetworkErrorType,
    NetworkRequestError,
    OfflineError,
    categorize_network_error,
    get_user_friendly_error_message,
    is_network_error,
)
from .executor import RequestExecutor

__all__ = [
    "APIRequestError",
    "ActivityListener",
    "ActivityTracker",
    "ConnectivityMonitor",
    "NetworkError",
    "NetworkErrorType",
    "NetworkRequestError",
    "OfflineError",
    "RequestExecutor",
    "categorize_network_error",
    "get_user_friendly_error_message",
    "is_network_error",
]
