"""Resilient client for the AI transcription and translation API."""

__version__ = "1.0.0"

from .api import AISubtitlesClient, APISession, create_session
from .cache import CacheManager
from .jobs import CancellationToken, JobPoller
from .storage import InMemoryStorage, SessionStore, SQLiteStorage

__all__ = [
    "AISubtitlesClient",
    "APISession",
    "CacheManager",
    "CancellationToken",
    "InMemoryStorage",
    "JobPoller",
    "SQLiteStorage",
    "SessionStore",
    "__version__",
    "create_session",
]
