"""API client and session layer."""

from .client import API_KEY_REQUIRED, TOKEN_REQUIRED, AISubtitlesClient
from .session import APISession, create_session, get_language_name

__all__ = [
    "AISubtitlesClient",
    "APISession",
    "API_KEY_REQUIRED",
    "TOKEN_REQUIRED",
    "create_session",
    "get_language_name",
]
