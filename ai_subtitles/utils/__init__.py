"""Utility modules for the AI subtitles client."""

from .cancellation import CancellationToken, OperationCancelledError
from .filenames import generate_filename
from .logging_factory import LogBuffer, LoggingFactory, get_logger
from .retry import MIN_RETRY_DELAY, apply_jitter, calculate_delay

__all__ = [
    "CancellationToken",
    "LogBuffer",
    "LoggingFactory",
    "MIN_RETRY_DELAY",
    "OperationCancelledError",
    "apply_jitter",
    "calculate_delay",
    "generate_filename",
    "get_logger",
]
