"""Centralized logging setup for the client library and CLI.

Modules log through ``logging.getLogger(__name__)``; this module owns the
handler configuration. It provides:
- One-time initialization of the root logger
- A per-session debug level mapped onto logger levels
- An in-memory ring buffer of recent records for diagnostics

Usage:
    LoggingFactory.initialize(log_dir=Path("logs"), level=logging.INFO)
    logger = get_logger(__name__)

    buffer = LoggingFactory.log_buffer()
    print(buffer.get_logs_as_text())
"""
from __future__ import annotations

import logging
import threading
from collections import deque
from pathlib import Path
from typing import Deque, List, Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_BUFFER_CAPACITY = 1000

PACKAGE_LOGGER = "ai_subtitles"
# Loggers that emit one line per poll tick or retry attempt
CHATTY_LOGGERS = ("ai_subtitles.jobs", "ai_subtitles.network.activity")


class LogBuffer(logging.Handler):
    """Keeps the most recent ``capacity`` records in memory.

    Full detail is retained here, including the transport errors that are
    replaced by friendly messages in user-facing output.
    """

    def __init__(self, capacity: int = LOG_BUFFER_CAPACITY, level: int = logging.DEBUG):
        super().__init__(level)
        self._records: Deque[logging.LogRecord] = deque(maxlen=capacity)
        self._records_lock = threading.Lock()
        self.setFormatter(logging.Formatter(DEFAULT_FORMAT))

    def emit(self, record: logging.LogRecord) -> None:
        with self._records_lock:
            self._records.append(record)

    def __len__(self) -> int:
        return len(self._records)

    def get_records(self) -> List[logging.LogRecord]:
        with self._records_lock:
            return list(self._records)

    def get_logs_as_text(self) -> str:
        return "\n".join(self.format(record) for record in self.get_records())

    def get_recent_errors(self, count: int = 10) -> List[str]:
        """Messages of the last ``count`` records at ERROR or above, oldest first."""
        errors = [r for r in self.get_records() if r.levelno >= logging.ERROR]
        return [self.format(r) for r in errors[-count:]] if count > 0 else []

    def clear(self) -> None:
        with self._records_lock:
            self._records.clear()


class LoggingFactory:
    """Singleton logging configuration.

    Class Attributes:
        _initialized: Flag to ensure single initialization
        _log_dir: Directory for the log file, None for console only
        _buffer: Shared in-memory record buffer
    """

    _initialized = False
    _log_dir: Optional[Path] = None
    _buffer: Optional[LogBuffer] = None

    @classmethod
    def initialize(
        cls,
        log_dir: Optional[Path] = None,
        level: int = logging.INFO,
        format_string: Optional[str] = None,
        console: bool = True,
        handlers: Optional[List[logging.Handler]] = None,
        file_name: str = "app.log",
    ) -> None:
        """Configure the root logger once; later calls are ignored.

        Args:
            log_dir: Directory for the log file; no file handler when None
            level: Root logger level
            format_string: Record format, ``DEFAULT_FORMAT`` when None
            console: Attach a plain stream handler (the CLI passes its own rich handler instead)
            handlers: Extra handlers to attach
            file_name: Log file name inside ``log_dir``
        """
        if cls._initialized:
            return

        format_string = format_string or DEFAULT_FORMAT
        all_handlers: List[logging.Handler] = list(handlers or [])
        if log_dir:
            cls._log_dir = log_dir
            cls._log_dir.mkdir(parents=True, exist_ok=True)
            all_handlers.append(logging.FileHandler(cls._log_dir / file_name))
        if console:
            all_handlers.append(logging.StreamHandler())
        all_handlers.append(cls.log_buffer())

        logging.basicConfig(level=level, format=format_string, handlers=all_handlers)
        cls._initialized = True

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Logger for ``name``, initializing defaults on first use."""
        if not cls._initialized:
            cls.initialize()
        return logging.getLogger(name)

    @classmethod
    def log_buffer(cls) -> LogBuffer:
        if cls._buffer is None:
            cls._buffer = LogBuffer()
        return cls._buffer

    @classmethod
    def set_level(cls, name: str, level: int) -> None:
        logging.getLogger(name).setLevel(level)

    @classmethod
    def configure_verbose(cls, verbose: bool = False) -> None:
        """Switch the package between DEBUG and INFO."""
        level = logging.DEBUG if verbose else logging.INFO
        logging.getLogger().setLevel(level)
        logging.getLogger(PACKAGE_LOGGER).setLevel(level)

    @classmethod
    def configure_debug_level(cls, debug_level: int) -> None:
        """Apply the persisted ``debug_level`` setting.

        0 logs errors only, 1 is normal operation with per-tick polling and
        activity chatter silenced, 2 logs everything.
        """
        if debug_level <= 0:
            package_level, chatty_level = logging.ERROR, logging.ERROR
        elif debug_level == 1:
            package_level, chatty_level = logging.INFO, logging.WARNING
        else:
            package_level, chatty_level = logging.DEBUG, logging.DEBUG

        logging.getLogger(PACKAGE_LOGGER).setLevel(package_level)
        for name in CHATTY_LOGGERS:
            logging.getLogger(name).setLevel(chatty_level)

    @classmethod
    def reset(cls) -> None:
        """Forget the configuration so ``initialize`` runs again."""
        root = logging.getLogger()
        for handler in list(root.handlers):
            if handler is cls._buffer or isinstance(handler, logging.FileHandler):
                root.removeHandler(handler)
                if isinstance(handler, logging.FileHandler):
                    handler.close()
        cls._initialized = False
        cls._log_dir = None


def get_logger(name: str) -> logging.Logger:
    """Shorthand for :meth:`LoggingFactory.get_logger`."""
    return LoggingFactory.get_logger(name)
