"""Shared CLI utilities and argument parser."""
from __future__ import annotations

import argparse
import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Awaitable, Optional

from .. import __version__
from ..api.session import APISession, create_session
from ..config import Config, get_config
from ..utils.logging_factory import LoggingFactory

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CANCELLED = 130


def setup_logging(verbose: bool = False, config: Optional[Config] = None) -> None:
    """Initialize logging once and apply the requested verbosity.

    Console output goes through the rich handler the ConsoleManager attaches,
    so the root logger only gets the optional log file and the in-memory buffer.
    """
    config = config or get_config()
    level = logging.DEBUG if verbose or config.debug else getattr(logging, config.log_level, logging.INFO)
    log_file = Path(config.log_file) if config.log_file else None
    LoggingFactory.initialize(
        log_dir=log_file.parent if log_file else None,
        level=level,
        format_string=config.log_format,
        console=False,
        file_name=log_file.name if log_file else "app.log",
    )
    LoggingFactory.configure_verbose(verbose or config.debug)


@asynccontextmanager
async def open_session(config: Optional[Config] = None) -> AsyncIterator[APISession]:
    """Build a session from the process config and release it afterwards."""
    session = create_session(config)
    stored = session.session_store.get_config()
    if stored.debug_mode:
        LoggingFactory.configure_debug_level(stored.debug_level)
    try:
        yield session
    finally:
        session.close()
        await session.client.close()


def run_async(coro: Awaitable[int]) -> int:
    """Run a command coroutine, mapping Ctrl-C to the conventional exit code."""
    try:
        return asyncio.run(coro)
    except KeyboardInterrupt:
        logger.error("Operation cancelled by user")
        return EXIT_CANCELLED


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="ai-subtitles",
        description="Transcribe and translate media with the AI subtitles API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Examples:
  # Log in once; the token is cached for six hours
  ai-subtitles login --username me --api-key KEY

  # Show the consolidated transcription languages
  ai-subtitles languages transcription

  # Transcribe an audio file with a specific model
  ai-subtitles transcribe talk.mp3 --language en --api whisper

  # Translate a subtitle file
  ai-subtitles translate talk.en.srt --source en --target de --api deepl

  # Machine-readable output
  ai-subtitles --json-output credits
        """,
    )

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument(
        "--json-output",
        action="store_true",
        help="Emit machine-readable JSON events to stderr/stdout",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands", required=True)

    # Login subcommand
    login_parser = subparsers.add_parser(
        "login",
        help="Authenticate and cache a session token",
        description="Log in with username, password and API key. Missing values fall back to stored settings.",
    )
    login_parser.add_argument("--username", "-u", help="Account username")
    login_parser.add_argument("--password", "-p", help="Account password (prompted when omitted)")
    login_parser.add_argument("--api-key", "-k", dest="api_key", help="Consumer API key")

    subparsers.add_parser("logout", help="Clear the cached token and metadata cache")
    subparsers.add_parser("credits", help="Show the remaining credit balance")

    # Languages subcommand
    languages_parser = subparsers.add_parser(
        "languages",
        help="List languages supported by the available models",
        description="Show provider languages consolidated into one list, with the models supporting each.",
    )
    languages_parser.add_argument("kind", choices=["transcription", "translation"], help="Capability to list")
    languages_parser.add_argument("--api", "-a", help="Only show languages supported by this model")
    languages_parser.add_argument(
        "--refresh", action="store_true", help="Bypass the cache and reload model info"
    )

    # Transcribe subcommand
    transcribe_parser = subparsers.add_parser(
        "transcribe",
        help="Transcribe an audio or video file",
        description="Upload media, wait for the transcription job and save the result",
    )
    transcribe_parser.add_argument("input_file", help="Input media file path")
    transcribe_parser.add_argument("--language", "-l", default="auto", help="Language code (default: auto)")
    transcribe_parser.add_argument("--api", "-a", required=True, help="Transcription model id")
    transcribe_parser.add_argument("--output", "-o", help="Output file path (default: from filename pattern)")
    transcribe_parser.add_argument(
        "--format", "-f", dest="output_format", default="srt", help="Output format (default: srt)"
    )

    # Translate subcommand
    translate_parser = subparsers.add_parser(
        "translate",
        help="Translate a subtitle file",
        description="Upload a subtitle file, wait for the translation job and save the result",
    )
    translate_parser.add_argument("input_file", help="Input subtitle file path")
    translate_parser.add_argument("--source", "-s", required=True, help="Source language code")
    translate_parser.add_argument("--target", "-t", required=True, help="Target language code")
    translate_parser.add_argument("--api", "-a", required=True, help="Translation model id")
    translate_parser.add_argument("--output", "-o", help="Output file path (default: from filename pattern)")
    translate_parser.add_argument(
        "--format", "-f", dest="output_format", default="srt", help="Output format (default: srt)"
    )

    # Detect language subcommand
    detect_parser = subparsers.add_parser(
        "detect-language",
        help="Detect the spoken or written language of a file",
    )
    detect_parser.add_argument("input_file", help="Input media or subtitle file path")
    detect_parser.add_argument(
        "--duration", "-d", type=float, help="Seconds of audio to analyse (default: from settings)"
    )

    # Config subcommand
    config_parser = subparsers.add_parser("config", help="Show or change stored settings")
    config_sub = config_parser.add_subparsers(dest="config_action", required=True)
    config_sub.add_parser("show", help="Print stored settings (secrets redacted)")
    set_parser = config_sub.add_parser("set", help="Change one setting")
    set_parser.add_argument("key", help="Setting name, e.g. polling_interval_seconds")
    set_parser.add_argument("value", help="New value")
    config_sub.add_parser("reset", help="Delete stored settings and the cached token")

    return parser
