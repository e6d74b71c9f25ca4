"""Transcribe, translate and detect-language commands."""
from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from pathlib import Path
from typing import Any, Optional

from ..api.session import APISession
from ..jobs import CancellationToken, JobCancelledError, JobError
from ..models.api import (
    CompletedTaskData,
    LanguageDetectionResult,
    TranscriptionOptions,
    TranslationOptions,
)
from ..ui.console import ConsoleManager
from ..utils.filenames import generate_filename
from .auth_command import ensure_authenticated
from .cli_utils import EXIT_CANCELLED, EXIT_FAILURE, EXIT_OK, open_session, run_async

logger = logging.getLogger(__name__)


def _validate_input(path_str: str, console_manager: ConsoleManager) -> Optional[Path]:
    path = Path(path_str)
    if not path.is_file():
        console_manager.print_error(f"Input file not found: {path}")
        return None
    return path


def _cancel_on_interrupt(token: CancellationToken) -> None:
    """Turn Ctrl-C into a cooperative cancel of the running job."""
    try:
        asyncio.get_running_loop().add_signal_handler(
            signal.SIGINT, token.cancel, "Cancelled by user"
        )
    except (NotImplementedError, RuntimeError):
        logger.debug("Signal handlers unavailable, Ctrl-C will abort immediately")


async def _save_result(
    session: APISession,
    data: Any,
    input_path: Path,
    output: Optional[str],
    language_code: str,
    language_name: str,
    kind: str,
    fmt: str,
    console_manager: ConsoleManager,
) -> int:
    result = CompletedTaskData.from_dict(data) if isinstance(data, dict) else CompletedTaskData()
    content = data.get("content") if isinstance(data, dict) else None
    if content is None and result.url:
        download = await session.client.download_file(result.url)
        if not download.success:
            console_manager.print_error(download.error or "Download failed")
            return EXIT_FAILURE
        content = download.data
    if content is None:
        console_manager.print_error("Job completed without a result file")
        return EXIT_FAILURE

    if output:
        output_path = Path(output)
    else:
        pattern = session.session_store.get_config().default_filename_format
        name = generate_filename(pattern, input_path.name, language_code, language_name, kind, fmt)
        output_path = input_path.parent / name
    output_path.write_text(content, encoding="utf-8")
    logger.info(f"Output saved to: {output_path}")

    console_manager.print_summary(
        kind.title(),
        {
            "output": str(output_path),
            "characters": result.character_count,
            "total_price": result.total_price,
            "credits_left": result.credits_left,
        },
    )
    return EXIT_OK


async def _run_job_command(args, console_manager: ConsoleManager, kind: str) -> int:
    input_path = _validate_input(args.input_file, console_manager)
    if input_path is None:
        return EXIT_FAILURE

    async with open_session() as session:
        if not await ensure_authenticated(session, console_manager):
            return EXIT_FAILURE

        token = CancellationToken()
        _cancel_on_interrupt(token)
        stage = kind.title()
        console_manager.print_stage(stage, "starting")
        try:
            with console_manager.poll_status(f"{stage} in progress") as on_progress:
                if kind == "transcription":
                    options = TranscriptionOptions(language=args.language, api=args.api)
                    data = await session.transcribe(input_path, options, token, on_progress)
                    language_code = args.language
                    language_name = session.get_transcription_language_name(args.api, args.language)
                else:
                    options = TranslationOptions(
                        translate_from=args.source, translate_to=args.target, api=args.api
                    )
                    data = await session.translate(input_path, options, token, on_progress)
                    language_code = args.target
                    language_name = session.get_translation_language_name(args.api, args.target)
        except JobCancelledError:
            console_manager.print_stage(stage, "warning")
            console_manager.print_error("Cancelled")
            return EXIT_CANCELLED
        except JobError as e:
            console_manager.print_stage(stage, "error")
            console_manager.print_error(str(e))
            return EXIT_FAILURE

        console_manager.print_stage(stage, "complete")
        return await _save_result(
            session,
            data,
            input_path,
            args.output,
            language_code,
            language_name,
            kind,
            args.output_format,
            console_manager,
        )


def transcribe_command(args: argparse.Namespace, console_manager: ConsoleManager) -> int:
    """Handle the transcribe subcommand.

    Args:
        args: Command line arguments
        console_manager: Console manager for output

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    return run_async(_run_job_command(args, console_manager, "transcription"))


def translate_command(args: argparse.Namespace, console_manager: ConsoleManager) -> int:
    return run_async(_run_job_command(args, console_manager, "translation"))


def detect_language_command(args: argparse.Namespace, console_manager: ConsoleManager) -> int:
    return run_async(_detect(args, console_manager))


async def _detect(args: argparse.Namespace, console_manager: ConsoleManager) -> int:
    input_path = _validate_input(args.input_file, console_manager)
    if input_path is None:
        return EXIT_FAILURE

    async with open_session() as session:
        if not await ensure_authenticated(session, console_manager):
            return EXIT_FAILURE

        token = CancellationToken()
        _cancel_on_interrupt(token)
        try:
            with console_manager.poll_status("Detecting language") as on_progress:
                data = await session.detect_language(input_path, args.duration, token, on_progress)
        except JobCancelledError:
            console_manager.print_error("Cancelled")
            return EXIT_CANCELLED
        except JobError as e:
            console_manager.print_error(str(e))
            return EXIT_FAILURE

        result = LanguageDetectionResult.from_dict(data if isinstance(data, dict) else {})
        if result.language is None:
            console_manager.print_error("No language detected")
            return EXIT_FAILURE
        console_manager.print_summary(
            "Detected language",
            {
                "code": result.language.iso_639_1 or result.language.w3c,
                "name": result.language.name,
                "native": result.language.native,
                "type": result.type,
            },
        )
        return EXIT_OK
