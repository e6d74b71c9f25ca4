"""Languages command: consolidated language list per capability."""
from __future__ import annotations

import argparse
import logging

from ..config import get_config
from ..languages import (
    build_compatibility_matrix,
    consolidate_languages,
    get_best_variant_for_api,
    languages_by_api,
)
from ..ui.console import ConsoleManager
from .auth_command import ensure_authenticated
from .cli_utils import EXIT_FAILURE, EXIT_OK, open_session, run_async

logger = logging.getLogger(__name__)


def languages_command(args: argparse.Namespace, console_manager: ConsoleManager) -> int:
    """Handle the languages subcommand.

    Args:
        args: Command line arguments
        console_manager: Console manager for output

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    return run_async(_languages(args, console_manager))


async def _languages(args: argparse.Namespace, console_manager: ConsoleManager) -> int:
    async with open_session() as session:
        if not await ensure_authenticated(session, console_manager):
            return EXIT_FAILURE
        if args.refresh:
            await session.refresh_model_info()

        info = session.transcription_info if args.kind == "transcription" else session.translation_info
        if not info:
            console_manager.print_error(session.error or f"No {args.kind} info available")
            return EXIT_FAILURE

        by_api = languages_by_api(info)
        available = session.available_apis(args.kind) or list(by_api.keys())
        if args.api:
            if args.api not in available:
                console_manager.print_error(f"Unknown {args.kind} model: {args.api}")
                return EXIT_FAILURE
            by_api = {args.api: by_api.get(args.api, [])}
            available = [args.api]

        consolidated = consolidate_languages(by_api)
        matrix = build_compatibility_matrix(by_api, available)
        hidden = set(get_config().hidden_languages)
        logger.debug(f"{len(consolidated)} consolidated {args.kind} languages across {len(available)} model(s)")

        rows = []
        for language in consolidated:
            if language.id in hidden:
                continue
            apis = matrix.get(language.id, [])
            codes = ", ".join(
                f"{api}={get_best_variant_for_api(language, api)}" for api in apis
            )
            rows.append([language.id, language.display_name, codes])

        console_manager.print_table(
            f"{args.kind.title()} languages", ["Id", "Language", "Models"], rows
        )
        return EXIT_OK
