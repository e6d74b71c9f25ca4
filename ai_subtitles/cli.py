"""Command-line entry point for the AI subtitles client."""
from __future__ import annotations

import logging
import sys
from typing import List, Optional

from .commands import (
    config_command,
    create_parser,
    credits_command,
    detect_language_command,
    languages_command,
    login_command,
    logout_command,
    setup_logging,
    transcribe_command,
    translate_command,
)
from .config import get_config
from .ui.console import ConsoleManager

logger = logging.getLogger(__name__)

COMMANDS = {
    "login": login_command,
    "logout": logout_command,
    "credits": credits_command,
    "languages": languages_command,
    "transcribe": transcribe_command,
    "translate": translate_command,
    "detect-language": detect_language_command,
    "config": config_command,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    config = get_config()
    setup_logging(args.verbose, config)

    console_manager = ConsoleManager(
        verbose=args.verbose, json_output=args.json_output, no_color=config.no_color
    )
    if config.log_to_console:
        console_manager.setup_logging(logging.getLogger("ai_subtitles"))

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 1
    try:
        return handler(args, console_manager)
    except KeyboardInterrupt:
        logger.error("Operation cancelled by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
