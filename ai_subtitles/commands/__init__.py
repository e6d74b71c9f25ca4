"""Command modules for the CLI."""

from .auth_command import credits_command, login_command, logout_command
from .cli_utils import create_parser, setup_logging
from .config_command import config_command
from .info_command import languages_command
from .job_command import detect_language_command, transcribe_command, translate_command

__all__ = [
    "config_command",
    "create_parser",
    "credits_command",
    "detect_language_command",
    "languages_command",
    "login_command",
    "logout_command",
    "setup_logging",
    "transcribe_command",
    "translate_command",
]
