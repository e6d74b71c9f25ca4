"""Login, logout and credits commands."""
from __future__ import annotations

import argparse
import getpass
import logging
from typing import Optional

from ..ui.console import ConsoleManager
from .cli_utils import EXIT_FAILURE, EXIT_OK, open_session, run_async

logger = logging.getLogger(__name__)


def login_command(args: argparse.Namespace, console_manager: ConsoleManager) -> int:
    """Handle the login subcommand.

    Args:
        args: Command line arguments
        console_manager: Console manager for output

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    return run_async(_login(args, console_manager))


async def _login(args: argparse.Namespace, console_manager: ConsoleManager) -> int:
    async with open_session() as session:
        stored = session.session_store.get_config()
        username = args.username or stored.username
        api_key = args.api_key or stored.api_key or session.client.api_key
        password = args.password or stored.password
        if not password and username:
            password = getpass.getpass(f"Password for {username}: ")

        if not username or not password or not api_key:
            console_manager.print_error("Username, password and API key are required")
            return EXIT_FAILURE

        console_manager.print_stage("Login", "starting")
        if not await session.login(username, password, api_key):
            console_manager.print_stage("Login", "error")
            console_manager.print_error(session.error or "Login failed")
            return EXIT_FAILURE

        console_manager.print_stage("Login", "complete")
        remaining = session.credits.remaining if session.credits else "unknown"
        console_manager.print_summary(
            "Session",
            {
                "username": username,
                "credits_remaining": remaining,
                "transcription_models": ", ".join(session.available_apis("transcription")) or "-",
                "translation_models": ", ".join(session.available_apis("translation")) or "-",
            },
        )
        return EXIT_OK


def logout_command(args: argparse.Namespace, console_manager: ConsoleManager) -> int:
    return run_async(_logout(console_manager))


async def _logout(console_manager: ConsoleManager) -> int:
    async with open_session() as session:
        session.logout()
    console_manager.print_success("Logged out")
    return EXIT_OK


def credits_command(args: argparse.Namespace, console_manager: ConsoleManager) -> int:
    return run_async(_credits(console_manager))


async def _credits(console_manager: ConsoleManager) -> int:
    async with open_session() as session:
        if not await ensure_authenticated(session, console_manager):
            return EXIT_FAILURE
        credits = await session.refresh_credits()
        if credits is None:
            console_manager.print_error(session.error or "Failed to load credits")
            return EXIT_FAILURE
        console_manager.print_summary("Credits", {"remaining": credits.remaining})
        return EXIT_OK


async def ensure_authenticated(session, console_manager: Optional[ConsoleManager] = None) -> bool:
    """Authenticate from stored credentials; report the failure when it does not work."""
    if session.is_authenticated or await session.auto_login():
        return True
    message = session.error or "Not logged in. Run 'ai-subtitles login' first."
    logger.debug(f"Authentication unavailable: {message}")
    if console_manager:
        console_manager.print_error(message)
    return False
