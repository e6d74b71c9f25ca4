"""Config command: show, set and reset stored settings."""
from __future__ import annotations

import argparse
import json
import logging
from typing import Any, Union, get_args, get_origin

from ..config import AppConfig, get_config
from ..storage import SessionStore, SQLiteStorage
from ..ui.console import ConsoleManager
from .cli_utils import EXIT_FAILURE, EXIT_OK

logger = logging.getLogger(__name__)

SECRET_FIELDS = ("password", "api_key")
READ_ONLY_FIELDS = ("credits",)


def _open_storage() -> SQLiteStorage:
    config = get_config()
    config.ensure_dirs()
    return SQLiteStorage(config.storage_path)


def _is_text_setting(name: str) -> bool:
    """True for ``str`` and ``Optional[str]`` settings."""
    annotation = AppConfig.model_fields[name].annotation
    if get_origin(annotation) is Union:
        annotation = next((arg for arg in get_args(annotation) if arg is not type(None)), None)
    return annotation is str


def _parse_value(raw: str) -> Any:
    """Interpret ``raw`` as JSON when possible (numbers, booleans, null), else as text."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def redacted(app_config: AppConfig) -> dict:
    values = app_config.model_dump()
    for name in SECRET_FIELDS:
        if values.get(name):
            values[name] = "***REDACTED***"
    values["credits"] = f"{app_config.credits.remaining} remaining"
    return values


def config_command(args: argparse.Namespace, console_manager: ConsoleManager) -> int:
    """Handle the config subcommand.

    Args:
        args: Command line arguments
        console_manager: Console manager for output

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    storage = _open_storage()
    try:
        return _run_action(args, console_manager, SessionStore(storage))
    finally:
        storage.close()


def _run_action(args: argparse.Namespace, console_manager: ConsoleManager, store: SessionStore) -> int:
    if args.config_action == "show":
        console_manager.print_summary("Settings", redacted(store.get_config()))
        return EXIT_OK

    if args.config_action == "reset":
        store.reset_all_settings()
        console_manager.print_success("Settings and cached token removed")
        return EXIT_OK

    if args.key not in AppConfig.model_fields or args.key in READ_ONLY_FIELDS:
        console_manager.print_error(f"Unknown setting: {args.key}")
        return EXIT_FAILURE
    value = _parse_value(args.value)
    if _is_text_setting(args.key) and value is not None and not isinstance(value, str):
        value = args.value
    if not store.save_config({args.key: value}):
        console_manager.print_error(f"Invalid value for {args.key}: {args.value}")
        return EXIT_FAILURE
    logger.info(f"Setting {args.key} updated")
    console_manager.print_success(f"{args.key} updated")
    return EXIT_OK
