"""Output filename generation from a user-defined pattern."""
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Optional

PLACEHOLDERS = (
    "{filename}",
    "{timestamp}",
    "{type}",
    "{format}",
    "{language_code}",
    "{language_name}",
    "{extension}",
)

_UNSAFE_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f]')


def sanitize_component(value: str, replacement: str = "_") -> str:
    """Replace characters that are invalid in a filename on common filesystems."""
    return _UNSAFE_CHARS.sub(replacement, value)


def extension_for(fmt: str) -> str:
    if fmt in ("srt", "vtt"):
        return fmt
    return "txt"


def generate_filename(
    pattern: str,
    original_filename: str,
    language_code: str,
    language_name: str,
    kind: str,
    fmt: str = "srt",
    now: Optional[datetime] = None,
) -> str:
    """Fill ``pattern`` placeholders for a produced subtitle file.

    Args:
        pattern: e.g. ``"{filename}.{language_code}.{type}.{extension}"``
        original_filename: Uploaded file name; its last extension is dropped
        language_code: Result language code
        language_name: Result language display name
        kind: ``transcription`` or ``translation``
        fmt: Output format; ``srt`` and ``vtt`` keep their extension, anything else is ``txt``
        now: Timestamp source, UTC now when omitted

    Returns:
        The filename with every placeholder replaced
    """
    stem = original_filename.rsplit(".", 1)[0] if "." in original_filename else original_filename
    stem = stem or original_filename
    moment = now or datetime.now(timezone.utc)
    values = {
        "{filename}": stem,
        "{timestamp}": moment.strftime("%Y-%m-%dT%H-%M-%S"),
        "{type}": kind,
        "{format}": fmt,
        "{language_code}": language_code,
        "{language_name}": language_name,
        "{extension}": extension_for(fmt),
    }
    result = pattern
    for placeholder in PLACEHOLDERS:
        result = result.replace(placeholder, sanitize_component(values[placeholder]))
    return result
