"""Console output for the CLI with Rich integration.

The ConsoleManager adapts output to:
- Rich panels, tables and spinners when writing to a terminal
- JSON lines for machine-readable output (scripts, CI)
"""

from __future__ import annotations

import json
import logging
import math
import re
import sys
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Iterable, Iterator, Sequence

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..jobs.poller import PollProgress

MAX_JSON_FIELD_LENGTH = 500
MAX_JSON_DEPTH = 10
TRUNCATED_MARKER = "[TRUNCATED: Max depth exceeded]"
STAGE_STYLES = {"starting": "blue", "complete": "green", "error": "red", "warning": "yellow"}

# Control characters other than tab, newline and carriage return
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


def clean_text(value: str, limit: int = MAX_JSON_FIELD_LENGTH) -> str:
    """Strip control characters and cap the length of a JSON string field."""
    value = _CONTROL_CHARS.sub("", value)
    return value if len(value) <= limit else value[: limit - 3] + "..."


def json_safe(value: Any, depth: int = 0) -> Any:
    """Copy of ``value`` that json.dumps accepts, bounded in depth and size."""
    if depth > MAX_JSON_DEPTH:
        return TRUNCATED_MARKER
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, str):
        return clean_text(value)
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return 0.0 if math.isnan(value) else math.copysign(1e308, value)
        return value
    if isinstance(value, dict):
        return {str(key): json_safe(item, depth + 1) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe(item, depth + 1) for item in value]
    if hasattr(value, "to_dict"):
        return json_safe(value.to_dict(), depth + 1)
    return clean_text(str(value))


class ThreadSafeConsole:
    """Serializes access to a Rich Console shared by worker threads."""

    def __init__(self, console: Console):
        self.raw = console
        self._lock = threading.RLock()

    def print(self, *args, **kwargs):
        with self._lock:
            self.raw.print(*args, **kwargs)

    @contextmanager
    def status(self, *args, **kwargs):
        with self._lock, self.raw.status(*args, **kwargs) as status:
            yield status


class ConsoleManager:
    """Routes CLI output to Rich renderables or JSON lines.

    In JSON mode results (tables, summaries, successes) go to stdout while
    stages, progress and errors go to stderr, so stdout stays parseable.
    """

    def __init__(self, verbose: bool = False, json_output: bool = False, no_color: bool = False):
        self.verbose = verbose
        self.json_output = json_output
        self.console = (
            None
            if json_output
            else ThreadSafeConsole(Console(stderr=True, no_color=no_color, highlight=False))
        )

    def setup_logging(self, logger: logging.Logger) -> None:
        """Attach a Rich (or plain JSON-mode) handler to ``logger`` unless one is present."""
        if self.json_output:
            if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
                handler = logging.StreamHandler(sys.stderr)
                handler.setFormatter(logging.Formatter("%(message)s"))
                logger.addHandler(handler)
        elif not any(isinstance(h, RichHandler) for h in logger.handlers):
            logger.addHandler(
                RichHandler(
                    console=self.console.raw if self.console else None,
                    show_path=self.verbose,
                    rich_tracebacks=True,
                )
            )
        logger.setLevel(logging.DEBUG if self.verbose else logging.INFO)

    def print_stage(self, stage: str, status: str = "starting") -> None:
        if self.json_output:
            self._emit({"stage": stage, "status": status}, stream=sys.stderr)
        elif self.console:
            style = STAGE_STYLES.get(status, "white")
            self.console.print(Panel(f"[bold]{stage}[/bold]", style=style, padding=(0, 1)))

    def print_table(self, title: str, columns: Sequence[str], rows: Iterable[Sequence[Any]]) -> None:
        """Print rows as a table, or as a list of objects in JSON mode."""
        rows = [list(row) for row in rows]
        if self.json_output:
            keys = [column.lower().replace(" ", "_") for column in columns]
            self._emit({"type": "table", "title": title, "rows": [dict(zip(keys, row)) for row in rows]})
        elif self.console:
            table = Table(title=title)
            for index, column in enumerate(columns):
                table.add_column(column, style="cyan" if index == 0 else None)
            for row in rows:
                table.add_row(*map(str, row))
            self.console.print(table)

    def print_summary(self, title: str, values: dict[str, Any]) -> None:
        """Print key/value pairs as a two-column table."""
        if self.json_output:
            self._emit({"type": "summary", "title": title, "results": values})
        else:
            self.print_table(title, ["Field", "Value"], values.items())

    def print_success(self, message: str) -> None:
        if self.json_output:
            self._emit({"type": "success", "message": message})
        elif self.console:
            self.console.print(f"[green]{message}[/green]")

    def print_error(self, message: str) -> None:
        if self.json_output:
            self._emit({"type": "error", "message": message}, stream=sys.stderr)
        elif self.console:
            self.console.print(f"[red]ERROR: {message}[/red]")

    @contextmanager
    def poll_status(self, description: str) -> Iterator[Callable[[PollProgress], None]]:
        """Spinner for a polled job; yields a callback accepting :class:`PollProgress`."""
        if self.console is None:

            def report(progress: PollProgress) -> None:
                self._emit(
                    {
                        "type": "progress",
                        "stage": description,
                        "correlation_id": progress.correlation_id,
                        "elapsed": progress.elapsed_seconds,
                        "attempt": progress.attempt,
                    },
                    stream=sys.stderr,
                )

            yield report
            return

        with self.console.status(f"{description}...") as status:
            yield lambda progress: status.update(f"{description}... {progress.elapsed_seconds:.0f}s elapsed")

    def _emit(self, payload: dict[str, Any], stream: Any = None) -> None:
        event = json_safe({"timestamp": datetime.now().isoformat(), **payload})
        print(json.dumps(event), file=stream or sys.stdout)
