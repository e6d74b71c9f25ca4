"""Tests for console UI components."""

import io
import json
import logging
import threading
from unittest.mock import MagicMock, patch

from rich.console import Console
from rich.logging import RichHandler

from ai_subtitles.jobs.poller import PollProgress
from ai_subtitles.models.api import APIResult
from ai_subtitles.ui.console import (
    TRUNCATED_MARKER,
    ConsoleManager,
    ThreadSafeConsole,
    clean_text,
    json_safe,
)


def lines(text):
    return [json.loads(line) for line in text.strip().splitlines()]


class TestConsoleManagerJson:
    """Test JSON-lines output mode."""

    def test_stage_goes_to_stderr(self):
        """Test JSON output mode for stage events."""
        manager = ConsoleManager(json_output=True)

        captured = io.StringIO()
        with patch("sys.stderr", captured):
            manager.print_stage("Login", "complete")

        data = json.loads(captured.getvalue())
        assert data["stage"] == "Login"
        assert data["status"] == "complete"
        assert "timestamp" in data

    def test_table_rows_keyed_by_column(self, capsys):
        """Test tables become lists of objects."""
        ConsoleManager(json_output=True).print_table(
            "Languages", ["ID", "Display Name"], [("english", "English"), ("german", "German")]
        )

        event = lines(capsys.readouterr().out)[0]
        assert event["type"] == "table"
        assert event["rows"] == [
            {"id": "english", "display_name": "English"},
            {"id": "german", "display_name": "German"},
        ]

    def test_summary_success_and_error_streams(self, capsys):
        """Test summaries and successes use stdout while errors use stderr."""
        manager = ConsoleManager(json_output=True)
        manager.print_summary("Credits", {"remaining": 5})
        manager.print_success("Saved")
        manager.print_error("Boom")

        captured = capsys.readouterr()
        out = lines(captured.out)
        assert [e["type"] for e in out] == ["summary", "success"]
        assert out[0]["results"] == {"remaining": 5}
        error = lines(captured.err)[0]
        assert (error["type"], error["message"]) == ("error", "Boom")

    def test_poll_status_reports_progress(self, capsys):
        """Test the JSON poll callback emits progress events."""
        manager = ConsoleManager(json_output=True)
        with manager.poll_status("Transcribing") as report:
            report(PollProgress("abc", 10, 2))

        event = lines(capsys.readouterr().err)[0]
        assert event["type"] == "progress"
        assert event["stage"] == "Transcribing"
        assert (event["correlation_id"], event["elapsed"], event["attempt"]) == ("abc", 10, 2)


class TestSanitization:
    """Test JSON value sanitization."""

    def test_control_characters_and_length(self):
        assert clean_text("a\x00b\x07c\td") == "abc\td"
        truncated = clean_text("y" * 600)
        assert len(truncated) == 500
        assert truncated.endswith("...")

    def test_numeric_edge_cases(self):
        assert json_safe(float("nan")) == 0.0
        assert json_safe(float("inf")) == 1e308
        assert json_safe(float("-inf")) == -1e308
        assert json_safe(True) is True
        assert json_safe(3) == 3

    def test_depth_limit(self):
        nested = current = {}
        for _ in range(15):
            current["child"] = {}
            current = current["child"]

        result = json_safe(nested)
        for _ in range(11):
            result = result["child"]
        assert result == TRUNCATED_MARKER

    def test_objects_with_to_dict(self):
        assert json_safe(APIResult.fail("nope")) == {"success": False, "error": "nope"}

    def test_emitted_messages_are_cleaned(self, capsys):
        """Test control characters never reach the JSON stream."""
        ConsoleManager(json_output=True).print_success("done\x07")
        assert lines(capsys.readouterr().out)[0]["message"] == "done"


class TestConsoleManagerRich:
    """Test Rich rendering mode."""

    def test_rich_console_created(self):
        manager = ConsoleManager(no_color=True)
        assert isinstance(manager.console, ThreadSafeConsole)

    def test_table_and_summary_render(self):
        """Test rich tables print through the wrapped console."""
        manager = ConsoleManager()
        buffer = io.StringIO()
        manager.console = ThreadSafeConsole(Console(file=buffer, width=100, no_color=True))

        manager.print_summary("Session", {"credits_remaining": 120})
        manager.print_error("Session expired")

        text = buffer.getvalue()
        assert "credits_remaining" in text
        assert "120" in text
        assert "ERROR: Session expired" in text

    def test_poll_status_updates_spinner(self):
        """Test the spinner text includes elapsed time."""
        manager = ConsoleManager()
        manager.console = MagicMock()
        status = manager.console.status.return_value.__enter__.return_value

        with manager.poll_status("Translating") as update:
            update(PollProgress("abc", 20, 3))

        status.update.assert_called_once_with("Translating... 20s elapsed")


class TestSetupLogging:
    def test_rich_handler_added_once(self):
        """Test repeated setup does not duplicate handlers."""
        logger = logging.getLogger("ai_subtitles.test_console_rich")
        manager = ConsoleManager(verbose=True)
        try:
            manager.setup_logging(logger)
            manager.setup_logging(logger)
            assert sum(isinstance(h, RichHandler) for h in logger.handlers) == 1
            assert logger.level == logging.DEBUG
        finally:
            logger.handlers.clear()
            logger.setLevel(logging.NOTSET)

    def test_json_mode_uses_plain_handler(self):
        logger = logging.getLogger("ai_subtitles.test_console_json")
        try:
            ConsoleManager(json_output=True).setup_logging(logger)
            assert len(logger.handlers) == 1
            assert not isinstance(logger.handlers[0], RichHandler)
            assert logger.level == logging.INFO
        finally:
            logger.handlers.clear()
            logger.setLevel(logging.NOTSET)


class TestThreadSafeConsole:
    def test_concurrent_prints(self):
        """Test prints from several threads all land."""
        buffer = io.StringIO()
        console = ThreadSafeConsole(Console(file=buffer, width=80))

        threads = [threading.Thread(target=console.print, args=(f"line {i}",)) for i in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(buffer.getvalue().strip().splitlines()) == 10
