"""Tests for response-shape normalization."""

import pytest

from ai_subtitles.api.normalize import (
    normalize_api_list,
    normalize_credits,
    normalize_info,
    normalize_job,
    normalize_language_list,
    normalize_languages_for_api,
    normalize_services,
    normalize_subtitle_download,
    normalize_token,
    unwrap_data,
)
from ai_subtitles.models.api import JobStatus
from ai_subtitles.network.errors import ResponseFormatError


class TestUnwrap:
    def test_wrapped_and_bare(self):
        assert unwrap_data({"data": [1, 2]}) == [1, 2]
        assert unwrap_data([1, 2]) == [1, 2]
        assert unwrap_data({"data": None, "x": 1}) == {"data": None, "x": 1}


class TestLanguages:
    """Test language list coercion."""

    def test_mixed_entries(self):
        """Test dicts, short keys and bare strings are all accepted."""
        payload = {
            "data": [
                {"language_code": "en", "language_name": "English"},
                {"code": "fr", "name": "French"},
                "de",
                {"language_name": "no code"},
                42,
            ]
        }
        assert normalize_language_list(payload) == [
            {"language_code": "en", "language_name": "English"},
            {"language_code": "fr", "language_name": "French"},
            {"language_code": "de", "language_name": "de"},
        ]

    def test_not_a_list(self):
        assert normalize_language_list({"data": {"en": "English"}}) == []

    def test_info_with_per_api_mapping(self):
        """Test apis and per-API languages are combined."""
        info = normalize_info(
            {"data": {"whisper": {}, "gemini": {}}},
            {"data": {"whisper": [{"language_code": "en"}], "gemini": ["de"]}},
        )
        assert info["apis"] == {"whisper": {}, "gemini": {}}
        assert info["languages"]["whisper"] == [{"language_code": "en", "language_name": "en"}]
        assert info["languages"]["gemini"] == [{"language_code": "de", "language_name": "de"}]

    def test_languages_for_api(self):
        """Test a single API is picked from a mapping and a flat list is shared."""
        mapping = {"data": {"deepl": [{"language_code": "de", "language_name": "German"}]}}
        assert normalize_languages_for_api(mapping, "deepl")[0]["language_code"] == "de"
        assert normalize_languages_for_api(mapping, "gpt") == []
        assert normalize_languages_for_api(["fr"], "gpt") == [{"language_code": "fr", "language_name": "fr"}]


class TestScalars:
    @pytest.mark.parametrize(
        "payload, expected",
        [
            ({"data": {"credits": 50}}, 50),
            ({"credits": "7"}, 7),
            ({"data": {"credits": 0}, "credits": 3}, 3),
            ({}, 0),
            ("oops", 0),
        ],
    )
    def test_credits(self, payload, expected):
        assert normalize_credits(payload) == expected

    def test_api_list(self):
        assert normalize_api_list({"data": {"deepl": {}, "gpt": {}}}) == ["deepl", "gpt"]
        assert normalize_api_list(["whisper"]) == ["whisper"]
        with pytest.raises(ResponseFormatError):
            normalize_api_list("whisper")

    def test_services(self):
        assert normalize_services({"data": {"translation": {}}}) == {"translation": {}}
        with pytest.raises(ResponseFormatError):
            normalize_services([1])

    def test_token(self):
        assert normalize_token({"token": "abc"}) == "abc"
        assert normalize_token({"data": {"token": "xyz"}}) == "xyz"
        assert normalize_token({"token": ""}) is None
        assert normalize_token(None) is None


class TestJobs:
    def test_job_status_case_insensitive(self):
        job = normalize_job({"status": "pending", "correlation_id": "abc"})
        assert job.status is JobStatus.PENDING
        assert job.correlation_id == "abc"

    def test_string_errors_become_list(self):
        job = normalize_job({"status": "ERROR", "errors": "Bad file"})
        assert job.errors == ["Bad file"]
        assert job.error_message == "Bad file"

    @pytest.mark.parametrize("payload", [{"status": "DONE"}, {}, ["COMPLETED"]])
    def test_malformed_job(self, payload):
        with pytest.raises(ResponseFormatError):
            normalize_job(payload)


class TestSubtitleDownload:
    def test_json_passes_through(self):
        body = {"link": "https://x/file.srt", "remaining": 5}
        assert normalize_subtitle_download(body, "application/json; charset=utf-8", "") == body

    def test_raw_text_wrapped(self):
        assert normalize_subtitle_download(None, "text/plain", "1\nHello\n") == {"file": "1\nHello\n"}
