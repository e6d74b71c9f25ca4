"""Tests for APISession login state, model info and job orchestration."""

import asyncio

import pytest

from ai_subtitles.api.session import (
    NOT_AUTHENTICATED_MESSAGE,
    SESSION_EXPIRED_MESSAGE,
    create_session,
    get_language_name,
)
from ai_subtitles.api.client import TRANSCRIPTION_INFO_KEY
from ai_subtitles.config import get_config
from ai_subtitles.jobs.poller import JobFailedError
from ai_subtitles.models.api import TranscriptionOptions
from ai_subtitles.storage.session import SessionStore
from tests.mocks.api_mocks import (
    DETECTION_COMPLETED_RESPONSE,
    JOB_COMPLETED_RESPONSE,
    JOB_CREATED_RESPONSE,
    JOB_PENDING_RESPONSE,
    LOGIN_INVALID_RESPONSE,
    LOGIN_SUCCESS_RESPONSE,
)


@pytest.fixture
def logged_in_api(mock_api):
    mock_api.add_model_info()
    mock_api.add("POST", "/login", LOGIN_SUCCESS_RESPONSE)
    return mock_api


class TestLogin:
    @pytest.mark.asyncio
    async def test_login_loads_credits_and_model_info(self, api_session, logged_in_api, session_store):
        assert await api_session.login("alice", "secret", "test-api-key") is True

        assert api_session.is_authenticated is True
        assert api_session.is_authenticating is False
        assert api_session.credits.remaining == 120
        assert set(api_session.transcription_info["apis"]) == {"whisper", "gemini"}
        assert api_session.translation_info["apis"] == ["deepl", "gpt"]
        assert api_session.error is None

        stored = session_store.get_config()
        assert stored.username == "alice"
        assert stored.api_key == "test-api-key"
        assert stored.credits.remaining == 120

    @pytest.mark.asyncio
    async def test_login_survives_non_integer_credits(self, api_session, logged_in_api):
        logged_in_api.add("POST", "/ai/credits", {"data": {"credits": "12.5"}})

        assert await api_session.login("alice", "secret", "test-api-key") is True

        assert api_session.is_authenticated is True
        assert api_session.credits.remaining == 12

    @pytest.mark.asyncio
    async def test_concurrent_logins_make_one_request(self, api_session, logged_in_api):
        results = await asyncio.gather(
            api_session.login("alice", "secret", "test-api-key"),
            api_session.login("alice", "secret", "test-api-key"),
        )

        assert results == [True, True]
        assert len(logged_in_api.calls("POST", "/login")) == 1

    @pytest.mark.asyncio
    async def test_valid_cached_token_skips_login(self, api_session, logged_in_api, session_store):
        session_store.save_token("cached-token")

        assert await api_session.login("alice", "secret", "test-api-key") is True

        assert logged_in_api.calls("POST", "/login") == []
        credits_call = logged_in_api.calls("POST", "/ai/credits")[0]
        assert credits_call.headers["Authorization"] == "Bearer cached-token"

    @pytest.mark.asyncio
    async def test_rejected_cached_token_falls_back_to_login(self, api_session, mock_api, session_store):
        mock_api.add_model_info()
        mock_api.add("POST", "/ai/credits", (401, {"error": "expired"}), {"data": {"credits": 120}})
        mock_api.add("POST", "/login", LOGIN_SUCCESS_RESPONSE)
        session_store.save_token("stale-token")

        assert await api_session.login("alice", "secret", "test-api-key") is True

        assert len(mock_api.calls("POST", "/login")) == 1
        assert session_store.get_valid_token() == "fresh-token"
        assert api_session.error is None

    @pytest.mark.asyncio
    async def test_failed_login_sets_error(self, api_session, mock_api):
        mock_api.add("POST", "/login", (401, LOGIN_INVALID_RESPONSE))

        assert await api_session.login("alice", "wrong", "test-api-key") is False

        assert api_session.is_authenticated is False
        assert api_session.error == "Invalid username or password."
        assert api_session.credits is None

    @pytest.mark.asyncio
    async def test_model_info_failure_is_recorded(self, api_session, mock_api):
        mock_api.add("POST", "/login", LOGIN_SUCCESS_RESPONSE)
        mock_api.add("POST", "/ai/credits", {"credits": 5})

        assert await api_session.login("alice", "secret", "test-api-key") is True

        assert api_session.transcription_info is None
        assert api_session.error == "Not found"


class TestAutoLogin:
    @pytest.mark.asyncio
    async def test_skipped_without_stored_credentials(self, api_session, mock_api):
        assert await api_session.auto_login() is False
        assert mock_api.requests == []

    @pytest.mark.asyncio
    async def test_uses_stored_credentials_once(self, api_session, logged_in_api, session_store):
        session_store.save_config({"username": "alice", "password": "secret", "api_key": "test-api-key"})

        assert await api_session.auto_login() is True
        assert await api_session.auto_login() is True
        assert len(logged_in_api.calls("POST", "/login")) == 1

    @pytest.mark.asyncio
    async def test_applies_stored_url_parameter(self, api_session, logged_in_api, session_store):
        session_store.save_config(
            {"username": "alice", "password": "secret", "api_key": "k", "api_url_parameter": "?env=beta"}
        )
        await api_session.auto_login()
        assert logged_in_api.calls("POST", "/login")[0].url.params["env"] == "beta"

    @pytest.mark.asyncio
    async def test_logout_allows_another_attempt(self, api_session, logged_in_api, session_store):
        session_store.save_config({"username": "alice", "password": "secret", "api_key": "test-api-key"})
        await api_session.auto_login()
        api_session.logout()
        await api_session.auto_login()
        assert len(logged_in_api.calls("POST", "/login")) == 2


class TestLogoutAndExpiry:
    @pytest.mark.asyncio
    async def test_logout_clears_everything(self, api_session, logged_in_api, session_store, cache):
        await api_session.login("alice", "secret", "test-api-key")

        api_session.logout()

        assert api_session.is_authenticated is False
        assert api_session.credits is None
        assert api_session.transcription_info is None
        assert api_session.client.token == ""
        assert session_store.get_valid_token() is None
        assert cache.get(TRANSCRIPTION_INFO_KEY) is None
        assert session_store.get_config().username == "alice"

    @pytest.mark.asyncio
    async def test_server_side_expiry(self, api_session, mock_api):
        mock_api.add_model_info()
        mock_api.add("POST", "/login", LOGIN_SUCCESS_RESPONSE)
        await api_session.login("alice", "secret", "test-api-key")
        mock_api.add("POST", "/ai/credits", (401, {"error": "Unauthorized"}))

        await api_session.refresh_credits()

        assert api_session.is_authenticated is False
        assert api_session.credits is None
        assert api_session.error == SESSION_EXPIRED_MESSAGE

    @pytest.mark.asyncio
    async def test_refresh_credits_requires_login(self, api_session, mock_api):
        assert await api_session.refresh_credits() is None
        assert api_session.error == NOT_AUTHENTICATED_MESSAGE
        assert mock_api.requests == []

    def test_close_unsubscribes(self, api_session):
        api_session.close()
        api_session.is_authenticated = True
        api_session.client._expire_session()
        assert api_session.is_authenticated is True


class TestModelInfo:
    @pytest.mark.asyncio
    async def test_refresh_bypasses_cache(self, api_session, logged_in_api):
        await api_session.login("alice", "secret", "test-api-key")
        await api_session.load_model_info()
        assert len(logged_in_api.calls("POST", "/ai/info/transcription_apis")) == 1

        await api_session.refresh_model_info()
        assert len(logged_in_api.calls("POST", "/ai/info/transcription_apis")) == 2

    @pytest.mark.asyncio
    async def test_language_names_and_apis(self, api_session, logged_in_api):
        await api_session.login("alice", "secret", "test-api-key")

        assert api_session.get_transcription_language_name("whisper", "en-GB") == "English (UK)"
        assert api_session.get_transcription_language_name("gemini", "xx") == "xx"
        assert api_session.get_translation_language_name("deepl", "fr") == "French"
        assert sorted(api_session.available_apis("transcription")) == ["gemini", "whisper"]
        assert api_session.available_apis("translation") == ["deepl", "gpt"]

    def test_language_name_from_supported_languages(self):
        info = {"apis": {"whisper": {"supported_languages": [{"language_code": "de", "language_name": "Deutsch"}]}}}
        assert get_language_name(info, "whisper", "de") == "Deutsch"
        assert get_language_name(None, "whisper", "de") == "de"


class TestJobs:
    @pytest.mark.asyncio
    async def test_transcribe_polls_until_complete(self, api_session, logged_in_api, clock):
        logged_in_api.add("POST", "/ai/transcribe", JOB_CREATED_RESPONSE)
        logged_in_api.add("POST", "/ai/transcribe/abc", JOB_PENDING_RESPONSE, JOB_COMPLETED_RESPONSE)
        await api_session.login("alice", "secret", "test-api-key")
        events = []

        data = await api_session.transcribe(
            b"audio", TranscriptionOptions(language="en", api="whisper"), on_progress=events.append
        )

        assert data["file_name"] == "talk.en.srt"
        assert len(logged_in_api.calls("POST", "/ai/transcribe/abc")) == 2
        assert clock.sleeps == [10.0]
        assert [event.attempt for event in events] == [1, 2]

    @pytest.mark.asyncio
    async def test_transcribe_requires_authentication(self, api_session, mock_api):
        with pytest.raises(JobFailedError, match=NOT_AUTHENTICATED_MESSAGE):
            await api_session.transcribe(b"audio", TranscriptionOptions(language="en", api="whisper"))
        assert mock_api.requests == []

    @pytest.mark.asyncio
    async def test_detect_language_uses_stored_duration(self, api_session, logged_in_api, session_store):
        logged_in_api.add("POST", "/ai/detect_language", DETECTION_COMPLETED_RESPONSE)
        await api_session.login("alice", "secret", "test-api-key")
        session_store.save_config({"audio_language_detection_time": 60})

        data = await api_session.detect_language(b"audio")

        assert data["language"]["ISO_639_1"] == "en"
        assert b"60.0" in logged_in_api.calls("POST", "/ai/detect_language")[0].content

    def test_poller_overrides(self, api_session, session_store):
        assert api_session.job_poller("translation").interval == 10.0
        session_store.save_config({"polling_interval_seconds": 2, "polling_timeout_seconds": 60})
        poller = api_session.job_poller("detection")
        assert poller.interval == 2
        assert poller.timeout == 60
        assert poller.label == "Language detection"

    def test_unknown_job_kind(self, api_session):
        with pytest.raises(ValueError):
            api_session.job_poller("dubbing")


class TestCreateSession:
    @pytest.mark.asyncio
    async def test_builds_persistent_stack(self, tmp_path):
        config = get_config()
        first = create_session(config)
        first.session_store.save_config({"api_key": "stored-key", "api_url_parameter": "?x=1"})
        first.session_store.save_token("persisted-token")
        await first.client.close()

        second = create_session(config)
        try:
            assert config.storage_path.exists()
            assert second.client.api_key == "stored-key"
            assert second.client.api_url_parameter == "?x=1"
            assert second.client.token == "persisted-token"
            assert isinstance(second.session_store, SessionStore)
        finally:
            await second.client.close()
