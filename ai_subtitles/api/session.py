"""Application-level session on top of :class:`AISubtitlesClient`.

Holds the authenticated state a front end needs: credits, model info and the
last error, and keeps them consistent across login, auto-login, logout and
server-side session expiry.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..cache.manager import CacheManager
from ..config import Config, CreditsInfo, get_config
from ..jobs.poller import JobFailedError, JobPoller, ProgressCallback, run_job
from ..models.api import TranscriptionOptions, TranslationOptions
from ..network.executor import RequestExecutor
from ..storage.backends import SQLiteStorage
from ..storage.session import SessionStore
from ..utils.cancellation import CancellationToken
from .client import (
    SERVICES_INFO_KEY,
    TRANSCRIPTION_INFO_KEY,
    TRANSLATION_INFO_KEY,
    AISubtitlesClient,
    FileInput,
)

logger = logging.getLogger(__name__)

SESSION_EXPIRED_MESSAGE = "Session expired. Please log in again."
NOT_AUTHENTICATED_MESSAGE = "Not authenticated"


def get_language_name(info: Optional[Dict[str, Any]], api_id: str, code: str) -> str:
    """Display name of ``code`` as offered by ``api_id``; the code itself when unknown."""
    if not info:
        return code
    apis = info.get("apis")
    if isinstance(apis, dict) and isinstance(apis.get(api_id), dict):
        for language in apis[api_id].get("supported_languages") or []:
            if isinstance(language, dict) and language.get("language_code") == code:
                return language.get("language_name") or code
    languages = info.get("languages")
    if isinstance(languages, dict):
        languages = languages.get(api_id)
    for language in languages or []:
        if isinstance(language, dict) and language.get("language_code") == code:
            return language.get("language_name") or code
    return code


class APISession:
    """Login state, credits and model info for one user.

    Args:
        client: API client the session drives
        session_store: Persisted settings and token
        cache: Metadata cache shared with the client
        sleep: Awaitable sleep the job pollers wait with
    """

    def __init__(
        self,
        client: AISubtitlesClient,
        session_store: SessionStore,
        cache: CacheManager,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.session_store = session_store
        self.cache = cache
        self._sleep = sleep
        self.is_authenticated = False
        self.is_authenticating = False
        self.credits: Optional[CreditsInfo] = None
        self.transcription_info: Optional[Dict[str, Any]] = None
        self.translation_info: Optional[Dict[str, Any]] = None
        self.error: Optional[str] = None
        self._login_future: Optional[asyncio.Future] = None
        self._auto_login_attempted = False
        self._unsubscribe = client.add_session_expired_listener(self._on_session_expired)

    def close(self) -> None:
        self._unsubscribe()

    def _on_session_expired(self) -> None:
        logger.warning("Session expired, authentication cleared")
        self.is_authenticated = False
        self.credits = None
        self.error = SESSION_EXPIRED_MESSAGE

    # ========== Login / logout ==========

    async def login(self, username: str, password: str, api_key: Optional[str] = None) -> bool:
        """Authenticate and load credits and model info.

        The credentials are saved first so a later :meth:`auto_login` can
        reuse them. Concurrent calls share one attempt.
        """
        api_key = api_key if api_key is not None else self.session_store.get_config().api_key
        self.session_store.save_config({"username": username, "password": password, "api_key": api_key})

        if self._login_future is not None and not self._login_future.done():
            logger.debug("Login already in progress, waiting for it")
            return await asyncio.shield(self._login_future)

        self._login_future = asyncio.ensure_future(self._perform_login(username, password, api_key or ""))
        return await asyncio.shield(self._login_future)

    async def _perform_login(self, username: str, password: str, api_key: str) -> bool:
        self.is_authenticating = True
        self.error = None
        try:
            self.client.set_api_key(api_key)

            if self.client.load_cached_token():
                credits = await self.client.get_credits()
                if credits.success:
                    logger.info("Cached token is still valid")
                    await self._on_authenticated(credits.data)
                    return True
                logger.info("Cached token rejected, logging in again")
                self.client.clear_cached_token()

            result = await self.client.login(username, password)
            if not result.success:
                self.is_authenticated = False
                self.error = result.error or "Login failed"
                return False

            credits = await self.client.get_credits()
            await self._on_authenticated(credits.data if credits.success else None)
            return True
        finally:
            self.is_authenticating = False

    async def _on_authenticated(self, remaining: Optional[int]) -> None:
        self.is_authenticated = True
        self.error = None
        if remaining is not None:
            self._set_credits(remaining)
        await self.load_model_info()

    def _set_credits(self, remaining: int) -> None:
        self.credits = CreditsInfo(used=0, remaining=remaining)
        self.session_store.save_config({"credits": self.credits.model_dump()})

    async def auto_login(self) -> bool:
        """Log in with stored credentials, once per session lifetime."""
        if self._auto_login_attempted or self.is_authenticating:
            return self.is_authenticated
        self._auto_login_attempted = True

        config = self.session_store.get_config()
        if not config.has_credentials():
            logger.debug("Auto-login skipped, stored credentials incomplete")
            return False

        if config.api_base_url:
            self.client.set_base_url(config.api_base_url)
        if config.api_url_parameter:
            self.client.set_api_url_parameter(config.api_url_parameter)

        logger.info("Attempting auto-login with stored credentials")
        return await self.login(config.username, config.password, config.api_key)

    def logout(self) -> None:
        self.client.clear_cached_token()
        self.cache.clear()
        self.is_authenticated = False
        self.credits = None
        self.transcription_info = None
        self.translation_info = None
        self.error = None
        self._auto_login_attempted = False
        logger.info("Logged out")

    # ========== Refresh ==========

    async def refresh_credits(self) -> Optional[CreditsInfo]:
        if not self.is_authenticated:
            self.error = NOT_AUTHENTICATED_MESSAGE
            return None
        result = await self.client.get_credits()
        if result.success:
            self._set_credits(result.data)
        elif self.is_authenticated:
            self.error = result.error
        return self.credits

    async def load_model_info(self) -> None:
        """Load transcription then translation info, recording the first failure."""
        transcription = await self.client.get_transcription_info()
        if transcription.success:
            self.transcription_info = transcription.data
        else:
            logger.warning(f"Failed to load transcription info: {transcription.error}")
            self.error = self.error or transcription.error

        translation = await self.client.get_translation_info()
        if translation.success:
            self.translation_info = translation.data
        else:
            logger.warning(f"Failed to load translation info: {translation.error}")
            self.error = self.error or translation.error

    async def refresh_model_info(self) -> None:
        for key in (TRANSCRIPTION_INFO_KEY, TRANSLATION_INFO_KEY, SERVICES_INFO_KEY):
            self.cache.remove(key)
        await self.load_model_info()

    # ========== Jobs ==========

    def job_poller(self, kind: str, config: Optional[Config] = None) -> JobPoller:
        """Poller for ``kind`` (transcription, translation or detection).

        Interval and timeout come from the stored user settings when set,
        otherwise from the process configuration.
        """
        checks = {
            "transcription": (self.client.check_transcription_status, "Transcription"),
            "translation": (self.client.check_translation_status, "Translation"),
            "detection": (self.client.check_language_detection_status, "Language detection"),
        }
        if kind not in checks:
            raise ValueError(f"Unknown job kind: {kind}")
        check_status, label = checks[kind]
        config = config or get_config()
        stored = self.session_store.get_config()
        return JobPoller(
            check_status,
            interval=stored.polling_interval_seconds or config.polling_interval_seconds,
            timeout=stored.polling_timeout_seconds or config.polling_timeout_seconds,
            sleep=self._sleep,
            label=label,
        )

    async def transcribe(
        self,
        file: FileInput,
        options: TranscriptionOptions,
        cancel_token: Optional[CancellationToken] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Any:
        """Upload, poll and return the completed transcription data."""
        self._require_authenticated()
        return await run_job(
            lambda: self.client.initiate_transcription(file, options),
            self.job_poller("transcription"),
            cancel_token,
            on_progress,
        )

    async def translate(
        self,
        file: FileInput,
        options: TranslationOptions,
        cancel_token: Optional[CancellationToken] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Any:
        self._require_authenticated()
        return await run_job(
            lambda: self.client.initiate_translation(file, options),
            self.job_poller("translation"),
            cancel_token,
            on_progress,
        )

    async def detect_language(
        self,
        file: FileInput,
        duration: Optional[float] = None,
        cancel_token: Optional[CancellationToken] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Any:
        self._require_authenticated()
        if duration is None:
            duration = self.session_store.get_config().audio_language_detection_time
        return await run_job(
            lambda: self.client.detect_language(file, duration),
            self.job_poller("detection"),
            cancel_token,
            on_progress,
        )

    def _require_authenticated(self) -> None:
        if not self.is_authenticated and not self.is_authenticating:
            raise JobFailedError(NOT_AUTHENTICATED_MESSAGE)

    # ========== Lookups ==========

    def get_transcription_language_name(self, api_id: str, code: str) -> str:
        return get_language_name(self.transcription_info, api_id, code)

    def get_translation_language_name(self, api_id: str, code: str) -> str:
        return get_language_name(self.translation_info, api_id, code)

    def available_apis(self, kind: str = "transcription") -> List[str]:
        info = self.transcription_info if kind == "transcription" else self.translation_info
        apis = (info or {}).get("apis")
        if isinstance(apis, dict):
            return list(apis.keys())
        if isinstance(apis, list):
            return [str(api) for api in apis]
        return []


def create_session(config: Optional[Config] = None) -> APISession:
    """Build the storage, cache, executor, client and session stack from ``config``.

    Stored user settings override the environment for the base URL and URL
    parameter.
    """
    config = config or get_config()
    config.ensure_dirs()
    storage = SQLiteStorage(config.storage_path)
    session_store = SessionStore(storage)
    cache = CacheManager(storage, session_store)
    stored = session_store.get_config()

    client = AISubtitlesClient(
        session_store,
        cache,
        executor=RequestExecutor(),
        api_key=stored.api_key or config.api_key,
        base_url=stored.api_base_url or config.api_base_url,
        api_url_parameter=stored.api_url_parameter or config.api_url_parameter,
        user_agent=config.user_agent,
        timeout=config.request_timeout,
        connect_timeout=config.connect_timeout,
    )
    client.load_cached_token()
    return APISession(client, session_store, cache)
