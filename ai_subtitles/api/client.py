"""Authenticated client for the AI transcription/translation API.

Every method returns an :class:`APIResult` (or a :class:`JobResponse` for job
endpoints) instead of raising for expected failures: missing credentials,
HTTP errors, timeouts, rate limiting and offline conditions all come back as
a failure carrying a user-presentable message.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import IO, Any, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar, Union

import httpx

from ..cache.manager import CacheManager
from ..config import DEFAULT_API_BASE_URL, DEFAULT_USER_AGENT
from ..models.api import (
    APIResult,
    CreditPackage,
    FeatureSearchParams,
    JobResponse,
    RecentMediaItem,
    SubtitleDownloadParams,
    SubtitleSearchParams,
    TranscriptionOptions,
    TranslationOptions,
)
from ..network.errors import (
    APIRequestError,
    NetworkRequestError,
    extract_server_message,
    get_user_friendly_error_message,
)
from ..network.executor import RequestExecutor
from ..storage.session import SessionStore
from . import normalize

logger = logging.getLogger(__name__)

T = TypeVar("T")

FileInput = Union[str, Path, bytes, IO[bytes]]

API_KEY_REQUIRED = "API Key is required"
TOKEN_REQUIRED = "Authentication token is required"
AUTH_FAILURE_STATUSES = (401, 403)

# Cache keys
TRANSCRIPTION_INFO_KEY = "transcription_info"
TRANSLATION_INFO_KEY = "translation_info"
SERVICES_INFO_KEY = "services_info"
RECENT_MEDIA_KEY = "recent_media"
SUBTITLE_SEARCH_LANGUAGES_KEY = "subtitle_search_languages"

SessionExpiredCallback = Callable[[], None]


def _file_part(file: FileInput, default_name: str) -> Tuple[str, bytes]:
    """Read an upload into memory so every retry sends the same bytes."""
    if isinstance(file, (str, Path)):
        path = Path(file)
        return path.name, path.read_bytes()
    if isinstance(file, (bytes, bytearray)):
        return default_name, bytes(file)
    name = Path(getattr(file, "name", "") or default_name).name
    return name, file.read()


class AISubtitlesClient:
    """One method per remote capability.

    Args:
        session_store: Token and settings persistence
        cache: Read-through cache for metadata endpoints
        executor: Retry/connectivity wrapper for every call but login
        api_key: Consumer API key sent as ``Api-Key``
        base_url: API root, without the ``/ai`` segment
        api_url_parameter: Suffix appended to every AI endpoint URL
        http: Pre-built client (tests inject one with a mock transport)
        user_agent: ``User-Agent`` header value
        timeout: Per-request timeout in seconds
        connect_timeout: Connection-establishment timeout in seconds
    """

    def __init__(
        self,
        session_store: SessionStore,
        cache: CacheManager,
        executor: Optional[RequestExecutor] = None,
        api_key: str = "",
        base_url: str = DEFAULT_API_BASE_URL,
        api_url_parameter: str = "",
        http: Optional[httpx.AsyncClient] = None,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 60.0,
        connect_timeout: float = 10.0,
    ):
        self.session_store = session_store
        self.cache = cache
        self.executor = executor or RequestExecutor()
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.api_url_parameter = api_url_parameter
        self.user_agent = user_agent
        self.token = ""
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=connect_timeout),
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
        )
        self._login_task: Optional[asyncio.Future] = None
        self._session_expired_listeners: List[SessionExpiredCallback] = []

    async def __aenter__(self) -> "AISubtitlesClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    # ========== Configuration ==========

    def set_api_key(self, api_key: str) -> None:
        self.api_key = api_key

    def set_base_url(self, base_url: str) -> None:
        self.base_url = base_url.rstrip("/")

    def set_api_url_parameter(self, api_url_parameter: str) -> None:
        self.api_url_parameter = api_url_parameter

    def add_session_expired_listener(self, callback: SessionExpiredCallback) -> Callable[[], None]:
        """Call ``callback`` when an authenticated request is rejected with 401/403."""
        self._session_expired_listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._session_expired_listeners:
                self._session_expired_listeners.remove(callback)

        return unsubscribe

    # ========== Plumbing ==========

    def _ai_url(self, endpoint: str) -> str:
        return f"{self.base_url}/ai{endpoint}{self.api_url_parameter}"

    def _login_url(self, endpoint: str) -> str:
        return f"{self.base_url}{endpoint}{self.api_url_parameter}"

    def _headers(self, include_auth: bool = True) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Api-Key": self.api_key,
            "User-Agent": self.user_agent,
        }
        if include_auth and self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _send(
        self,
        method: str,
        url: str,
        include_auth: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send one request; non-2xx responses raise :class:`APIRequestError`."""
        headers = self._headers(include_auth)
        response = await self._http.request(method, url, headers=headers, **kwargs)
        if not response.is_success:
            raise APIRequestError(
                f"Request failed: {response.status_code} {response.reason_phrase}",
                status=response.status_code,
                response_text=response.text,
                authenticated="Authorization" in headers,
            )
        return response

    async def _send_json(self, method: str, url: str, include_auth: bool = True, **kwargs: Any) -> Any:
        response = await self._send(method, url, include_auth=include_auth, **kwargs)
        return response.json()

    def _failure_message(self, error: NetworkRequestError) -> str:
        """User-facing message; also invalidates the session on 401/403 to a token-bearing request."""
        original = error.original_error
        if (
            error.status in AUTH_FAILURE_STATUSES
            and isinstance(original, APIRequestError)
            and original.authenticated
        ):
            self._expire_session()
        return get_user_friendly_error_message(error)

    def _expire_session(self) -> None:
        logger.warning("Authenticated request rejected, clearing session token")
        self.token = ""
        self.session_store.clear_token()
        for callback in list(self._session_expired_listeners):
            try:
                callback()
            except Exception as e:
                logger.error(f"Session expired listener failed: {e}")

    async def _run(
        self,
        request_fn: Callable[[], Awaitable[T]],
        context: str,
        max_retries: Optional[int] = 3,
    ) -> APIResult[T]:
        try:
            data = await self.executor.execute_with_retry(request_fn, context, max_retries)
        except NetworkRequestError as e:
            return APIResult.fail(self._failure_message(e))
        return APIResult.ok(data)

    async def _cached(
        self,
        cache_key: str,
        request_fn: Callable[[], Awaitable[T]],
        context: str,
        max_retries: Optional[int] = 3,
    ) -> APIResult[T]:
        """Read-through: cache hit returns immediately, a miss fetches and stores."""
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug(f"Cache hit for {cache_key}")
            return APIResult.ok(cached)

        result = await self._run(request_fn, context, max_retries)
        if result.success:
            self.cache.set(cache_key, result.data)
        return result

    async def _run_job(
        self,
        request_fn: Callable[[], Awaitable[Any]],
        context: str,
        max_retries: Optional[int] = 3,
    ) -> JobResponse:
        async def request() -> JobResponse:
            return normalize.normalize_job(await request_fn())

        try:
            return await self.executor.execute_with_retry(request, context, max_retries)
        except NetworkRequestError as e:
            return JobResponse.error(self._failure_message(e))

    # ========== Authentication ==========

    async def login(self, username: str, password: str) -> APIResult[str]:
        """Exchange credentials for a bearer token.

        Always a single network attempt. Concurrent calls share the one
        in-flight attempt and all receive its result.
        """
        if not username or not password:
            return APIResult.fail("Username and password are required")
        if not self.api_key:
            return APIResult.fail("API Key is required for authentication")

        if self._login_task is None or self._login_task.done():
            self._login_task = asyncio.ensure_future(self._login_once(username, password))
        return await asyncio.shield(self._login_task)

    async def _login_once(self, username: str, password: str) -> APIResult[str]:
        logger.info(f"Attempting login with username: {username}")

        async def request() -> Any:
            return await self._send_json(
                "POST",
                self._login_url("/login"),
                include_auth=False,
                json={"username": username, "password": password},
            )

        try:
            payload = await self.executor.execute_with_retry(request, "Login", max_retries=0)
        except NetworkRequestError as e:
            message = self._login_error_message(e)
            logger.error(f"Login failed: {message}")
            return APIResult.fail(message)

        token = normalize.normalize_token(payload)
        if not token:
            return APIResult.fail("No token received from server")

        self.token = token
        self.session_store.save_token(token)
        logger.info("Login successful, token cached")
        return APIResult.ok(token)

    @staticmethod
    def _login_error_message(error: NetworkRequestError) -> str:
        original = error.original_error
        if not isinstance(original, APIRequestError):
            return get_user_friendly_error_message(error)

        message = extract_server_message(original.response_text) or original.response_text or str(original)
        if message.strip().lower() == "blocked":
            return "Account temporarily blocked by the API. Please wait a few minutes and try again."
        if original.status == 401:
            return "Invalid username or password."
        if original.status == 429:
            return "Too many login attempts. Please wait before trying again."
        return message

    def load_cached_token(self) -> bool:
        """Adopt a still-valid stored token, if any."""
        token = self.session_store.get_valid_token()
        if token:
            self.token = token
            logger.info("Using cached authentication token")
            return True
        return False

    def clear_cached_token(self) -> None:
        self.session_store.clear_token()
        self.token = ""
        logger.info("Cached token cleared")

    # ========== Model / language metadata ==========

    async def _get_info(self, kind: str, cache_key: str) -> APIResult[Dict[str, Any]]:
        if not self.api_key:
            return APIResult.fail(API_KEY_REQUIRED)

        async def request() -> Dict[str, Any]:
            apis, languages = await asyncio.gather(
                self._send_json("POST", self._ai_url(f"/info/{kind}_apis")),
                self._send_json("POST", self._ai_url(f"/info/{kind}_languages")),
            )
            return normalize.normalize_info(apis, languages)

        return await self._cached(cache_key, request, f"Get {kind.title()} Info")

    async def get_transcription_info(self) -> APIResult[Dict[str, Any]]:
        """Supported transcription APIs and their languages as ``{apis, languages}``."""
        return await self._get_info("transcription", TRANSCRIPTION_INFO_KEY)

    async def get_translation_info(self) -> APIResult[Dict[str, Any]]:
        """Supported translation APIs and their languages as ``{apis, languages}``."""
        return await self._get_info("translation", TRANSLATION_INFO_KEY)

    def invalidate_model_info(self) -> None:
        self.cache.remove(TRANSCRIPTION_INFO_KEY)
        self.cache.remove(TRANSLATION_INFO_KEY)

    async def get_transcription_languages_for_api(self, api_id: str) -> APIResult[List[Dict[str, str]]]:
        if not self.api_key:
            return APIResult.fail(API_KEY_REQUIRED)

        async def request() -> List[Dict[str, str]]:
            payload = await self._send_json(
                "POST", self._ai_url("/info/transcription_languages"), json={"api": api_id}
            )
            return normalize.normalize_languages_for_api(payload, api_id)

        return await self._cached(
            f"transcription_languages_{api_id}", request, f"Get Transcription Languages ({api_id})"
        )

    async def get_translation_languages_for_api(self, api_id: str) -> APIResult[List[Dict[str, str]]]:
        if not self.api_key:
            return APIResult.fail(API_KEY_REQUIRED)

        async def request() -> List[Dict[str, str]]:
            payload = await self._send_json(
                "POST", self._ai_url("/info/translation_languages"), json={"api": api_id}
            )
            return normalize.normalize_languages_for_api(payload, api_id)

        return await self._cached(
            f"translation_languages_{api_id}", request, f"Get Translation Languages ({api_id})"
        )

    async def get_translation_apis_for_language(
        self, source_language: str, target_language: str
    ) -> APIResult[List[str]]:
        if not self.api_key:
            return APIResult.fail(API_KEY_REQUIRED)

        async def request() -> List[str]:
            payload = await self._send_json("POST", self._ai_url("/info/translation_apis"))
            return normalize.normalize_api_list(payload)

        return await self._cached(
            f"translation_apis_{source_language}_{target_language}",
            request,
            f"Get Translation APIs ({source_language}-{target_language})",
        )

    async def get_services_info(self) -> APIResult[Dict[str, Any]]:
        """Pricing and capability details per service, keyed by capability."""
        if not self.api_key:
            return APIResult.fail(API_KEY_REQUIRED)

        async def request() -> Dict[str, Any]:
            payload = await self._send_json("GET", self._ai_url("/info/services"))
            return normalize.normalize_services(payload)

        return await self._cached(SERVICES_INFO_KEY, request, "Get Services Info")

    # ========== Account ==========

    async def get_credits(self) -> APIResult[int]:
        if not self.api_key:
            return APIResult.fail(API_KEY_REQUIRED)
        if not self.token:
            return APIResult.fail(TOKEN_REQUIRED)

        async def request() -> int:
            payload = await self._send_json("POST", self._ai_url("/credits"))
            return normalize.normalize_credits(payload)

        return await self._run(request, "Get Credits")

    async def get_credit_packages(self, email: Optional[str] = None) -> APIResult[List[CreditPackage]]:
        if not self.api_key:
            return APIResult.fail(API_KEY_REQUIRED)

        async def request() -> List[Dict[str, Any]]:
            payload = await self._send_json(
                "POST", self._ai_url("/credits/buy"), data={"email": email} if email else {}
            )
            return normalize.normalize_credit_packages(payload)

        result = await self._cached(f"credit_packages_{email or 'default'}", request, "Get Credit Packages")
        if not result.success:
            return result
        return APIResult.ok([CreditPackage.from_dict(item) for item in result.data])

    async def get_recent_media(self) -> APIResult[List[RecentMediaItem]]:
        if not self.api_key:
            return APIResult.fail(API_KEY_REQUIRED)
        if not self.token:
            return APIResult.fail(TOKEN_REQUIRED)

        async def request() -> List[Dict[str, Any]]:
            payload = await self._send_json("POST", self._ai_url("/recent_media"))
            return normalize.normalize_recent_media(payload)

        result = await self._cached(RECENT_MEDIA_KEY, request, "Get Recent Media")
        if not result.success:
            return result
        return APIResult.ok([RecentMediaItem.from_dict(item) for item in result.data])

    # ========== Jobs ==========

    def _job_credentials_error(self) -> Optional[JobResponse]:
        if not self.api_key:
            return JobResponse.error(API_KEY_REQUIRED)
        if not self.token:
            return JobResponse.error(TOKEN_REQUIRED)
        return None

    async def initiate_transcription(self, file: FileInput, options: TranscriptionOptions) -> JobResponse:
        """Upload media for transcription.

        Returns:
            A COMPLETED response with data, or a CREATED/PENDING one carrying
            the correlation id to poll
        """
        missing = self._job_credentials_error()
        if missing:
            return missing

        logger.info(f"Initiating transcription (api={options.api}, language={options.language})")
        self.cache.remove(RECENT_MEDIA_KEY)
        name, content = _file_part(file, "audio.mp3")
        form = {"language": options.language, "api": options.api}
        if options.return_content:
            form["return_content"] = "true"

        async def request() -> Any:
            return await self._send_json(
                "POST", self._ai_url("/transcribe"), files={"file": (name, content)}, data=form
            )

        return await self._run_job(request, "Initiate Transcription")

    async def initiate_translation(self, file: FileInput, options: TranslationOptions) -> JobResponse:
        missing = self._job_credentials_error()
        if missing:
            return missing

        logger.info(
            f"Initiating translation (api={options.api}, "
            f"{options.translate_from} -> {options.translate_to})"
        )
        self.cache.remove(RECENT_MEDIA_KEY)
        name, content = _file_part(file, "subtitle.srt")
        form = {
            "translate_from": options.translate_from,
            "translate_to": options.translate_to,
            "api": options.api,
        }
        if options.return_content:
            form["return_content"] = "true"

        async def request() -> Any:
            return await self._send_json(
                "POST", self._ai_url("/translate"), files={"file": (name, content)}, data=form
            )

        return await self._run_job(request, "Initiate Translation")

    async def detect_language(self, file: FileInput, duration: Optional[float] = None) -> JobResponse:
        missing = self._job_credentials_error()
        if missing:
            return missing

        name, content = _file_part(file, "audio.mp3")
        form = {"duration": str(duration)} if duration else {}

        async def request() -> Any:
            return await self._send_json(
                "POST", self._ai_url("/detect_language"), files={"file": (name, content)}, data=form
            )

        return await self._run_job(request, "Detect Language")

    async def _check_status(self, path: str, context: str) -> JobResponse:
        missing = self._job_credentials_error()
        if missing:
            return missing

        async def request() -> Any:
            return await self._send_json("POST", self._ai_url(path))

        return await self._run_job(request, context, max_retries=None)

    async def check_transcription_status(self, correlation_id: str) -> JobResponse:
        return await self._check_status(
            f"/transcribe/{correlation_id}", f"Check Transcription Status ({correlation_id})"
        )

    async def check_translation_status(self, correlation_id: str) -> JobResponse:
        return await self._check_status(
            f"/translation/{correlation_id}", f"Check Translation Status ({correlation_id})"
        )

    async def check_language_detection_status(self, correlation_id: str) -> JobResponse:
        return await self._check_status(
            f"/detectLanguage/{correlation_id}", f"Check Language Detection Status ({correlation_id})"
        )

    # ========== Downloads ==========

    async def download_file(self, url: str) -> APIResult[str]:
        """Fetch a produced file by its absolute URL."""

        async def request() -> str:
            response = await self._send("GET", url)
            return response.text

        return await self._run(request, "Download File")

    async def download_file_by_media_id(self, media_id: str, file_name: str) -> APIResult[str]:
        if not self.api_key:
            return APIResult.fail(API_KEY_REQUIRED)

        async def request() -> str:
            response = await self._send("GET", self._ai_url(f"/files/{media_id}/{file_name}"))
            return response.text

        return await self._run(request, f"Download File ({media_id}/{file_name})")

    # ========== Subtitle search ==========

    async def search_subtitles(self, params: SubtitleSearchParams) -> APIResult[Any]:
        if not self.api_key:
            return APIResult.fail(API_KEY_REQUIRED)

        async def request() -> Any:
            return await self._send_json("GET", self._ai_url("/proxy/subtitles"), params=params.to_query())

        return await self._run(request, "Search Subtitles")

    async def search_for_features(self, params: FeatureSearchParams) -> APIResult[Any]:
        if not self.api_key:
            return APIResult.fail(API_KEY_REQUIRED)

        async def request() -> Any:
            return await self._send_json("GET", self._ai_url("/proxy/features"), params=params.to_query())

        return await self._run(request, "Search Features")

    async def download_subtitle(self, params: SubtitleDownloadParams) -> APIResult[Dict[str, Any]]:
        if not self.api_key:
            return APIResult.fail(API_KEY_REQUIRED)
        if not self.token:
            return APIResult.fail(TOKEN_REQUIRED)

        async def request() -> Dict[str, Any]:
            response = await self._send("POST", self._ai_url("/proxy/download"), json=params.to_dict())
            content_type = response.headers.get("content-type", "")
            payload = response.json() if "application/json" in content_type else None
            return normalize.normalize_subtitle_download(payload, content_type, response.text)

        return await self._run(request, "Download Subtitle")

    async def get_subtitle_search_languages(self) -> APIResult[List[Dict[str, str]]]:
        if not self.api_key:
            return APIResult.fail(API_KEY_REQUIRED)

        async def request() -> List[Dict[str, str]]:
            payload = await self._send_json("GET", f"{self.base_url}/infos/languages", include_auth=False)
            return normalize.normalize_language_list(payload)

        return await self._cached(SUBTITLE_SEARCH_LANGUAGES_KEY, request, "Get Subtitle Search Languages")

    def clear_cache(self) -> None:
        self.cache.clear()
