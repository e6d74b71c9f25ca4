"""Data models for API requests and responses."""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


class JobStatus(str, Enum):
    """Server-side lifecycle of an asynchronous job."""

    CREATED = "CREATED"
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"
    TIMEOUT = "TIMEOUT"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.ERROR, JobStatus.TIMEOUT)


@dataclass
class APIResult(Generic[T]):
    """Outcome of a non-job API call. Exactly one of data/error is meaningful."""

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: T) -> "APIResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "APIResult[T]":
        return cls(success=False, error=error)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: Dict[str, Any] = {"success": self.success}
        if self.success:
            result["data"] = self.data
        else:
            result["error"] = self.error
        return result


def _error_text(error: Any) -> str:
    """Server errors come as plain strings or as objects with a ``message``."""
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return str(error)


@dataclass
class JobResponse:
    """Response of a job-initiate or job-status endpoint."""

    status: JobStatus
    correlation_id: Optional[str] = None
    data: Any = None
    errors: List[str] = field(default_factory=list)
    translation: Optional[str] = None

    @property
    def error_message(self) -> str:
        return ", ".join(self.errors) if self.errors else "Unknown error"

    @classmethod
    def error(cls, message: str) -> "JobResponse":
        return cls(status=JobStatus.ERROR, errors=[message])

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobResponse":
        """Create from a server payload.

        Raises:
            ValueError: If the status is missing or not a known value
        """
        raw_status = data.get("status")
        try:
            status = JobStatus(str(raw_status).upper())
        except ValueError as e:
            raise ValueError(f"Unexpected job status: {raw_status!r}") from e

        errors = data.get("errors") or []
        if isinstance(errors, str):
            errors = [errors]
        return cls(
            status=status,
            correlation_id=data.get("correlation_id"),
            data=data.get("data"),
            errors=[_error_text(e) for e in errors],
            translation=data.get("translation"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: Dict[str, Any] = {"status": self.status.value}
        if self.correlation_id is not None:
            result["correlation_id"] = self.correlation_id
        if self.data is not None:
            result["data"] = self.data
        if self.errors:
            result["errors"] = list(self.errors)
        if self.translation is not None:
            result["translation"] = self.translation
        return result


@dataclass
class LanguageInfo:
    """A language as one provider names it."""

    language_code: str
    language_name: str

    def to_dict(self) -> Dict[str, Any]:
        return {"language_code": self.language_code, "language_name": self.language_name}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LanguageInfo":
        code = data.get("language_code") or data.get("code") or ""
        return cls(language_code=code, language_name=data.get("language_name") or data.get("name") or code)


@dataclass
class TranscriptionOptions:
    """Form fields for a transcription job."""

    language: str
    api: str
    return_content: bool = False


@dataclass
class TranslationOptions:
    """Form fields for a translation job."""

    translate_from: str
    translate_to: str
    api: str
    return_content: bool = False


@dataclass
class CompletedTaskData:
    """Payload of a COMPLETED transcription or translation job."""

    file_name: str = ""
    url: str = ""
    character_count: int = 0
    unit_price: float = 0.0
    total_price: float = 0.0
    credits_left: int = 0
    complete: int = 0
    task: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CompletedTaskData":
        """Create from dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known and v is not None})

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class DetectedLanguage:
    """Language reported by the detection endpoint."""

    w3c: str = ""
    name: str = ""
    native: str = ""
    iso_639_1: str = ""
    iso_639_2b: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DetectedLanguage":
        return cls(
            w3c=data.get("W3C", ""),
            name=data.get("name", ""),
            native=data.get("native", ""),
            iso_639_1=data.get("ISO_639_1", ""),
            iso_639_2b=data.get("ISO_639_2b", ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "W3C": self.w3c,
            "name": self.name,
            "native": self.native,
            "ISO_639_1": self.iso_639_1,
            "ISO_639_2b": self.iso_639_2b,
        }


@dataclass
class LanguageDetectionResult:
    """Payload of a COMPLETED language detection job."""

    type: str = "audio"
    format: Optional[str] = None
    language: Optional[DetectedLanguage] = None
    duration: Optional[float] = None
    media: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LanguageDetectionResult":
        language = data.get("language")
        return cls(
            type=data.get("type", "audio"),
            format=data.get("format"),
            language=DetectedLanguage.from_dict(language) if isinstance(language, dict) else None,
            duration=data.get("duration"),
            media=data.get("media"),
        )


@dataclass
class CreditPackage:
    """A purchasable credit bundle."""

    name: str
    value: str
    discount_percent: float = 0.0
    checkout_url: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CreditPackage":
        return cls(
            name=data.get("name", ""),
            value=str(data.get("value", "")),
            discount_percent=float(data.get("discount_percent") or 0),
            checkout_url=data.get("checkout_url", ""),
        )


@dataclass
class RecentMediaItem:
    """A media upload listed by the recent-media endpoint."""

    id: int
    time: int = 0
    time_str: str = ""
    files: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecentMediaItem":
        return cls(
            id=int(data.get("id") or 0),
            time=data.get("time", 0),
            time_str=data.get("time_str", ""),
            files=list(data.get("files") or []),
        )


def _query_dict(obj: Any) -> Dict[str, Any]:
    """Dataclass fields as query parameters, dropping empty values."""
    params: Dict[str, Any] = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        params[f.name] = value
    return params


@dataclass
class SubtitleSearchParams:
    """Query for the subtitle search proxy."""

    query: Optional[str] = None
    imdb_id: Optional[str] = None
    tmdb_id: Optional[str] = None
    parent_imdb_id: Optional[str] = None
    parent_tmdb_id: Optional[str] = None
    moviehash: Optional[str] = None
    languages: Optional[str] = None
    episode_number: Optional[int] = None
    season_number: Optional[int] = None
    year: Optional[int] = None
    type: Optional[str] = None
    page: Optional[int] = None
    order_by: Optional[str] = None
    order_direction: Optional[str] = None
    ai_translated: Optional[bool] = None
    foreign_parts_only: Optional[bool] = None
    hearing_impaired: Optional[bool] = None
    machine_translated: Optional[bool] = None

    def to_query(self) -> Dict[str, Any]:
        return _query_dict(self)


@dataclass
class FeatureSearchParams:
    """Query for the feature (movie/show) search proxy."""

    feature_id: Optional[int] = None
    full_search: Optional[bool] = None
    imdb_id: Optional[str] = None
    query: Optional[str] = None
    query_match: Optional[str] = None
    tmdb_id: Optional[str] = None
    type: Optional[str] = None
    year: Optional[int] = None

    def to_query(self) -> Dict[str, Any]:
        return _query_dict(self)


@dataclass
class SubtitleDownloadParams:
    """Body of a subtitle download request."""

    file_id: int
    sub_format: Optional[str] = None
    file_name: Optional[str] = None
    in_fps: Optional[float] = None
    out_fps: Optional[float] = None
    timeshift: Optional[float] = None
    force_download: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, omitting unset fields."""
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}
