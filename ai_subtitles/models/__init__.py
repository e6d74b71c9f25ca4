"""Data models exchanged with the remote API."""

from .api import (
    APIResult,
    CompletedTaskData,
    CreditPackage,
    DetectedLanguage,
    FeatureSearchParams,
    JobResponse,
    JobStatus,
    LanguageDetectionResult,
    LanguageInfo,
    RecentMediaItem,
    SubtitleDownloadParams,
    SubtitleSearchParams,
    TranscriptionOptions,
    TranslationOptions,
)

__all__ = [
    "APIResult",
    "CompletedTaskData",
    "CreditPackage",
    "DetectedLanguage",
    "FeatureSearchParams",
    "JobResponse",
    "JobStatus",
    "LanguageDetectionResult",
    "LanguageInfo",
    "RecentMediaItem",
    "SubtitleDownloadParams",
    "SubtitleSearchParams",
    "TranscriptionOptions",
    "TranslationOptions",
]
