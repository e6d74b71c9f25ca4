"""Persisted user settings.

``AppConfig`` is what the session store writes under its config key. It is
mutated only through partial merges, so every field has a default and a
stored document missing newer fields still loads.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.types import NonNegativeInt, PositiveFloat


class CreditsInfo(BaseModel):
    """Credit counters mirrored from the last credits call."""

    used: NonNegativeInt = 0
    remaining: NonNegativeInt = 0


class AppConfig(BaseModel):
    """User-level settings, validated on every merge."""

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    username: str = Field("", description="Account username")
    password: str = Field("", repr=False, description="Account password")
    api_key: str = Field("", repr=False, description="Consumer API key")
    last_used_language: Optional[str] = Field(None, description="Last selected language code")
    debug_mode: bool = Field(False, description="Verbose developer diagnostics")
    debug_level: int = Field(1, ge=0, le=2, description="0=errors, 1=normal, 2=everything")
    cache_expiration_hours: PositiveFloat = Field(24.0, description="TTL for cached metadata")
    api_base_url: Optional[str] = Field(None, description="Override for the API base URL")
    api_url_parameter: Optional[str] = Field(None, description="Suffix appended to AI endpoint URLs")
    auto_language_detection: bool = Field(True, description="Detect language before transcribing")
    dark_mode: bool = False
    hide_recent_media_info_panel: bool = False
    default_filename_format: str = Field(
        "{filename}.{language_code}.{type}.{extension}",
        description="Pattern used to name downloaded results",
    )
    audio_language_detection_time: PositiveFloat = Field(
        240.0, description="Seconds of audio sent for language detection"
    )
    polling_interval_seconds: Optional[PositiveFloat] = Field(None, description="Job poll interval override")
    polling_timeout_seconds: Optional[PositiveFloat] = Field(None, description="Job poll timeout override")
    credits: CreditsInfo = Field(default_factory=CreditsInfo)

    @field_validator("api_base_url")
    @classmethod
    def validate_base_url(cls, v: Optional[str]) -> Optional[str]:
        """Strip trailing slashes and require an http(s) scheme."""
        if v is None or v == "":
            return None
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"api_base_url must start with http:// or https://, got: {v}")
        return v.rstrip("/")

    def merged(self, partial: Dict[str, Any]) -> "AppConfig":
        """Return a new config with ``partial`` shallow-merged over this one.

        Raises:
            pydantic.ValidationError: If the merged document is invalid
        """
        data = self.model_dump()
        data.update(partial)
        return AppConfig.model_validate(data)

    def has_credentials(self) -> bool:
        """True when username, password and API key are all present."""
        return bool(self.username and self.password and self.api_key)
