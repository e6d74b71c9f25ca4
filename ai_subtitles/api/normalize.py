"""Response-shape normalization, one function per endpoint.

The API wraps payloads under a ``data`` key on some endpoints and returns them
bare on others, and the same endpoint has been seen doing both. Every
shape-guess lives here so the client methods never inspect raw bodies.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..models.api import JobResponse
from ..network.errors import ResponseFormatError


def unwrap_data(payload: Any) -> Any:
    """Return ``payload["data"]`` when present, else the payload itself."""
    if isinstance(payload, dict) and payload.get("data") is not None:
        return payload["data"]
    return payload


def normalize_language_list(payload: Any) -> List[Dict[str, str]]:
    """Coerce a language list into ``[{language_code, language_name}]``."""
    items = unwrap_data(payload)
    if not isinstance(items, list):
        return []
    languages = []
    for item in items:
        if isinstance(item, dict):
            code = item.get("language_code") or item.get("code")
            if not code:
                continue
            languages.append({"language_code": code, "language_name": item.get("language_name") or item.get("name") or code})
        elif isinstance(item, str):
            languages.append({"language_code": item, "language_name": item})
    return languages


def normalize_languages(payload: Any) -> Any:
    """Languages of an info call: a flat list or a per-API mapping of lists."""
    languages = unwrap_data(payload)
    if isinstance(languages, dict):
        return {api: normalize_language_list(items) for api, items in languages.items()}
    return normalize_language_list(languages)


def normalize_info(apis_payload: Any, languages_payload: Any) -> Dict[str, Any]:
    """Combine the apis and languages calls into ``{apis, languages}``."""
    return {"apis": unwrap_data(apis_payload), "languages": normalize_languages(languages_payload)}


def normalize_languages_for_api(payload: Any, api_id: str) -> List[Dict[str, str]]:
    """Languages of a single API from a per-API mapping or a flat list."""
    languages = unwrap_data(payload)
    if isinstance(languages, dict):
        return normalize_language_list(languages.get(api_id) or [])
    return normalize_language_list(languages)


def normalize_api_list(payload: Any) -> List[str]:
    apis = unwrap_data(payload)
    if isinstance(apis, dict):
        return list(apis.keys())
    if isinstance(apis, list):
        return [str(api) for api in apis]
    raise ResponseFormatError("Invalid response format")


def normalize_services(payload: Any) -> Dict[str, Any]:
    services = unwrap_data(payload)
    if not isinstance(services, dict):
        raise ResponseFormatError("Invalid response format")
    return services


def _credit_count(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0


def normalize_credits(payload: Any) -> int:
    """Credit balance from ``{data: {credits}}`` or ``{credits}``.

    Fractional balances are truncated; absent or non-numeric values count as 0.
    """
    if not isinstance(payload, dict):
        return 0
    data = payload.get("data")
    if isinstance(data, dict) and data.get("credits"):
        return _credit_count(data["credits"])
    return _credit_count(payload.get("credits") or 0)


def normalize_credit_packages(payload: Any) -> List[Dict[str, Any]]:
    packages = unwrap_data(payload)
    if not isinstance(packages, list):
        raise ResponseFormatError("Invalid response format")
    return packages


def normalize_recent_media(payload: Any) -> List[Dict[str, Any]]:
    items = unwrap_data(payload)
    if not isinstance(items, list):
        raise ResponseFormatError("Invalid response format")
    return items


def normalize_job(payload: Any) -> JobResponse:
    """Parse a job-initiate or job-status body."""
    if not isinstance(payload, dict):
        raise ResponseFormatError("Invalid response format")
    try:
        return JobResponse.from_dict(payload)
    except ValueError as e:
        raise ResponseFormatError(str(e)) from e


def normalize_token(payload: Any) -> Optional[str]:
    """Bearer token from a login response, if any."""
    if not isinstance(payload, dict):
        return None
    token = payload.get("token")
    if not token and isinstance(payload.get("data"), dict):
        token = payload["data"].get("token")
    return token or None


def normalize_subtitle_download(payload: Any, content_type: str, text: str) -> Dict[str, Any]:
    """JSON bodies pass through; raw subtitle text is wrapped as ``{file}``."""
    if "application/json" in content_type and isinstance(payload, dict):
        return payload
    return {"file": text}
