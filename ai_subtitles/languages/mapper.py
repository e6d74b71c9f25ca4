"""Language consolidation across providers.

Each transcription or translation provider publishes its own language codes
(``en``, ``en-US``, ``en_uk`` ...). Codes that name the same language are
grouped under one canonical id so a single list can be shown to the user.
Region variants merge; script-distinct variants (Simplified vs Traditional
Chinese) and a handful of regional standards stay separate.
"""
from __future__ import annotations

import unicodedata
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

AUTO_DETECT_ID = "auto-detect"

LANGUAGE_CONSOLIDATION_MAP: Dict[str, str] = {
    # German
    "de": "german",
    "de-DE": "german",
    "de-CH": "german-ch",
    # English
    "en": "english",
    "en-US": "english",
    "en-GB": "english",
    "en-AU": "english",
    "en-IE": "english",
    "en-NZ": "english",
    "en-ZA": "english",
    "en-IN": "english",
    "en-AB": "english",
    "en-WL": "english",
    "en_us": "english",
    "en_uk": "english",
    "en_au": "english",
    # French
    "fr": "french",
    "fr-FR": "french",
    "fr-CA": "french-ca",
    # Spanish
    "es": "spanish",
    "es-ES": "spanish",
    "es-US": "spanish",
    "es-MX": "spanish-mx",
    "es-419": "spanish-419",
    # Portuguese
    "pt": "portuguese",
    "pt-PT": "portuguese",
    "pt-BR": "portuguese-br",
    # Chinese, split by script
    "zh": "chinese-simplified",
    "zh-CN": "chinese-simplified",
    "zh-TW": "chinese-traditional",
    "zh-HK": "chinese-traditional",
    "ar": "arabic",
    "ar-AE": "arabic",
    "ar-SA": "arabic",
    "it": "italian",
    "it-IT": "italian",
    "nl": "dutch",
    "nl-NL": "dutch",
    "ru": "russian",
    "ru-RU": "russian",
    "ja": "japanese",
    "ja-JP": "japanese",
    "ko": "korean",
    "ko-KR": "korean",
    # Norwegian, including Bokmal and Nynorsk
    "no": "norwegian",
    "no-NO": "norwegian",
    "nb-NO": "norwegian",
    "nn": "norwegian",
    "auto": AUTO_DETECT_ID,
}

CONSOLIDATED_DISPLAY_NAMES: Dict[str, str] = {
    AUTO_DETECT_ID: "Auto-detect",
    "german": "German",
    "german-ch": "German (Switzerland)",
    "english": "English",
    "french": "French",
    "french-ca": "French (Canada)",
    "spanish": "Spanish",
    "spanish-mx": "Spanish (Mexico)",
    "spanish-419": "Spanish (Latin America)",
    "portuguese": "Portuguese",
    "portuguese-br": "Portuguese (Brazil)",
    "chinese-simplified": "Chinese (Simplified)",
    "chinese-traditional": "Chinese (Traditional)",
    "arabic": "Arabic",
    "italian": "Italian",
    "dutch": "Dutch",
    "russian": "Russian",
    "japanese": "Japanese",
    "korean": "Korean",
    "norwegian": "Norwegian",
}

LanguagesByApi = Mapping[str, Iterable[Mapping[str, Any]]]


@dataclass(frozen=True)
class LanguageVariant:
    """One provider's code for a language."""

    code: str
    name: str
    api: str


@dataclass
class ConsolidatedLanguage:
    """A canonical language and every provider code that maps to it."""

    id: str
    display_name: str
    variants: List[LanguageVariant] = field(default_factory=list)

    @property
    def apis(self) -> List[str]:
        seen: List[str] = []
        for variant in self.variants:
            if variant.api not in seen:
                seen.append(variant.api)
        return seen

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "variants": [
                {"code": v.code, "name": v.name, "api": v.api} for v in self.variants
            ],
        }


def canonical_id(code: str) -> str:
    """Canonical id for ``code``; unmapped codes are their own id."""
    return LANGUAGE_CONSOLIDATION_MAP.get(code, code)


def _sort_key(language: ConsolidatedLanguage):
    name = unicodedata.normalize("NFKD", language.display_name)
    stripped = "".join(ch for ch in name if not unicodedata.combining(ch))
    return (language.id != AUTO_DETECT_ID, stripped.casefold(), language.display_name)


def _entries(languages: Iterable[Mapping[str, Any]]) -> Iterable[tuple]:
    for language in languages or []:
        code = language.get("language_code") or language.get("code")
        if not code:
            continue
        yield code, language.get("language_name") or language.get("name") or code


def consolidate_languages(languages_by_api: LanguagesByApi) -> List[ConsolidatedLanguage]:
    """Group provider languages under canonical ids.

    Every distinct ``(code, api)`` pair becomes exactly one variant. The
    display name comes from the canonical table, or from the first-seen
    variant for unmapped codes. ``auto-detect`` sorts first, the rest
    alphabetically by display name.
    """
    consolidated: Dict[str, ConsolidatedLanguage] = {}
    for api, languages in languages_by_api.items():
        for code, name in _entries(languages):
            language_id = canonical_id(code)
            entry = consolidated.get(language_id)
            if entry is None:
                entry = ConsolidatedLanguage(
                    id=language_id,
                    display_name=CONSOLIDATED_DISPLAY_NAMES.get(language_id, name),
                )
                consolidated[language_id] = entry
            if not any(v.code == code and v.api == api for v in entry.variants):
                entry.variants.append(LanguageVariant(code=code, name=name, api=api))

    return sorted(consolidated.values(), key=_sort_key)


def build_compatibility_matrix(
    languages_by_api: LanguagesByApi, available_apis: Iterable[str]
) -> Dict[str, List[str]]:
    """Map each canonical id to the available APIs supporting it, in first-seen order."""
    matrix: Dict[str, List[str]] = {}
    for api in available_apis:
        for code, _name in _entries(languages_by_api.get(api) or []):
            apis = matrix.setdefault(canonical_id(code), [])
            if api not in apis:
                apis.append(api)
    return matrix


def get_best_variant_for_api(language: ConsolidatedLanguage, api: str) -> Optional[str]:
    """Code to send to ``api`` for ``language``.

    Prefers a code without a region or script suffix, else the first one
    the API offers. None when the API does not support the language.
    """
    api_variants = [v for v in language.variants if v.api == api]
    if not api_variants:
        return None
    for variant in api_variants:
        if "-" not in variant.code and "_" not in variant.code:
            return variant.code
    return api_variants[0].code


def get_consolidated_language_by_id(
    languages: Iterable[ConsolidatedLanguage], language_id: str
) -> Optional[ConsolidatedLanguage]:
    return next((lang for lang in languages if lang.id == language_id), None)


def get_consolidated_language_by_code(
    languages: Iterable[ConsolidatedLanguage], code: str
) -> Optional[ConsolidatedLanguage]:
    return next(
        (lang for lang in languages if any(v.code == code for v in lang.variants)),
        None,
    )


def find_compatible_apis(language_id: str, matrix: Mapping[str, List[str]]) -> List[str]:
    return list(matrix.get(language_id, []))


def languages_by_api(info: Optional[Mapping[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    """Turn an ``{apis, languages}`` info payload into ``{api: [language, ...]}``.

    Per-API language mappings are used as-is. A flat language list is
    attributed to every listed API.
    """
    if not info:
        return {}
    languages = info.get("languages")
    if isinstance(languages, Mapping):
        return {api: list(items or []) for api, items in languages.items()}

    apis = info.get("apis")
    if isinstance(apis, Mapping):
        api_ids = list(apis.keys())
    elif isinstance(apis, list):
        api_ids = [str(api) for api in apis]
    else:
        api_ids = []
    flat = list(languages or [])
    return {api: list(flat) for api in api_ids}
