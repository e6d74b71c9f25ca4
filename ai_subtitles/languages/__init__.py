"""Cross-provider language consolidation."""

from .mapper import (
    AUTO_DETECT_ID,
    ConsolidatedLanguage,
    LanguageVariant,
    build_compatibility_matrix,
    canonical_id,
    consolidate_languages,
    find_compatible_apis,
    get_best_variant_for_api,
    get_consolidated_language_by_code,
    get_consolidated_language_by_id,
    languages_by_api,
)

__all__ = [
    "AUTO_DETECT_ID",
    "ConsolidatedLanguage",
    "LanguageVariant",
    "build_compatibility_matrix",
    "canonical_id",
    "consolidate_languages",
    "find_compatible_apis",
    "get_best_variant_for_api",
    "get_consolidated_language_by_code",
    "get_consolidated_language_by_id",
    "languages_by_api",
]
