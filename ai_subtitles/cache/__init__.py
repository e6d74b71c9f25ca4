"""Read-through metadata cache."""

from .manager import CACHE_PREFIX, CacheManager

__all__ = ["CACHE_PREFIX", "CacheManager"]
