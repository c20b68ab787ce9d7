"""
Caching layer for ticker and sector lookups.

This module provides:
- Cache: protocol shared by resolution and enrichment
- InMemoryCache: dictionary-backed cache (tests, single runs)
- JsonFileCache: cache mirrored to a JSON file between runs
"""

from .store import Cache, InMemoryCache, JsonFileCache

__all__ = [
    "Cache",
    "InMemoryCache",
    "JsonFileCache",
]
