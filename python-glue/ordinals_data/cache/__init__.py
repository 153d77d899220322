"""Caching layer"""

from .lru import CacheStore, CacheEntry, CacheStats

__all__ = ["CacheStore", "CacheEntry", "CacheStats"]
