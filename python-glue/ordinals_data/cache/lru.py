"""In-memory LRU cache with lazy TTL expiry"""

import time
from collections import OrderedDict
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Dict, List, Optional

from ..errors import ConfigError
from ..observability import get_logger

logger = get_logger(__name__)


@dataclass
class CacheEntry:
    """A cached value and its bookkeeping timestamps"""
    key: str
    value: Any
    inserted_at: float
    expires_at: float
    last_accessed: float
    access_count: int = 0

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


@dataclass
class CacheStats:
    """Cache performance counters"""
    hits: int
    misses: int
    size: int
    max_size: int
    evictions: int

    @property
    def hit_rate(self) -> float:
        """Hit rate as a percentage of all lookups"""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total * 100.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": round(self.hit_rate, 2),
            "size": self.size,
            "max_size": self.max_size,
            "evictions": self.evictions,
        }


class CacheStore:
    """
    Bounded key/value store with least-recently-used eviction

    Entries live in an OrderedDict kept in access order: the first item is
    the least recently used one and is evicted when a new key would exceed
    ``max_entries``. Expiry is evaluated on read only, so an expired entry
    stays physically present (and visible to ``get_stale``) until it is
    replaced, evicted by capacity or invalidated.
    """

    def __init__(
        self,
        max_entries: int = 1000,
        default_ttl: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries <= 0:
            raise ConfigError(f"max_entries must be positive, got {max_entries}")
        if default_ttl <= 0:
            raise ConfigError(f"default_ttl must be positive, got {default_ttl}")

        self.max_entries = max_entries
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: str) -> Optional[Any]:
        """Get a fresh value, marking it most recently used"""
        with self._lock:
            entry = self._entries.get(key)
            now = self._clock()
            if entry is None or entry.is_expired(now):
                self._misses += 1
                return None

            entry.last_accessed = now
            entry.access_count += 1
            self._entries.move_to_end(key)
            self._hits += 1
            return entry.value

    def get_stale(self, key: str) -> Optional[Any]:
        """Get a value regardless of expiry without touching recency"""
        with self._lock:
            entry = self._entries.get(key)
            return entry.value if entry is not None else None

    def put(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """
        Insert or replace a value

        Args:
            key: Cache key
            value: Value to store (None is reserved for "absent")
            ttl: Seconds until the entry expires (defaults to default_ttl)
        """
        if value is None:
            raise ValueError("Cannot cache None")
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")

        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)
            if entry is not None:
                entry.value = value
                entry.inserted_at = now
                entry.expires_at = now + ttl
                entry.last_accessed = now
                self._entries.move_to_end(key)
                return

            while len(self._entries) >= self.max_entries:
                evicted_key, _ = self._entries.popitem(last=False)
                self._evictions += 1
                logger.debug("Evicted cache entry", extra={"extra": {"key": evicted_key}})

            self._entries[key] = CacheEntry(
                key=key,
                value=value,
                inserted_at=now,
                expires_at=now + ttl,
                last_accessed=now,
            )

    def invalidate(self, key: str) -> bool:
        """Remove a key, returning whether it was present"""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def sweep_expired(self) -> int:
        """Physically drop expired entries; returns the number removed"""
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def keys(self) -> List[str]:
        """Keys from least to most recently used"""
        with self._lock:
            return list(self._entries.keys())

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                size=len(self._entries),
                max_size=self.max_entries,
                evictions=self._evictions,
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not entry.is_expired(self._clock())
