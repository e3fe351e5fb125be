from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, TypeVar

from src.shared.types import CacheStats


logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 5 * 60.0
DEFAULT_MAX_SIZE = 100

_MISSING = object()


def _key_kind(key: str) -> str:
    # Keys embed access tokens; only the prefix is safe to log.
    return key.split(":", 1)[0]


@dataclass(frozen=True)
class CacheOptions:
    default_ttl: float = DEFAULT_TTL_SECONDS
    max_size: int = DEFAULT_MAX_SIZE


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    data: T
    timestamp: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        # ttl == 0 entries never expire by time.
        if self.ttl == 0:
            return False
        return now - self.timestamp > self.ttl


class RequestCache:
    """In-memory TTL cache with FIFO eviction for idempotent network reads.

    Entries expire ``ttl`` seconds after they were stored and are removed
    lazily on read or explicitly via :meth:`cleanup`. When the cache is full,
    inserting a new key evicts the oldest-inserted key regardless of how
    recently it was read.

    Each operation holds an internal lock for its own duration only;
    :meth:`get_or_set` releases it while ``compute`` runs, so two callers
    missing the same key at once will both compute and the later write wins.
    """

    def __init__(
        self,
        options: CacheOptions | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        options = options or CacheOptions()
        if options.max_size < 1:
            raise ValueError("max_size must be positive")
        if options.default_ttl < 0:
            raise ValueError("default_ttl must be >= 0")

        self._default_ttl = float(options.default_ttl)
        self._max_size = options.max_size
        self._clock = clock
        self._entries: Dict[str, CacheEntry[Any]] = {}
        self._lock = threading.Lock()

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    @property
    def max_size(self) -> int:
        return self._max_size

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.has(key)

    def _lookup(self, key: str) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return _MISSING

            if entry.is_expired(self._clock()):
                del self._entries[key]
                logger.debug("Cache entry expired: kind=%s", _key_kind(key))
                return _MISSING

            return entry.data

    def get(self, key: str, default: Any = None) -> Any:
        value = self._lookup(key)
        if value is _MISSING:
            return default
        return value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        if ttl is None:
            ttl = self._default_ttl
        if ttl < 0:
            raise ValueError("ttl must be >= 0")

        with self._lock:
            if key not in self._entries and len(self._entries) >= self._max_size:
                oldest_key = next(iter(self._entries))
                del self._entries[oldest_key]
                logger.debug(
                    "Cache full (max_size=%s); evicted kind=%s",
                    self._max_size,
                    _key_kind(oldest_key),
                )

            self._entries[key] = CacheEntry(data=value, timestamp=self._clock(), ttl=float(ttl))

    def has(self, key: str) -> bool:
        return self._lookup(key) is not _MISSING

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, _MISSING) is not _MISSING

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def cleanup(self) -> int:
        """Remove every expired entry and return how many were removed."""
        with self._lock:
            now = self._clock()
            expired_keys = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired_keys:
                del self._entries[key]

        if expired_keys:
            logger.debug("Cache cleanup removed %s expired entries", len(expired_keys))
        return len(expired_keys)

    def get_or_set(
        self,
        key: str,
        compute: Callable[[], T],
        ttl: float | None = None,
    ) -> T:
        cached = self._lookup(key)
        if cached is not _MISSING:
            logger.debug("Cache hit: kind=%s", _key_kind(key))
            return cached

        logger.debug("Cache miss: kind=%s", _key_kind(key))
        value = compute()
        self.set(key, value, ttl)
        return value

    def get_stats(self) -> CacheStats:
        with self._lock:
            now = self._clock()
            expired = sum(1 for entry in self._entries.values() if entry.is_expired(now))
            total = len(self._entries)

        return {
            "total_entries": total,
            "valid_entries": total - expired,
            "expired_entries": expired,
            "max_size": self._max_size,
            "default_ttl": self._default_ttl,
        }
