"""In-memory TTL cache used to avoid repeated catalog and dashboard queries.

Minimal dependencies and thread-safe. Entries expire by time only; there is
no size bound, so callers are expected to run ``cleanup`` periodically.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3600


def epoch_ms() -> float:
    """Current UNIX time in milliseconds."""
    return time.time() * 1000


@dataclass
class CacheItem:
    """Container for cached values with expiration metadata."""

    value: Any
    expires_at: float


class TTLCache:
    """Thread-safe, in-memory cache with per-entry expiration.

    Values are stored by reference: mutating a cached object in place is
    visible to later readers.

    Attributes:
        default_ttl: TTL in seconds applied when ``set`` gets none.
    """

    def __init__(
        self,
        default_ttl: int = DEFAULT_TTL_SECONDS,
        *,
        clock: Callable[[], float] = epoch_ms,
    ) -> None:
        self.default_ttl = default_ttl
        self._clock = clock
        self._store: dict[str, CacheItem] = {}
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._deletes = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"TTLCache(default_ttl={self.default_ttl}, size={len(self._store)}, "
            f"hits={self._hits}, misses={self._misses})"
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def get(self, key: str, default: Any = None) -> Any:
        """Retrieve a cached value if it exists and is not expired.

        Expired entries count as misses but stay in the store until the
        next ``cleanup``.

        Args:
            key: Cache key.
            default: Returned on a miss.

        Returns:
            Cached value, or ``default`` if not found/expired.
        """

        with self._lock:
            item = self._store.get(key)
            if item is None or item.expires_at <= self._clock():
                self._misses += 1
                logger.debug(
                    "cache.miss",
                    extra={
                        "cache_key": key,
                        "reason": "not_found" if item is None else "expired",
                    },
                )
                return default

            self._hits += 1
            logger.debug("cache.hit", extra={"cache_key": key})
            return item.value

    def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        """Store a value, replacing any existing entry.

        Args:
            key: Cache key.
            value: Arbitrary payload, stored as-is.
            ttl_seconds: Lifetime in seconds; ``<= 0`` stores an entry that
                is already expired.
        """

        ttl = self.default_ttl if ttl_seconds is None else ttl_seconds
        with self._lock:
            self._store[key] = CacheItem(value=value, expires_at=self._clock() + ttl * 1000)
            self._sets += 1

            logger.debug(
                "cache.set",
                extra={
                    "cache_key": key,
                    "size": len(self._store),
                    "ttl_s": ttl,
                },
            )

    def exists(self, key: str) -> bool:
        """Return True if ``key`` holds an unexpired entry. Counters untouched."""

        with self._lock:
            item = self._store.get(key)
            return item is not None and item.expires_at > self._clock()

    def delete(self, key: str) -> bool:
        """Remove ``key``; return whether an entry was present."""

        with self._lock:
            if self._store.pop(key, None) is None:
                return False
            self._deletes += 1
            return True

    def keys(self) -> list[str]:
        """Snapshot of stored keys, expired ones included."""

        with self._lock:
            return list(self._store)

    def clear(self) -> None:
        """Remove all cached entries."""

        with self._lock:
            self._store.clear()

    def cleanup(self) -> int:
        """Purge every entry whose deadline has passed.

        Returns:
            Number of entries removed.
        """

        with self._lock:
            now = self._clock()
            expired_keys = [k for k, item in self._store.items() if item.expires_at < now]
            for key in expired_keys:
                del self._store[key]

        if expired_keys:
            logger.info("cache.cleanup", extra={"removed": len(expired_keys)})
        return len(expired_keys)

    def stats(self) -> dict[str, int]:
        """Return lightweight cache metrics without exposing values."""

        with self._lock:
            return {
                "entries": len(self._store),
                "hits": self._hits,
                "misses": self._misses,
                "sets": self._sets,
                "deletes": self._deletes,
            }

    def reset_stats(self) -> None:
        with self._lock:
            self._hits = 0
            self._misses = 0
            self._sets = 0
            self._deletes = 0
