"""Namespaced cache facade used by route handlers.

Wraps a :class:`TTLCache` with key prefixing, pattern invalidation and a
memoization decorator. Keys are built as ``<app_prefix>[:<prefix>]:<key>``,
so the same prefix must be passed on lookup to find an entry.
"""

from __future__ import annotations

import asyncio
import fnmatch
import functools
import glob
import inspect
import json
import logging
from typing import Any, Callable

from shipguard.core.config import CacheSettings, settings
from shipguard.utils.ttl_cache import TTLCache

logger = logging.getLogger(__name__)


class CacheManager:
    """Process-local cache with per-call ``ttl`` and ``prefix`` options."""

    def __init__(
        self,
        store: TTLCache | None = None,
        *,
        app_prefix: str | None = None,
        cfg: CacheSettings | None = None,
    ) -> None:
        cfg = cfg or settings.cache
        self.app_prefix = app_prefix if app_prefix is not None else cfg.prefix
        self._store = store or TTLCache(default_ttl=cfg.default_ttl_seconds)

    def build_key(self, key: str, prefix: str | None = None) -> str:
        """Join the namespace segments with ``":"``.

        Segments are not escaped, so ``build_key("a:k")`` and
        ``build_key("k", prefix="a")`` address the same entry. A prefix only
        isolates keys that do not themselves start with ``"<prefix>:"``.
        """
        full_prefix = f"{self.app_prefix}:{prefix}" if prefix else self.app_prefix
        return f"{full_prefix}:{key}"

    def get(self, key: str, *, prefix: str | None = None, default: Any = None) -> Any:
        return self._store.get(self.build_key(key, prefix), default)

    def set(
        self,
        key: str,
        value: Any,
        *,
        ttl: int | None = None,
        prefix: str | None = None,
    ) -> bool:
        """Store ``value``; ``ttl`` is in seconds and defaults to the store's TTL."""
        self._store.set(self.build_key(key, prefix), value, ttl)
        return True

    def delete(self, key: str, *, prefix: str | None = None) -> bool:
        return self._store.delete(self.build_key(key, prefix))

    def exists(self, key: str, *, prefix: str | None = None) -> bool:
        return self._store.exists(self.build_key(key, prefix))

    def delete_pattern(self, pattern: str, *, prefix: str | None = None) -> int:
        """Delete every key matching a pattern where only ``*`` and ``?`` are wildcards.

        Brackets match literally, and so does everything in the namespace.

        Args:
            pattern: Pattern relative to the namespace, e.g. ``list:7:*``.
            prefix: Optional namespace prefix.

        Returns:
            Number of entries removed.
        """

        full_pattern = glob.escape(self.build_key("", prefix)) + pattern.replace("[", "[[]")
        deleted = 0
        for key in self._store.keys():
            if fnmatch.fnmatchcase(key, full_pattern) and self._store.delete(key):
                deleted += 1

        logger.debug("cache.delete_pattern", extra={"pattern": full_pattern, "deleted": deleted})
        return deleted

    def cleanup(self) -> int:
        return self._store.cleanup()

    def flush(self) -> bool:
        self._store.clear()
        return True

    def get_stats(self) -> dict[str, Any]:
        """Return store counters plus hit rate as a percentage."""

        stats: dict[str, Any] = self._store.stats()
        total = stats["hits"] + stats["misses"]
        stats["hit_rate"] = (stats["hits"] / total) * 100 if total else 0.0
        return stats


def _default_key(func: Callable, args: tuple[Any, ...], kwargs: dict[str, Any]) -> str:
    payload = json.dumps([list(args), kwargs], default=str, sort_keys=True)
    return f"fn:{func.__name__}:{payload}"


def cached(
    cache: CacheManager,
    *,
    ttl: int | None = None,
    prefix: str | None = None,
    key_builder: Callable[..., str] | None = None,
) -> Callable:
    """Memoize a sync or async callable in ``cache``.

    ``None`` results are returned but never stored.

    Args:
        cache: Target cache.
        ttl: Entry lifetime in seconds.
        prefix: Key namespace.
        key_builder: Builds the key from the call arguments.
    """

    def decorator(func: Callable) -> Callable:
        def _key(args: tuple[Any, ...], kwargs: dict[str, Any]) -> str:
            if key_builder is not None:
                return key_builder(*args, **kwargs)
            return _default_key(func, args, kwargs)

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                key = _key(args, kwargs)
                hit = cache.get(key, prefix=prefix)
                if hit is not None:
                    return hit
                result = await func(*args, **kwargs)
                if result is not None:
                    cache.set(key, result, ttl=ttl, prefix=prefix)
                return result

            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            key = _key(args, kwargs)
            hit = cache.get(key, prefix=prefix)
            if hit is not None:
                return hit
            result = func(*args, **kwargs)
            if result is not None:
                cache.set(key, result, ttl=ttl, prefix=prefix)
            return result

        return wrapper

    return decorator


async def run_periodic_cleanup(
    cleanup: Callable[[], int],
    interval_seconds: float,
) -> None:
    """Call ``cleanup`` every ``interval_seconds`` until cancelled."""

    while True:
        await asyncio.sleep(interval_seconds)
        removed = cleanup()
        logger.debug("cache.periodic_cleanup", extra={"removed": removed})
