"""Unit tests for the in-memory TTLCache."""

import threading
import time
from unittest.mock import Mock

import pytest

from shipguard.utils.ttl_cache import TTLCache


def test_set_and_get_updates_hit_miss_counters(ttl_cache: TTLCache) -> None:
    assert ttl_cache.get("missing") is None

    ttl_cache.set("key", {"name": "Chair"}, 5)

    assert ttl_cache.get("key") == {"name": "Chair"}

    stats = ttl_cache.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["sets"] == 1


def test_get_returns_default_on_miss(ttl_cache: TTLCache) -> None:
    sentinel = object()
    assert ttl_cache.get("missing", sentinel) is sentinel


def test_expired_entry_is_a_miss_but_stays_until_cleanup(ttl_cache: TTLCache, clock: Mock) -> None:
    ttl_cache.set("key", {"data": True}, 1)

    clock.return_value += 1100

    assert ttl_cache.get("key") is None
    assert ttl_cache.exists("key") is False
    assert len(ttl_cache) == 1

    assert ttl_cache.cleanup() == 1
    assert len(ttl_cache) == 0


def test_entry_expires_when_deadline_reached(ttl_cache: TTLCache, clock: Mock) -> None:
    ttl_cache.set("key", "v", 1)

    clock.return_value += 999
    assert ttl_cache.get("key") == "v"
    clock.return_value += 1
    assert ttl_cache.get("key") is None


@pytest.mark.parametrize("ttl", [0, -5])
def test_non_positive_ttl_stores_expired_entry(ttl_cache: TTLCache, ttl: int) -> None:
    ttl_cache.set("key", "v", ttl)

    assert ttl_cache.get("key") is None
    assert ttl_cache.exists("key") is False


def test_default_ttl_applies_when_none_given(ttl_cache: TTLCache, clock: Mock) -> None:
    ttl_cache.set("key", "v")

    clock.return_value += 3599_000
    assert ttl_cache.get("key") == "v"
    clock.return_value += 1000
    assert ttl_cache.get("key") is None


def test_set_overwrites_and_refreshes_deadline(ttl_cache: TTLCache, clock: Mock) -> None:
    ttl_cache.set("key", "old", 1)
    clock.return_value += 900
    ttl_cache.set("key", "new", 1)
    clock.return_value += 900

    assert ttl_cache.get("key") == "new"


def test_values_are_stored_by_reference(ttl_cache: TTLCache) -> None:
    product = {"name": "Chair", "stock": 4}
    ttl_cache.set("product:42", product)

    product["stock"] = 3

    assert ttl_cache.get("product:42")["stock"] == 3


def test_delete_reports_presence(ttl_cache: TTLCache) -> None:
    ttl_cache.set("key", "v")

    assert ttl_cache.delete("key") is True
    assert ttl_cache.get("key") is None
    assert ttl_cache.delete("key") is False
    assert ttl_cache.stats()["deletes"] == 1


def test_cleanup_keeps_live_entries(ttl_cache: TTLCache, clock: Mock) -> None:
    ttl_cache.set("short", 1, 1)
    ttl_cache.set("long", 2, 60)

    clock.return_value += 2000

    assert ttl_cache.cleanup() == 1
    assert ttl_cache.keys() == ["long"]


def test_exists_does_not_touch_counters(ttl_cache: TTLCache) -> None:
    ttl_cache.set("key", "v")
    ttl_cache.exists("key")
    ttl_cache.exists("missing")

    stats = ttl_cache.stats()
    assert stats["hits"] == 0
    assert stats["misses"] == 0


def test_clear_and_reset_stats(ttl_cache: TTLCache) -> None:
    ttl_cache.set("a", 1)
    ttl_cache.set("b", 2)
    ttl_cache.get("a")

    ttl_cache.clear()
    assert ttl_cache.stats()["entries"] == 0
    assert ttl_cache.stats()["hits"] == 1

    ttl_cache.reset_stats()
    assert ttl_cache.stats() == {"entries": 0, "hits": 0, "misses": 0, "sets": 0, "deletes": 0}


def test_real_clock_expiration() -> None:
    cache = TTLCache()
    cache.set("key", "v", 1)
    assert cache.exists("key") is True

    time.sleep(1.1)

    assert cache.get("key") is None
    assert cache.exists("key") is False


def test_thread_safety_under_concurrent_sets() -> None:
    cache = TTLCache(default_ttl=30)
    total_keys = 50

    def _writer(idx: int) -> None:
        cache.set(f"k-{idx}", {"v": idx})

    threads = [threading.Thread(target=_writer, args=(i,)) for i in range(total_keys)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert cache.stats()["entries"] == total_keys
    assert cache.get("k-0") == {"v": 0}
    assert cache.get("k-49") == {"v": 49}
