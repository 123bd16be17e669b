"""Tests for the namespaced CacheManager and the ``cached`` decorator."""

import asyncio
from unittest.mock import Mock

from shipguard.core.cache import CacheManager, cached, run_periodic_cleanup


def test_round_trip_with_ttl(cache_manager: CacheManager) -> None:
    value = {"name": "Chair", "tags": ["oak"]}

    assert cache_manager.set("k", value, ttl=5) is True
    assert cache_manager.get("k") == value


def test_product_scenario(cache_manager: CacheManager) -> None:
    cache_manager.set("product:42", {"name": "Chair"}, ttl=3600)

    assert cache_manager.get("product:42") == {"name": "Chair"}
    assert cache_manager.delete("product:42") is True
    assert cache_manager.get("product:42") is None
    assert cache_manager.delete("product:42") is False


def test_expiration(cache_manager: CacheManager, clock: Mock) -> None:
    cache_manager.set("k", "v", ttl=1)

    clock.return_value += 1100

    assert cache_manager.get("k") is None
    assert cache_manager.exists("k") is False


def test_prefix_isolation(cache_manager: CacheManager) -> None:
    cache_manager.set("k", "v1", prefix="a")
    cache_manager.set("k", "v2", prefix="b")

    assert cache_manager.get("k", prefix="a") == "v1"
    assert cache_manager.get("k", prefix="b") == "v2"
    assert cache_manager.get("k") is None
    assert cache_manager.exists("k", prefix="a") is True


def test_build_key_uses_app_prefix(cache_manager: CacheManager) -> None:
    assert cache_manager.build_key("k") == "sevkiyat:k"
    assert cache_manager.build_key("k", "products") == "sevkiyat:products:k"


def test_stats_track_hits_and_misses(cache_manager: CacheManager) -> None:
    stats = cache_manager.get_stats()
    assert stats["hits"] == 0
    assert stats["misses"] == 0
    assert stats["hit_rate"] == 0.0

    cache_manager.set("k", "v")
    cache_manager.get("k")
    cache_manager.get("k")
    cache_manager.get("missing")

    stats = cache_manager.get_stats()
    assert stats["hits"] == 2
    assert stats["misses"] == 1
    assert round(stats["hit_rate"], 2) == 66.67


def test_delete_pattern(cache_manager: CacheManager) -> None:
    cache_manager.set("list:1:1", "a", prefix="products")
    cache_manager.set("list:1:2", "b", prefix="products")
    cache_manager.set("list:2:1", "c", prefix="products")
    cache_manager.set("list:1:1", "d", prefix="customers")

    assert cache_manager.delete_pattern("list:1:*", prefix="products") == 2

    assert cache_manager.exists("list:2:1", prefix="products") is True
    assert cache_manager.exists("list:1:1", prefix="customers") is True


def test_delete_pattern_treats_brackets_literally(cache_manager: CacheManager) -> None:
    cache_manager.set("list:[7]:1", "bracketed", prefix="reports")
    cache_manager.set("list:7:1", "plain", prefix="reports")

    assert cache_manager.delete_pattern("list:[7]:*", prefix="reports") == 1

    assert cache_manager.exists("list:[7]:1", prefix="reports") is False
    assert cache_manager.exists("list:7:1", prefix="reports") is True


def test_delete_pattern_question_mark_matches_one_character(cache_manager: CacheManager) -> None:
    cache_manager.set("item:1", 1)
    cache_manager.set("item:12", 2)

    assert cache_manager.delete_pattern("item:?") == 1
    assert cache_manager.exists("item:12") is True


def test_prefix_and_embedded_separator_share_a_key(cache_manager: CacheManager) -> None:
    cache_manager.set("products:42", "via key")

    assert cache_manager.build_key("products:42") == cache_manager.build_key("42", prefix="products")
    assert cache_manager.get("42", prefix="products") == "via key"


def test_cleanup_and_flush(cache_manager: CacheManager, clock: Mock) -> None:
    cache_manager.set("a", 1, ttl=1)
    cache_manager.set("b", 2, ttl=60)
    clock.return_value += 2000

    assert cache_manager.cleanup() == 1
    assert cache_manager.flush() is True
    assert cache_manager.get_stats()["entries"] == 0


def test_cached_memoizes_sync_function(cache_manager: CacheManager) -> None:
    calls = []

    @cached(cache_manager, ttl=60, prefix="fn")
    def load_product(product_id: int) -> dict:
        calls.append(product_id)
        return {"id": product_id}

    assert load_product(1) == {"id": 1}
    assert load_product(1) == {"id": 1}
    assert load_product(2) == {"id": 2}
    assert calls == [1, 2]


def test_cached_memoizes_async_function_with_key_builder(cache_manager: CacheManager) -> None:
    calls = []

    @cached(cache_manager, key_builder=lambda user_id: f"stats:{user_id}")
    async def dashboard_stats(user_id: int) -> dict:
        calls.append(user_id)
        return {"total": 10}

    async def _run() -> None:
        await dashboard_stats(7)
        await dashboard_stats(7)

    asyncio.run(_run())

    assert calls == [7]
    assert cache_manager.get("stats:7") == {"total": 10}


def test_cached_skips_none_results(cache_manager: CacheManager) -> None:
    calls = []

    @cached(cache_manager)
    def find(name: str) -> None:
        calls.append(name)
        return None

    find("x")
    find("x")

    assert calls == ["x", "x"]


def test_periodic_cleanup_runs_until_cancelled() -> None:
    sweep = Mock(return_value=0)

    async def _run() -> None:
        task = asyncio.create_task(run_periodic_cleanup(sweep, 0.01))
        await asyncio.sleep(0.05)
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    asyncio.run(_run())

    assert sweep.call_count >= 1
