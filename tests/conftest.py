"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment variables are set before any import that might load settings.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"

os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("CACHE_CLEANUP_INTERVAL_SECONDS", "0")
os.environ.setdefault("RATE_LIMIT_STRICT_MAX_REQUESTS", "3")
os.environ.setdefault("RATE_LIMIT_STRICT_WINDOW_MS", "60000")

import pytest
from unittest.mock import Mock

from shipguard.core.cache import CacheManager
from shipguard.utils.ttl_cache import TTLCache


@pytest.fixture
def clock() -> Mock:
    """Millisecond clock that tests advance by assigning ``return_value``."""
    return Mock(return_value=1_000_000.0)


@pytest.fixture
def ttl_cache(clock: Mock) -> TTLCache:
    return TTLCache(default_ttl=3600, clock=clock)


@pytest.fixture
def cache_manager(ttl_cache: TTLCache) -> CacheManager:
    return CacheManager(ttl_cache, app_prefix="sevkiyat")
