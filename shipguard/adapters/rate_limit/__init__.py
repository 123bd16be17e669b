"""Rate limiting adapters.

This package provides a small abstraction layer so the API can start with an
in-memory limiter and later migrate to another store without changing the
route wrappers.
"""

from shipguard.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitConfig,
    RateLimitResult,
)
from shipguard.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter

__all__ = [
    "AbstractRateLimiter",
    "InMemoryFixedWindowRateLimiter",
    "RateLimitConfig",
    "RateLimitResult",
]
