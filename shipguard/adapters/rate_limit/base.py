"""Rate limiter interfaces.

Route wrappers depend on this abstraction (not the concrete implementation)
so the per-process map can be swapped for another store without touching
the HTTP layer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

DEFAULT_MESSAGE = "Too many requests. Please try again later."
UNKNOWN_IDENTIFIER = "unknown"


@dataclass(frozen=True)
class RateLimitConfig:
    """Policy values for a single limiter.

    Attributes:
        window_ms: Length of the counting window in milliseconds.
        max_requests: Admitted requests per identifier per window.
        message: Text returned to rejected clients.
        skip_successful_requests: Do not tally successful outcomes.
        skip_failed_requests: Do not tally failed outcomes.
        sweep_every: Sweep expired records every N checks (0 = manual only).
    """

    window_ms: int
    max_requests: int
    message: str = DEFAULT_MESSAGE
    skip_successful_requests: bool = False
    skip_failed_requests: bool = False
    sweep_every: int = 1

    def __post_init__(self) -> None:
        if self.window_ms < 1:
            raise ValueError("window_ms must be >= 1")
        if self.max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if self.sweep_every < 0:
            raise ValueError("sweep_every must be >= 0")


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        remaining: Requests left in the current window (0 when blocked).
        reset_time: Epoch milliseconds when the current window expires.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_time: int


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    config: RateLimitConfig

    @abstractmethod
    def check(self, identifier: str) -> RateLimitResult:
        """Decide admission for ``identifier`` and count it when admitted.

        Args:
            identifier: Client key (e.g., IP address).

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError

    @abstractmethod
    def record_result(self, identifier: str, success: bool) -> None:
        """Record the outcome of an admitted request (bookkeeping only)."""
        raise NotImplementedError

    @abstractmethod
    def cleanup(self) -> int:
        """Remove expired records and return how many were dropped."""
        raise NotImplementedError

    @abstractmethod
    def stats(self) -> dict[str, Any]:
        """Return non-negative counters describing the tracked state."""
        raise NotImplementedError
