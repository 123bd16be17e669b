"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Windows start at the first request of an identifier, not on clock
  boundaries.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

from shipguard.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitConfig,
    RateLimitResult,
    UNKNOWN_IDENTIFIER,
)


def epoch_ms() -> float:
    """Current UNIX time in milliseconds."""
    return time.time() * 1000


@dataclass
class _RequestRecord:
    count: int
    window_reset_at: float
    success_count: int = 0
    failure_count: int = 0


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter counting requests per identifier in a fixed window.

    A record is created on the first request from an identifier and lives
    until its window expires. Expired records are never decayed: the next
    access replaces them with a fresh window, and sweeps delete them.

    Important:
        This limiter is per-process only. Restarting the process silently
        restores every client's full quota.
    """

    def __init__(
        self,
        config: RateLimitConfig,
        *,
        clock: Callable[[], float] = epoch_ms,
    ) -> None:
        """Initialize the limiter.

        Args:
            config: Window, quota and bookkeeping policy.
            clock: Time source returning UNIX time in milliseconds.
        """
        self.config = config
        self._clock = clock
        self._lock = threading.RLock()
        self._records: dict[str, _RequestRecord] = {}
        self._checks = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemoryFixedWindowRateLimiter(max_requests={self.config.max_requests}, "
            f"window_ms={self.config.window_ms}, tracked={len(self._records)})"
        )

    def _sweep_due_locked(self) -> bool:
        if self.config.sweep_every == 0:
            return False
        self._checks += 1
        return self._checks % self.config.sweep_every == 0

    def _cleanup_locked(self, now: float) -> int:
        expired = [k for k, rec in self._records.items() if now >= rec.window_reset_at]
        for key in expired:
            del self._records[key]
        return len(expired)

    def check(self, identifier: str) -> RateLimitResult:
        """Check and count a request for ``identifier``.

        Admission is granted while ``count < max_requests``; the request
        that brings ``count`` to exactly ``max_requests`` is still admitted.

        Args:
            identifier: Client key (e.g., IP address).

        Returns:
            RateLimitResult with the decision, remaining quota and reset time.

        An empty identifier is counted in the shared ``"unknown"`` bucket.
        """
        identifier = identifier or UNKNOWN_IDENTIFIER

        limit = self.config.max_requests
        with self._lock:
            now = self._clock()
            if self._sweep_due_locked():
                self._cleanup_locked(now)

            record = self._records.get(identifier)
            if record is None or now >= record.window_reset_at:
                record = _RequestRecord(count=0, window_reset_at=now + self.config.window_ms)
                self._records[identifier] = record

            allowed = record.count < limit
            remaining = max(0, limit - record.count - 1)
            if allowed:
                record.count += 1

            return RateLimitResult(
                allowed=allowed,
                limit=limit,
                remaining=remaining,
                reset_time=int(record.window_reset_at),
            )

    def record_result(self, identifier: str, success: bool) -> None:
        """Tally the outcome of a request that was already checked.

        No-op when the identifier has no active window or when the matching
        ``skip_*`` option is enabled.
        """
        identifier = identifier or UNKNOWN_IDENTIFIER
        if success and self.config.skip_successful_requests:
            return
        if not success and self.config.skip_failed_requests:
            return

        with self._lock:
            record = self._records.get(identifier)
            if record is None or self._clock() >= record.window_reset_at:
                return
            if success:
                record.success_count += 1
            else:
                record.failure_count += 1

    def cleanup(self) -> int:
        """Delete every record whose window has expired."""
        with self._lock:
            return self._cleanup_locked(self._clock())

    def reset(self) -> None:
        """Drop all tracked records."""
        with self._lock:
            self._records.clear()
            self._checks = 0

    def stats(self) -> dict[str, Any]:
        with self._lock:
            records = list(self._records.values())
            return {
                "max_requests": self.config.max_requests,
                "window_ms": self.config.window_ms,
                "identifiers": len(records),
                "requests": sum(r.count for r in records),
                "successes": sum(r.success_count for r in records),
                "failures": sum(r.failure_count for r in records),
            }
