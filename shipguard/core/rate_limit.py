"""Rate limiting wrappers for FastAPI routes.

This module wires the rate limiting adapter into the HTTP layer.

Design goals:
- Minimal coupling: routes opt in with a decorator naming a profile.
- No import-time singletons: limiters live in a registry on ``app.state``,
  one long-lived instance per endpoint category.
- Transparent: admitted responses and handler errors pass through as-is.

Rate limiting strategy:
- Fixed window per client address by default; routes may key by any other
  request attribute (e.g. the authenticated user id).
- Clients without any address share the ``"unknown"`` bucket.
"""

from __future__ import annotations

import functools
import inspect
import logging
import math
import time
from typing import Any, Callable

from fastapi import HTTPException, Request, Response, status
from fastapi.responses import JSONResponse

from shipguard.adapters.rate_limit.base import (
    UNKNOWN_IDENTIFIER,
    AbstractRateLimiter,
    RateLimitConfig,
    RateLimitResult,
)
from shipguard.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from shipguard.core.config import RateLimitSettings, Settings, settings
from shipguard.core.logging import digest

logger = logging.getLogger(__name__)

IdentifierFn = Callable[[Request], str]


class RateLimiterRegistry:
    """Named limiters, one per protected endpoint category."""

    def __init__(self) -> None:
        self._limiters: dict[str, AbstractRateLimiter] = {}

    @classmethod
    def from_settings(cls, cfg: RateLimitSettings | None = None) -> "RateLimiterRegistry":
        """Build the ``api``, ``auth`` and ``strict`` profiles.

        Args:
            cfg: Rate limit settings; defaults to global settings if omitted.

        Returns:
            Registry holding one limiter per profile.
        """

        cfg = cfg or settings.rate_limit
        registry = cls()
        registry.register(
            "api",
            InMemoryFixedWindowRateLimiter(
                RateLimitConfig(
                    window_ms=cfg.api_window_ms,
                    max_requests=cfg.api_max_requests,
                    message=cfg.api_message,
                    sweep_every=cfg.sweep_every,
                )
            ),
        )
        # Successful logins are not tallied; admission still counts every attempt.
        registry.register(
            "auth",
            InMemoryFixedWindowRateLimiter(
                RateLimitConfig(
                    window_ms=cfg.auth_window_ms,
                    max_requests=cfg.auth_max_requests,
                    message=cfg.auth_message,
                    skip_successful_requests=True,
                    sweep_every=cfg.sweep_every,
                )
            ),
        )
        registry.register(
            "strict",
            InMemoryFixedWindowRateLimiter(
                RateLimitConfig(
                    window_ms=cfg.strict_window_ms,
                    max_requests=cfg.strict_max_requests,
                    message=cfg.strict_message,
                    sweep_every=cfg.sweep_every,
                )
            ),
        )
        return registry

    def register(self, name: str, limiter: AbstractRateLimiter) -> None:
        self._limiters[name] = limiter

    def get(self, name: str) -> AbstractRateLimiter:
        try:
            return self._limiters[name]
        except KeyError:
            raise KeyError(f"Unknown rate limit profile: {name!r}") from None

    def names(self) -> list[str]:
        return sorted(self._limiters)

    def cleanup(self) -> int:
        """Sweep every registered limiter."""
        return sum(limiter.cleanup() for limiter in self._limiters.values())

    def stats(self) -> dict[str, dict[str, Any]]:
        return {name: self._limiters[name].stats() for name in self.names()}


def _limit_text(max_requests: int, window_ms: int) -> str:
    return f"Limit: {max_requests} requests per {window_ms / 1000:g} seconds."


def create_ip_rate_limit(
    max_requests: int, window_ms: int, *, sweep_every: int | None = None
) -> InMemoryFixedWindowRateLimiter:
    """Build an ad-hoc per-IP limiter whose message states its limit.

    Intended to be created once per endpoint and registered, never per request.
    """

    return InMemoryFixedWindowRateLimiter(
        RateLimitConfig(
            window_ms=window_ms,
            max_requests=max_requests,
            message=f"Too many requests from this IP. {_limit_text(max_requests, window_ms)}",
            sweep_every=settings.rate_limit.sweep_every if sweep_every is None else sweep_every,
        )
    )


def create_user_rate_limit(
    max_requests: int, window_ms: int, *, sweep_every: int | None = None
) -> InMemoryFixedWindowRateLimiter:
    """Build a limiter meant to be keyed by an authenticated user id.

    Pair it with an ``identifier`` callable on :func:`rate_limited` so every
    account gets its own quota regardless of the address it connects from.
    """

    return InMemoryFixedWindowRateLimiter(
        RateLimitConfig(
            window_ms=window_ms,
            max_requests=max_requests,
            message=f"Too many requests for this account. {_limit_text(max_requests, window_ms)}",
            sweep_every=settings.rate_limit.sweep_every if sweep_every is None else sweep_every,
        )
    )


def get_client_identifier(request: Request) -> str:
    """Derive the rate limit identifier for a request.

    Uses the first ``X-Forwarded-For`` entry, then the connection address,
    then the shared ``"unknown"`` bucket.
    """

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_IDENTIFIER


def build_rate_limit_response(
    result: RateLimitResult,
    message: str,
    *,
    now_ms: float | None = None,
    include_headers: bool = True,
) -> JSONResponse:
    """Build the 429 response returned to rejected clients.

    Args:
        result: Rejected check result.
        message: Profile message shown to the client.
        now_ms: Current epoch milliseconds (defaults to wall clock).
        include_headers: Add X-RateLimit-* and Retry-After headers.

    Returns:
        JSONResponse with ``success``, ``error`` and ``retryAfter`` fields.
    """

    now = time.time() * 1000 if now_ms is None else now_ms
    retry_after = max(0, int(math.ceil((result.reset_time - now) / 1000)))

    headers: dict[str, str] = {}
    if include_headers:
        headers["X-RateLimit-Limit"] = str(result.limit)
        headers["X-RateLimit-Remaining"] = str(result.remaining)
        headers["X-RateLimit-Reset"] = str(int(math.ceil(result.reset_time / 1000)))
        headers["Retry-After"] = str(retry_after)

    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"success": False, "error": message, "retryAfter": retry_after},
        headers=headers or None,
    )


def _find_request(args: tuple[Any, ...], kwargs: dict[str, Any]) -> Request:
    for value in (*args, *kwargs.values()):
        if isinstance(value, Request):
            return value
    raise RuntimeError("rate_limited endpoints must declare a `request: Request` parameter")


def _settings_for(request: Request) -> Settings:
    """Settings of the app serving ``request``, falling back to the globals."""
    return getattr(request.app.state, "settings", None) or settings


def _resolve_limiter(request: Request, profile: str | AbstractRateLimiter) -> AbstractRateLimiter:
    if isinstance(profile, AbstractRateLimiter):
        return profile
    registry: RateLimiterRegistry = request.app.state.rate_limiters
    return registry.get(profile)


def _admit(
    request: Request,
    profile: str | AbstractRateLimiter,
    identifier_fn: IdentifierFn,
) -> tuple[AbstractRateLimiter, str, JSONResponse | None]:
    """Run the limiter check; return the 429 response when rejected."""

    limiter = _resolve_limiter(request, profile)
    identifier = identifier_fn(request) or UNKNOWN_IDENTIFIER
    key_hash = digest(identifier)

    result = limiter.check(identifier)
    if not result.allowed:
        logger.warning(
            "rate_limit.exceeded",
            extra={
                "key_hash": key_hash,
                "limit": result.limit,
                "remaining": result.remaining,
                "window_ms": limiter.config.window_ms,
                "route": request.url.path,
            },
        )
        rejection = build_rate_limit_response(
            result,
            limiter.config.message,
            include_headers=_settings_for(request).rate_limit.include_headers,
        )
        return limiter, identifier, rejection

    logger.info(
        "rate_limit.allowed",
        extra={
            "key_hash": key_hash,
            "limit": result.limit,
            "remaining": result.remaining,
            "window_ms": limiter.config.window_ms,
        },
    )
    return limiter, identifier, None


def _record_response(limiter: AbstractRateLimiter, identifier: str, response: Any) -> None:
    status_code = response.status_code if isinstance(response, Response) else 200
    limiter.record_result(identifier, status_code < 400)


def _record_exception(limiter: AbstractRateLimiter, identifier: str, exc: Exception) -> None:
    if isinstance(exc, HTTPException):
        limiter.record_result(identifier, exc.status_code < 400)
    else:
        limiter.record_result(identifier, False)


def rate_limited(
    profile: str | AbstractRateLimiter = "api",
    *,
    identifier: IdentifierFn = get_client_identifier,
) -> Callable:
    """Decorate a route so it is admitted through a rate limiter.

    Rejected requests get a 429 response without running the handler.
    Admitted requests run the handler and their outcome is recorded:
    status ``< 400`` counts as success, anything else (including raised
    exceptions, which are re-raised unchanged) as failure. Sync handlers
    keep a sync wrapper so FastAPI still runs them in its thread pool.

    Usage:
        @router.post("/auth/login")
        @rate_limited("auth")
        async def login(request: Request) -> dict: ...

        @router.get("/reports")
        @rate_limited(user_limiter, identifier=lambda r: r.headers.get("X-User-Id", ""))
        async def reports(request: Request) -> dict: ...

    Args:
        profile: Registry profile name or a limiter instance.
        identifier: Derives the limiter key from the request; defaults to the
            client address. Empty keys fall into the ``"unknown"`` bucket.
    """

    def decorator(func: Callable) -> Callable:
        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                request = _find_request(args, kwargs)
                if not _settings_for(request).rate_limit.enabled:
                    return await func(*args, **kwargs)

                limiter, key, rejection = _admit(request, profile, identifier)
                if rejection is not None:
                    return rejection
                try:
                    response = await func(*args, **kwargs)
                except Exception as exc:
                    _record_exception(limiter, key, exc)
                    raise
                _record_response(limiter, key, response)
                return response

            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            request = _find_request(args, kwargs)
            if not _settings_for(request).rate_limit.enabled:
                return func(*args, **kwargs)

            limiter, key, rejection = _admit(request, profile, identifier)
            if rejection is not None:
                return rejection
            try:
                response = func(*args, **kwargs)
            except Exception as exc:
                _record_exception(limiter, key, exc)
                raise
            _record_response(limiter, key, response)
            return response

        return wrapper

    return decorator
