from __future__ import annotations

"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) and
owns the per-application settings, rate limiter registry and cache, which
routes and middleware reach through ``request.app.state``.
"""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator

from fastapi import FastAPI

from shipguard.api.routes import health_router
from shipguard.core.cache import CacheManager, run_periodic_cleanup
from shipguard.core.config import Settings, settings as default_settings
from shipguard.core.exception_handlers import setup_exception_handlers
from shipguard.core.logging import configure_logging
from shipguard.core.middleware import request_id_middleware
from shipguard.core.openapi import apply_openapi_customizations
from shipguard.core.rate_limit import RateLimiterRegistry
from shipguard.services.business_cache import BusinessCache
from shipguard.utils.ttl_cache import TTLCache

logger = logging.getLogger(__name__)


def _build_lifespan(interval_seconds: int):
    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if interval_seconds <= 0:
            yield
            return

        def sweep() -> int:
            return app.state.cache.cleanup() + app.state.rate_limiters.cleanup()

        task = asyncio.create_task(run_periodic_cleanup(sweep, interval_seconds))
        logger.info("cleanup.started", extra={"interval_s": interval_seconds})
        try:
            yield
        finally:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    return lifespan


def create_app(
    cfg: Settings | None = None,
    *,
    rate_limiters: RateLimiterRegistry | None = None,
    cache: CacheManager | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        cfg: Settings to use; defaults to the global settings.
        rate_limiters: Pre-built limiter registry (tests inject their own).
        cache: Pre-built cache manager.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    cfg = cfg or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    app = FastAPI(
        title="Shipment API Guard",
        description=(
            "Rate limiting and in-memory caching for the furniture shipment and "
            "inventory API: per-client fixed-window admission control with "
            "api/auth/strict profiles and a namespaced TTL cache."
        ),
        version="0.1.0",
        lifespan=_build_lifespan(cfg.cache.cleanup_interval_seconds),
    )

    app.state.settings = cfg
    app.state.rate_limiters = rate_limiters or RateLimiterRegistry.from_settings(cfg.rate_limit)
    app.state.cache = cache or CacheManager(
        TTLCache(default_ttl=cfg.cache.default_ttl_seconds),
        app_prefix=cfg.cache.prefix,
    )
    app.state.business_cache = BusinessCache(app.state.cache)

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
