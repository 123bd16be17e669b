from datetime import datetime, timezone

from fastapi import APIRouter, Request

from shipguard.core.errors import NotFoundAppError
from shipguard.core.rate_limit import rate_limited

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Health check endpoint.

    Used by load balancers and monitoring systems. Never rate limited.

    Returns:
        dict: ``status`` set to "ok" plus the current UTC timestamp.
    """

    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/health/diagnostics")
@rate_limited("strict")
async def diagnostics(request: Request) -> dict:
    """Report cache counters and per-profile rate limiter state."""

    state = request.app.state
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "cache": state.cache.get_stats(),
        "rate_limits": state.rate_limiters.stats(),
    }


@router.get("/health/diagnostics/{profile}")
@rate_limited("strict")
async def profile_diagnostics(request: Request, profile: str) -> dict:
    """Report the state of a single rate limit profile."""

    try:
        limiter = request.app.state.rate_limiters.get(profile)
    except KeyError:
        raise NotFoundAppError(
            code="rate_limit_profile_not_found",
            message=f"Unknown rate limit profile: {profile}",
            details={"resource": "rate_limit_profile", "resource_id": profile},
        ) from None
    return {"profile": profile, "stats": limiter.stats()}
