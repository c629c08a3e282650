from __future__ import annotations

from fastapi import APIRouter, Request

from quota_api.adapters.quota.limiter import QuotaLimiter

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request) -> dict:
    """Health check endpoint.

    Returns a simple status response to verify the API is operational, plus
    whether the quota store currently answers. Used by load balancers and
    monitoring systems to determine service health.

    Returns:
        dict: ``status`` is always "ok"; ``store`` is "up" or "down".
    """

    limiter: QuotaLimiter | None = getattr(request.app.state, "quota_limiter", None)
    store_up = limiter is not None and limiter.is_healthy()
    return {"status": "ok", "store": "up" if store_up else "down"}
