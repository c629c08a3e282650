"""Quota dependencies for FastAPI routes.

This module wires the quota facade into the HTTP layer.

Design goals:
- Minimal coupling: API routes depend on dependency functions only.
- Explicit ownership: the limiter lives on ``app.state`` and is started and
  stopped by the application lifespan; there is no module-level pool.
- Safe defaults: keys without a rule are allowed through.

Quota key strategy:
- ``<namespace>/api_key:<key>`` when an API key is supplied.
- ``<namespace>/ip:<client host>`` otherwise (e.g., auth disabled).
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Header, HTTPException, Request, status

from quota_api.adapters.quota.base import Outcome
from quota_api.adapters.quota.limiter import QuotaLimiter, hash_quota_key
from quota_api.core.config import settings
from quota_api.core.errors import QuotaStoreError

logger = logging.getLogger(__name__)


def get_quota_limiter(request: Request) -> QuotaLimiter:
    """Return the limiter owned by the running application.

    Raises:
        QuotaStoreError: If the application has no started limiter.
    """
    limiter: QuotaLimiter | None = getattr(request.app.state, "quota_limiter", None)
    if limiter is None or not limiter.started:
        raise QuotaStoreError(
            code="store_not_started",
            message="Quota store is not available",
            details={"error_kind": "configuration", "operation": "get_quota_limiter"},
        )
    return limiter


def build_quota_keys(request: Request, x_api_key: str | None) -> list[str]:
    """Build the key segments for the current request.

    Args:
        request: FastAPI request.
        x_api_key: API key value from the X-API-Key header.

    Returns:
        list[str]: Namespaced key segments.
    """

    if x_api_key:
        return [settings.quota.namespace, f"api_key:{x_api_key}"]

    client_host = request.client.host if request.client else "unknown"
    return [settings.quota.namespace, f"ip:{client_host}"]


def enforce_quota(
    request: Request,
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency enforcing quotas.

    Plain ``def`` so FastAPI runs it in the threadpool; the store call is a
    blocking Redis round trip.

    When enabled, counts one use against the requester's key. Keys without a
    configured rule pass through.

    Args:
        request: FastAPI request.
        x_api_key: API key from X-API-Key header.

    Raises:
        HTTPException: 429 when the quota is exhausted, 503 when the store
            fails and ``QUOTA_FAIL_OPEN`` is false.
    """

    if not settings.quota.enforce_enabled:
        return

    keys = build_quota_keys(request, x_api_key)
    key_type = "api_key" if x_api_key else "ip"

    limiter: QuotaLimiter | None = getattr(request.app.state, "quota_limiter", None)
    if limiter is None or not limiter.started:
        _reject_store_unavailable(key_type, "configuration")
        return

    result = limiter.try_increment(keys)
    if result.allowed:
        return

    if result.outcome is Outcome.ERROR:
        kind = result.error_kind.value if result.error_kind else "transport"
        _reject_store_unavailable(key_type, kind)
        return

    logger.warning(
        "quota.exceeded",
        extra={
            "key_type": key_type,
            "key_hash": hash_quota_key(result.key),
            "category": result.category.value if result.category else None,
            "used": result.used,
            "max_amount": result.max_amount,
        },
    )

    headers: dict[str, str] = {}
    if result.category is not None:
        headers["X-Quota-Granularity"] = result.category.value
        headers["X-Quota-Limit"] = str(result.max_amount)

    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail="Quota exceeded. Try again later.",
        headers=headers or None,
    )


def _reject_store_unavailable(key_type: str, error_kind: str) -> None:
    """Apply the fail-open policy to a store failure.

    Raises:
        HTTPException: 503 unless ``QUOTA_FAIL_OPEN`` is true.
    """
    logger.warning(
        "quota.enforce_store_error",
        extra={
            "key_type": key_type,
            "error_kind": error_kind,
            "fail_open": settings.quota.fail_open,
        },
    )
    if settings.quota.fail_open:
        return
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Quota store unavailable. Try again later.",
    )
