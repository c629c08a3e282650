"""Application factory for the quota API.

The quota limiter is created and started inside the lifespan handler and
kept on ``app.state.quota_limiter``; nothing is shared at module level, so
every app instance (and every test client) owns its own connection pool.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from quota_api.adapters.quota import QuotaLimiter, create_quota_limiter
from quota_api.api.routes import health_router, quota_router, rules_router
from quota_api.core.config import settings
from quota_api.core.exception_handlers import setup_exception_handlers
from quota_api.core.logging import configure_logging
from quota_api.core.middleware import request_id_middleware
from quota_api.core.openapi import apply_openapi_customizations

logger = logging.getLogger(__name__)


def create_app(limiter: QuotaLimiter | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        limiter: Pre-built, unstarted limiter; built from settings when omitted.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    configure_logging(settings.log)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        quota_limiter = limiter or create_quota_limiter(settings)
        if not quota_limiter.start():
            # /health reports the store as down and quota routes answer 503
            logger.error("app.quota_store_unavailable", extra={"backend": settings.quota.backend})
        app.state.quota_limiter = quota_limiter
        try:
            yield
        finally:
            quota_limiter.shutdown()
            app.state.quota_limiter = None

    app = FastAPI(
        title="Quota API",
        description=(
            "Distributed quota limiter. Rules attach per-window limits "
            "(SECOND to YEAR, or a CUSTOM duration) to composite keys; every "
            "increment is checked and counted atomically in the shared store, "
            "and rejected attempts are recorded in an overage ledger."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    app.middleware("http")(request_id_middleware)
    setup_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(rules_router, prefix="/v1")
    app.include_router(quota_router, prefix="/v1")

    apply_openapi_customizations(app)

    return app
