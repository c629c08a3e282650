from __future__ import annotations

from quota_api.api.routes.health import router as health_router
from quota_api.api.routes.quota import router as quota_router
from quota_api.api.routes.rules import router as rules_router

__all__ = ["health_router", "quota_router", "rules_router"]
