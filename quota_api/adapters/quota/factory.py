"""Factory pattern for creating quota store and limiter instances."""

from __future__ import annotations

from quota_api.adapters.quota.base import AbstractQuotaStore
from quota_api.adapters.quota.in_memory import InMemoryQuotaStore
from quota_api.adapters.quota.limiter import QuotaLimiter
from quota_api.adapters.quota.redis_store import RedisQuotaStore
from quota_api.core.config import Settings, settings as default_settings
from quota_api.core.errors import ValidationAppError


def create_quota_store(cfg: Settings | None = None) -> AbstractQuotaStore:
    """Instantiate the quota store selected by ``QUOTA_BACKEND``.

    Args:
        cfg: Settings to use; defaults to the global settings.

    Returns:
        AbstractQuotaStore: Unstarted store instance.

    Raises:
        ValidationAppError: If the backend is unknown.
    """
    cfg = cfg or default_settings
    backend = cfg.quota.backend.lower()

    if backend == "redis":
        return RedisQuotaStore(settings=cfg.redis)

    if backend == "memory":
        return InMemoryQuotaStore()

    raise ValidationAppError(
        code="quota_unknown_backend",
        message=f"Unknown quota backend: '{backend}'. Supported backends: redis, memory",
    )


def create_quota_limiter(cfg: Settings | None = None) -> QuotaLimiter:
    """Build an unstarted ``QuotaLimiter`` over the configured store."""
    cfg = cfg or default_settings
    return QuotaLimiter(create_quota_store(cfg), key_separator=cfg.quota.key_separator)
