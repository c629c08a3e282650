"""Quota store adapters.

The facade (``QuotaLimiter``) depends on ``AbstractQuotaStore`` only, so the
Redis store used in production and the in-memory store used for local
development and tests are interchangeable.
"""

from quota_api.adapters.quota.base import (
    AbstractQuotaStore,
    ErrorKind,
    IncrementResult,
    Outcome,
)
from quota_api.adapters.quota.factory import create_quota_limiter, create_quota_store
from quota_api.adapters.quota.in_memory import InMemoryQuotaStore
from quota_api.adapters.quota.limiter import QuotaLimiter
from quota_api.adapters.quota.redis_store import RedisQuotaStore

__all__ = [
    "AbstractQuotaStore",
    "ErrorKind",
    "InMemoryQuotaStore",
    "IncrementResult",
    "Outcome",
    "QuotaLimiter",
    "RedisQuotaStore",
    "create_quota_limiter",
    "create_quota_store",
]
