"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before anything imports
``quota_api.core.config`` so the global settings pick them up.
"""

import os

# Must run before any import that builds settings
os.environ["APP_ENV"] = "testing"
os.environ["APP_API_KEY_REQUIRED"] = "true"
os.environ["APP_API_KEYS"] = "test-api-key-123,test-api-key-456"
os.environ["APP_ADMIN_API_KEYS"] = "test-admin-key"
os.environ["QUOTA_BACKEND"] = "memory"
os.environ["QUOTA_ENFORCE_ENABLED"] = "true"
os.environ["QUOTA_FAIL_OPEN"] = "false"
os.environ.setdefault("LOG_LEVEL", "WARNING")

import fakeredis
import pytest

from quota_api.adapters.quota import InMemoryQuotaStore, QuotaLimiter, RedisQuotaStore


class FakeClock:
    """Manually advanced time source for the in-memory store."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store(clock: FakeClock) -> InMemoryQuotaStore:
    store = InMemoryQuotaStore(clock=clock)
    store.start()
    return store


@pytest.fixture
def fake_redis() -> fakeredis.FakeRedis:
    """Isolated fake Redis server with Lua scripting."""
    return fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture
def redis_store(fake_redis: fakeredis.FakeRedis):
    store = RedisQuotaStore(client=fake_redis)
    store.start()
    yield store
    store.shutdown()


@pytest.fixture
def memory_limiter(memory_store: InMemoryQuotaStore) -> QuotaLimiter:
    limiter = QuotaLimiter(memory_store)
    limiter.start()
    return limiter
