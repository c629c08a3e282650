"""Quota store interfaces and result types.

The facade depends on this abstraction (not the concrete implementation)
so the storage backend can be swapped without touching the API layer.

Store key layout shared by every backend and by the Lua scripts:

- ``rate_limiter_rule:<KEY>``: hash, granularity category to max amount
- ``rate_limiter_incr:<KEY>:<CATEGORY>``: counter for the current window
- ``rate_limiter_mark:<KEY>``: hash, ``<CATEGORY>_<windowStart>`` to overage count
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

from quota_api.schemas.rules import GranularityCategory, LimiterRule

RULE_PREFIX = "rate_limiter_rule:"
COUNTER_PREFIX = "rate_limiter_incr:"
OVERAGE_PREFIX = "rate_limiter_mark:"
CUSTOM_DURATION_FIELD = "CUSTOM_duration"


def rule_key(key: str) -> str:
    return f"{RULE_PREFIX}{key}"


def counter_key(key: str, category: GranularityCategory) -> str:
    return f"{COUNTER_PREFIX}{key}:{category.value}"


def overage_key(key: str) -> str:
    return f"{OVERAGE_PREFIX}{key}"


def overage_field(category: GranularityCategory, window_start: int) -> str:
    return f"{category.value}_{int(window_start)}"


class Outcome(str, Enum):
    """Result of a single check-and-increment."""

    ACCEPTED = "accepted"
    NO_RULE = "no_rule"
    REJECTED = "rejected"
    ERROR = "error"


class ErrorKind(str, Enum):
    """Why an operation failed before a quota decision was made."""

    CONFIGURATION = "configuration"
    TRANSPORT = "transport"
    PROTOCOL = "protocol"


@dataclass(frozen=True)
class IncrementResult:
    """Tagged result of a check-and-increment.

    Attributes:
        key: Composite quota key the decision applies to.
        outcome: Accepted, accepted without a rule, rejected or error.
        category: Granularity that was at capacity (rejections only).
        used: Counter value of that granularity (rejections only).
        max_amount: Ceiling of that granularity (rejections only).
        error_kind: Failure class (errors only).
    """

    key: str
    outcome: Outcome
    category: GranularityCategory | None = None
    used: int | None = None
    max_amount: int | None = None
    error_kind: ErrorKind | None = None

    @property
    def allowed(self) -> bool:
        """Whether the caller may proceed (accepted, with or without a rule)."""
        return self.outcome in (Outcome.ACCEPTED, Outcome.NO_RULE)


class AbstractQuotaStore(ABC):
    """Interface for quota stores.

    Implementations raise ``QuotaStoreError`` (or ``QuotaProtocolError``) on
    failures; the facade is responsible for converting them into results.
    """

    @abstractmethod
    def start(self) -> None:
        """Acquire resources (connections, scripts).

        Raises:
            QuotaStoreError: If the store is unreachable or misconfigured.
        """
        raise NotImplementedError

    @abstractmethod
    def shutdown(self) -> None:
        """Release resources acquired by ``start``."""
        raise NotImplementedError

    @abstractmethod
    def ping(self) -> bool:
        """Return True when the store answers."""
        raise NotImplementedError

    @abstractmethod
    def evaluate(self, key: str, override_expire_seconds: int | None = None) -> IncrementResult:
        """Atomically check every granularity of ``key`` and count one use.

        Args:
            key: Composite quota key.
            override_expire_seconds: Window length for CUSTOM granularities.

        Returns:
            IncrementResult with outcome ACCEPTED, NO_RULE or REJECTED.
        """
        raise NotImplementedError

    @abstractmethod
    def batch_set_rule(self, rule: LimiterRule) -> bool:
        """Atomically replace every granularity of ``rule.key``."""
        raise NotImplementedError

    @abstractmethod
    def query_rules(self, pattern: str) -> list[LimiterRule]:
        """Return rules whose key matches the glob ``pattern`` with live usage."""
        raise NotImplementedError

    @abstractmethod
    def query_overages(self, key: str) -> dict[str, int]:
        """Return the overage ledger of ``key``."""
        raise NotImplementedError
