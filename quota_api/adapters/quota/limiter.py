"""Process-local quota facade.

``QuotaLimiter`` is what application code calls. It joins key segments into
a composite key, delegates to a quota store and converts every store failure
into a result value: callers never see store exceptions.

Outcomes:
- ``increment`` collapses to a boolean (accepted or no rule → True).
- ``try_increment`` returns the tagged ``IncrementResult`` so callers can
  tell a quota rejection apart from an infrastructure failure.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Sequence

from quota_api.adapters.quota.base import (
    AbstractQuotaStore,
    ErrorKind,
    IncrementResult,
    Outcome,
)
from quota_api.core.errors import QuotaProtocolError, QuotaStoreError
from quota_api.schemas.rules import LimiterRule

logger = logging.getLogger(__name__)

DEFAULT_KEY_SEPARATOR = "/"


def hash_quota_key(key: str) -> str:
    """Hash a quota key for logging without exposing caller identifiers."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def _error_kind(exc: QuotaStoreError) -> ErrorKind:
    if isinstance(exc, QuotaProtocolError):
        return ErrorKind.PROTOCOL
    raw = (exc.details or {}).get("error_kind")
    try:
        return ErrorKind(raw) if raw else ErrorKind.TRANSPORT
    except ValueError:
        return ErrorKind.TRANSPORT


class QuotaLimiter:
    """Quota facade over an explicitly owned store."""

    def __init__(self, store: AbstractQuotaStore, *, key_separator: str = DEFAULT_KEY_SEPARATOR) -> None:
        """Initialize the facade.

        Args:
            store: Quota store; started and stopped through this facade.
            key_separator: Separator used to join key segments.

        Raises:
            ValueError: If key_separator is empty.
        """
        if not key_separator:
            raise ValueError("key_separator must be a non-empty string")

        self._store = store
        self._key_separator = key_separator
        self._started = False

    @property
    def store(self) -> AbstractQuotaStore:
        return self._store

    @property
    def started(self) -> bool:
        return self._started

    def start(self) -> bool:
        """Start the underlying store.

        Returns:
            True when the store is ready; False (logged) on configuration errors.
        """
        try:
            self._store.start()
        except QuotaStoreError as exc:
            logger.error(
                "quota.start_failed",
                extra={
                    "store": type(self._store).__name__,
                    "error_code": exc.code,
                    "error_msg": exc.message,
                },
                exc_info=exc,
            )
            self._started = False
            return False

        self._started = True
        return True

    def shutdown(self) -> None:
        """Stop the underlying store; safe to call more than once."""
        self._store.shutdown()
        self._started = False

    def join_keys(self, keys: Sequence[str] | str) -> str:
        """Join key segments into the composite quota key.

        Args:
            keys: Key segments (a plain string counts as one segment).

        Returns:
            Composite key.

        Raises:
            ValueError: If no segments are given or the composite key is empty.
        """
        if isinstance(keys, str):
            keys = [keys]
        if not keys:
            raise ValueError("at least one key segment is required")

        composite = self._key_separator.join(str(k) for k in keys)
        if not composite:
            raise ValueError("key must be a non-empty string")
        return composite

    def try_increment(
        self,
        keys: Sequence[str] | str,
        override_expire_seconds: int | None = None,
    ) -> IncrementResult:
        """Check every granularity of the key and count one use atomically.

        Args:
            keys: Key segments joined with the configured separator.
            override_expire_seconds: Window length for CUSTOM granularities.

        Returns:
            IncrementResult; store failures yield outcome ERROR.

        Raises:
            ValueError: If keys are empty.
        """
        key = self.join_keys(keys)
        key_hash = hash_quota_key(key)

        try:
            result = self._store.evaluate(key, override_expire_seconds)
        except QuotaStoreError as exc:
            kind = _error_kind(exc)
            logger.error(
                "quota.store_error",
                extra={
                    "operation": "increment",
                    "key_hash": key_hash,
                    "error_kind": kind.value,
                    "error_code": exc.code,
                    "error_msg": exc.message,
                },
            )
            return IncrementResult(key=key, outcome=Outcome.ERROR, error_kind=kind)

        if result.outcome is Outcome.REJECTED:
            logger.info(
                "quota.rejected",
                extra={
                    "key_hash": key_hash,
                    "category": result.category.value if result.category else None,
                    "used": result.used,
                    "max_amount": result.max_amount,
                },
            )
        else:
            logger.debug(
                "quota.allowed",
                extra={"key_hash": key_hash, "outcome": result.outcome.value},
            )
        return result

    def increment(
        self,
        keys: Sequence[str] | str,
        override_expire_seconds: int | None = None,
    ) -> bool:
        """Boolean form of ``try_increment``.

        Returns:
            True when accepted or no rule exists; False when rejected or on error.
        """
        return self.try_increment(keys, override_expire_seconds).allowed

    def set_limiter_rule(self, rule: LimiterRule) -> bool:
        """Atomically replace the granularities of ``rule.key``.

        Returns:
            True on success; False (logged) on any failure, with nothing applied.
        """
        try:
            updated = self._store.batch_set_rule(rule)
        except QuotaStoreError as exc:
            logger.error(
                "quota.store_error",
                extra={
                    "operation": "set_rule",
                    "key_hash": hash_quota_key(rule.key),
                    "error_kind": _error_kind(exc).value,
                    "error_code": exc.code,
                    "error_msg": exc.message,
                },
            )
            return False

        logger.info(
            "quota.rule_set",
            extra={
                "key_hash": hash_quota_key(rule.key),
                "granularities": [g.category.value for g in rule.granularities],
            },
        )
        return updated

    def query_limiter_rules(self, pattern: str) -> list[LimiterRule]:
        """Rules matching ``pattern`` with live usage, or an empty list on failure."""
        try:
            return self._store.query_rules(pattern)
        except QuotaStoreError as exc:
            logger.error(
                "quota.store_error",
                extra={
                    "operation": "query_rules",
                    "error_kind": _error_kind(exc).value,
                    "error_code": exc.code,
                    "error_msg": exc.message,
                },
            )
            return []

    def query_overages(self, keys: Sequence[str] | str) -> dict[str, int]:
        """Overage ledger of the composite key, or an empty mapping on failure."""
        key = self.join_keys(keys)
        try:
            return self._store.query_overages(key)
        except QuotaStoreError as exc:
            logger.error(
                "quota.store_error",
                extra={
                    "operation": "query_overages",
                    "key_hash": hash_quota_key(key),
                    "error_kind": _error_kind(exc).value,
                    "error_code": exc.code,
                    "error_msg": exc.message,
                },
            )
            return {}

    def is_healthy(self) -> bool:
        return self._started and self._store.ping()
