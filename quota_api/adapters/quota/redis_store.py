"""Redis-backed quota store.

Every quota decision, rule replacement and rule query runs as one Lua script,
so it executes atomically on the server and no client-side locking is needed.

Notes:
- Connections come from a bounded ``BlockingConnectionPool``; exhaustion
  raises after ``pool_timeout_seconds`` instead of waiting forever.
- Window boundaries use the Redis server clock (``TIME``), never the caller's.
"""

from __future__ import annotations

import logging
from typing import Any

import redis
from pydantic import ValidationError

from quota_api.adapters.quota.base import (
    CUSTOM_DURATION_FIELD,
    AbstractQuotaStore,
    ErrorKind,
    IncrementResult,
    Outcome,
    overage_key,
)
from quota_api.adapters.quota.scripts import (
    LIMITER_RULE_BATCH_SET_SCRIPT,
    LIMITER_RULE_QUERY_SCRIPT,
    LIMITER_SCRIPT,
    SCRIPT_NAMES,
    load_script,
)
from quota_api.core.config import RedisSettings
from quota_api.core.errors import QuotaProtocolError, QuotaStoreError
from quota_api.schemas.rules import Granularity, GranularityCategory, LimiterRule

logger = logging.getLogger(__name__)

_REPLY_PREVIEW_CHARS = 200


def build_connection_pool(cfg: RedisSettings) -> redis.BlockingConnectionPool:
    """Create the bounded, blocking connection pool for the quota store.

    Args:
        cfg: Redis connection settings.

    Returns:
        Configured BlockingConnectionPool (connections are opened lazily).
    """
    options: dict[str, Any] = {
        "max_connections": cfg.max_connections,
        "timeout": cfg.pool_timeout_seconds,
        "socket_timeout": cfg.socket_timeout_seconds,
        "socket_connect_timeout": cfg.socket_connect_timeout_seconds,
        "decode_responses": True,
    }
    if cfg.url:
        return redis.BlockingConnectionPool.from_url(cfg.url, **options)
    return redis.BlockingConnectionPool(
        host=cfg.host,
        port=cfg.port,
        db=cfg.db,
        password=cfg.password,
        **options,
    )


def _text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


def _malformed(operation: str, reply: Any, reason: str) -> QuotaProtocolError:
    return QuotaProtocolError(
        code="malformed_store_reply",
        message=f"Unexpected reply from quota store during {operation}: {reason}",
        details={
            "error_kind": ErrorKind.PROTOCOL.value,
            "operation": operation,
            "reply_preview": repr(reply)[:_REPLY_PREVIEW_CHARS],
        },
    )


def encode_rule_args(rule: LimiterRule) -> list[str]:
    """Flatten a rule into the field/value pairs expected by the batch-set script."""
    args: list[str] = []
    for granularity in rule.ordered_granularities():
        args.extend([granularity.category.value, str(granularity.max_amount)])
        if granularity.duration_seconds is not None:
            args.extend([CUSTOM_DURATION_FIELD, str(granularity.duration_seconds)])
    return args


def parse_limiter_reply(key: str, reply: Any) -> IncrementResult:
    """Interpret the limiter script reply.

    Args:
        key: Composite key that was evaluated.
        reply: Raw script reply.

    Returns:
        IncrementResult with outcome ACCEPTED, NO_RULE or REJECTED.

    Raises:
        QuotaProtocolError: If the reply is absent, empty or of unknown shape.
    """
    if not isinstance(reply, list) or not reply:
        raise _malformed("evaluate", reply, "expected a non-empty list")

    status = _text(reply[0])
    if status == "OK":
        return IncrementResult(key=key, outcome=Outcome.ACCEPTED)
    if status == "NORULE":
        return IncrementResult(key=key, outcome=Outcome.NO_RULE)
    if status == "FULL":
        if len(reply) < 4:
            raise _malformed("evaluate", reply, "FULL reply is missing fields")
        try:
            category = GranularityCategory(_text(reply[1]))
            used = int(reply[2])
            max_amount = int(reply[3])
        except (TypeError, ValueError) as exc:
            raise _malformed("evaluate", reply, str(exc)) from exc
        return IncrementResult(
            key=key,
            outcome=Outcome.REJECTED,
            category=category,
            used=used,
            max_amount=max_amount,
        )

    raise _malformed("evaluate", reply, f"unknown status {status!r}")


def _parse_granularity(entry: Any) -> Granularity:
    if not isinstance(entry, list) or len(entry) not in (3, 4):
        raise ValueError("granularity must be [category, max, now] or [category, max, now, duration]")
    category = GranularityCategory(_text(entry[0]))
    duration = int(entry[3]) if len(entry) == 4 else None
    return Granularity(
        category=category,
        max_amount=int(entry[1]),
        now_amount=int(entry[2]),
        duration_seconds=duration,
    )


def parse_query_reply(reply: Any) -> list[LimiterRule]:
    """Interpret the rule query script reply.

    Any malformed entry aborts the whole query rather than being skipped.

    Args:
        reply: ``[as_of_ms, key, granularities, key, granularities, ...]``.

    Returns:
        Rules with granularities sorted ascending by ``max_amount``.

    Raises:
        QuotaProtocolError: If the reply has an unexpected shape.
    """
    if not isinstance(reply, list) or len(reply) % 2 == 0:
        raise _malformed("query", reply, "expected an odd-length list")

    try:
        as_of_time = int(reply[0])
    except (TypeError, ValueError) as exc:
        raise _malformed("query", reply, "snapshot time is not an integer") from exc

    rules: list[LimiterRule] = []
    for index in range(1, len(reply), 2):
        entries = reply[index + 1]
        if not isinstance(entries, list):
            raise _malformed("query", reply, f"granularities of entry {index} are not a list")
        try:
            granularities = [_parse_granularity(entry) for entry in entries]
            granularities.sort(key=lambda g: g.max_amount)
            rules.append(
                LimiterRule(
                    key=_text(reply[index]),
                    granularities=granularities,
                    as_of_time=as_of_time,
                )
            )
        except (TypeError, ValueError, ValidationError) as exc:
            raise _malformed("query", reply, str(exc)) from exc

    return rules


class RedisQuotaStore(AbstractQuotaStore):
    """Quota store executing Lua scripts against a shared Redis.

    The store owns its connection pool: ``start`` creates it, pings the
    server and loads the scripts; ``shutdown`` disconnects the pool. A
    pre-built client may be injected instead (e.g., tests); the caller then
    owns that client's connections.
    """

    def __init__(
        self,
        *,
        settings: RedisSettings | None = None,
        client: redis.Redis | None = None,
    ) -> None:
        """Initialize the store without touching the network.

        Args:
            settings: Redis connection settings (defaults from environment).
            client: Optional pre-built Redis client to use instead of a pool.
        """
        self._settings = settings or RedisSettings()
        self._injected_client = client
        self._client: redis.Redis | None = None
        self._pool: redis.BlockingConnectionPool | None = None
        self._scripts: dict[str, Any] = {}

    @property
    def started(self) -> bool:
        return self._client is not None and len(self._scripts) == len(SCRIPT_NAMES)

    def start(self) -> None:
        if self.started:
            return

        try:
            if self._injected_client is not None:
                client = self._injected_client
            else:
                self._pool = build_connection_pool(self._settings)
                client = redis.Redis(connection_pool=self._pool)

            client.ping()
            scripts = {}
            for name in SCRIPT_NAMES:
                body = load_script(name)
                client.script_load(body)
                scripts[name] = client.register_script(body)
        except (redis.RedisError, OSError, ValueError) as exc:
            # ValueError: malformed REDIS_URL
            self._release_pool()
            raise QuotaStoreError(
                code="store_start_failed",
                message="Quota store is unreachable or cannot run scripts",
                details={
                    "error_kind": ErrorKind.CONFIGURATION.value,
                    "operation": "start",
                },
            ) from exc

        self._client = client
        self._scripts = scripts
        logger.info(
            "quota.store_started",
            extra={
                "backend": "redis",
                "max_connections": self._settings.max_connections,
                "scripts": list(scripts),
            },
        )

    def shutdown(self) -> None:
        self._scripts = {}
        self._client = None
        self._release_pool()
        logger.info("quota.store_stopped", extra={"backend": "redis"})

    def _release_pool(self) -> None:
        if self._pool is not None:
            self._pool.disconnect()
            self._pool = None

    def _require_client(self, operation: str) -> redis.Redis:
        if self._client is None:
            raise QuotaStoreError(
                code="store_not_started",
                message="Quota store has not been started",
                details={
                    "error_kind": ErrorKind.CONFIGURATION.value,
                    "operation": operation,
                },
            )
        return self._client

    def _run_script(self, name: str, *, keys: list[str], args: list[Any], operation: str) -> Any:
        self._require_client(operation)
        script = self._scripts[name]
        try:
            return script(keys=keys, args=args)
        except redis.RedisError as exc:
            raise QuotaStoreError(
                code="store_command_failed",
                message=f"Quota store {operation} failed: {exc}",
                details={
                    "error_kind": ErrorKind.TRANSPORT.value,
                    "operation": operation,
                },
            ) from exc

    def ping(self) -> bool:
        if self._client is None:
            return False
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            return False

    def evaluate(self, key: str, override_expire_seconds: int | None = None) -> IncrementResult:
        args: list[Any] = []
        if override_expire_seconds is not None:
            args.append(int(override_expire_seconds))
        reply = self._run_script(LIMITER_SCRIPT, keys=[key], args=args, operation="evaluate")
        logger.debug("quota.evaluate_reply", extra={"reply": reply})
        return parse_limiter_reply(key, reply)

    def batch_set_rule(self, rule: LimiterRule) -> bool:
        reply = self._run_script(
            LIMITER_RULE_BATCH_SET_SCRIPT,
            keys=[rule.key],
            args=encode_rule_args(rule),
            operation="batch_set_rule",
        )
        if reply != 1:
            raise _malformed("batch_set_rule", reply, "expected 1")
        return True

    def query_rules(self, pattern: str) -> list[LimiterRule]:
        reply = self._run_script(
            LIMITER_RULE_QUERY_SCRIPT,
            keys=[],
            args=[pattern],
            operation="query_rules",
        )
        return parse_query_reply(reply)

    def query_overages(self, key: str) -> dict[str, int]:
        client = self._require_client("query_overages")
        try:
            raw = client.hgetall(overage_key(key))
        except redis.RedisError as exc:
            raise QuotaStoreError(
                code="store_command_failed",
                message=f"Quota store query_overages failed: {exc}",
                details={
                    "error_kind": ErrorKind.TRANSPORT.value,
                    "operation": "query_overages",
                },
            ) from exc

        try:
            return {_text(field): int(count) for field, count in raw.items()}
        except (TypeError, ValueError) as exc:
            raise _malformed("query_overages", raw, str(exc)) from exc
