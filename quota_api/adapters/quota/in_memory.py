"""In-memory quota store (development and tests).

Notes:
- Per-process only: running multiple workers multiplies the effective quota.
- Thread-safe: one lock makes every evaluation atomic, mirroring the
  single-script atomicity of the Redis store.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from fnmatch import fnmatchcase
from typing import Callable

from quota_api.adapters.quota.base import (
    AbstractQuotaStore,
    IncrementResult,
    Outcome,
    overage_field,
)
from quota_api.adapters.quota.windows import window_bounds
from quota_api.schemas.rules import Granularity, GranularityCategory, LimiterRule


@dataclass
class _WindowState:
    window_start: int
    window_end: int
    count: int


class InMemoryQuotaStore(AbstractQuotaStore):
    """Quota store keeping rules, counters and the overage ledger in process.

    Important:
        This store is per-process only. Use the Redis store whenever more
        than one process shares a quota.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        """Initialize the in-memory store.

        Args:
            clock: Time source function returning UNIX time in seconds.
        """
        self._clock = clock
        self._lock = threading.RLock()
        self._rules: dict[str, LimiterRule] = {}
        self._counters: dict[tuple[str, GranularityCategory], _WindowState] = {}
        self._overages: dict[str, dict[str, int]] = {}

    def start(self) -> None:
        return None

    def shutdown(self) -> None:
        return None

    def ping(self) -> bool:
        return True

    def _current_count(self, key: str, category: GranularityCategory, bounds: tuple[int, int]) -> int:
        """Counter value for the window ``bounds``; stale windows count as zero."""
        state = self._counters.get((key, category))
        if state is None or (state.window_start, state.window_end) != bounds:
            return 0
        return state.count

    def _live_count(self, key: str, category: GranularityCategory, now: float) -> int:
        state = self._counters.get((key, category))
        if state is None or now >= state.window_end:
            return 0
        return state.count

    def evaluate(self, key: str, override_expire_seconds: int | None = None) -> IncrementResult:
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._clock()

        with self._lock:
            rule = self._rules.get(key)
            if rule is None:
                return IncrementResult(key=key, outcome=Outcome.NO_RULE)

            pending: list[tuple[GranularityCategory, tuple[int, int]]] = []
            for granularity in rule.ordered_granularities():
                duration = granularity.duration_seconds
                if (
                    granularity.category is GranularityCategory.CUSTOM
                    and override_expire_seconds is not None
                    and override_expire_seconds > 0
                ):
                    # non-positive overrides fall back to the stored duration
                    duration = override_expire_seconds
                bounds = window_bounds(granularity.category, now, duration)
                if bounds is None:
                    continue

                used = self._current_count(key, granularity.category, bounds)
                if used >= granularity.max_amount:
                    ledger = self._overages.setdefault(key, {})
                    field = overage_field(granularity.category, bounds[0])
                    ledger[field] = ledger.get(field, 0) + 1
                    return IncrementResult(
                        key=key,
                        outcome=Outcome.REJECTED,
                        category=granularity.category,
                        used=used,
                        max_amount=granularity.max_amount,
                    )
                pending.append((granularity.category, bounds))

            for category, bounds in pending:
                used = self._current_count(key, category, bounds)
                self._counters[(key, category)] = _WindowState(
                    window_start=bounds[0],
                    window_end=bounds[1],
                    count=used + 1,
                )

        return IncrementResult(key=key, outcome=Outcome.ACCEPTED)

    def batch_set_rule(self, rule: LimiterRule) -> bool:
        stored = LimiterRule(
            key=rule.key,
            granularities=[
                Granularity(
                    category=g.category,
                    max_amount=g.max_amount,
                    duration_seconds=g.duration_seconds,
                )
                for g in rule.ordered_granularities()
            ],
        )
        with self._lock:
            if stored.granularities:
                self._rules[rule.key] = stored
            else:
                self._rules.pop(rule.key, None)
        return True

    def query_rules(self, pattern: str) -> list[LimiterRule]:
        now = self._clock()
        as_of_time = int(now * 1000)

        with self._lock:
            matched = [rule for key, rule in self._rules.items() if fnmatchcase(key, pattern)]
            result: list[LimiterRule] = []
            for rule in matched:
                granularities = [
                    Granularity(
                        category=g.category,
                        max_amount=g.max_amount,
                        now_amount=self._live_count(rule.key, g.category, now),
                        duration_seconds=g.duration_seconds,
                    )
                    for g in rule.ordered_granularities()
                ]
                granularities.sort(key=lambda g: g.max_amount)
                result.append(
                    LimiterRule(key=rule.key, granularities=granularities, as_of_time=as_of_time)
                )
        return result

    def query_overages(self, key: str) -> dict[str, int]:
        with self._lock:
            return dict(self._overages.get(key, {}))
