"""Unit tests for the in-memory quota store."""

import threading

from quota_api.adapters.quota.base import Outcome
from quota_api.adapters.quota.in_memory import InMemoryQuotaStore
from quota_api.schemas.rules import Granularity, GranularityCategory, LimiterRule

SECOND = GranularityCategory.SECOND


def _rule(key: str, **limits: int) -> LimiterRule:
    return LimiterRule(
        key=key,
        granularities=[
            Granularity(category=GranularityCategory(name), max_amount=amount)
            for name, amount in limits.items()
        ],
    )


def test_no_rule_is_always_accepted(memory_store) -> None:
    for _ in range(100):
        assert memory_store.evaluate("api/anyone").outcome is Outcome.NO_RULE


def test_accepts_up_to_max_then_rejects(memory_store, clock) -> None:
    memory_store.batch_set_rule(_rule("api/u", MINUTE=3))

    outcomes = [memory_store.evaluate("api/u").outcome for _ in range(5)]

    assert outcomes == [Outcome.ACCEPTED] * 3 + [Outcome.REJECTED] * 2
    window_start = int(clock.now) - int(clock.now) % 60
    assert memory_store.query_overages("api/u") == {f"MINUTE_{window_start}": 2}


def test_window_reset(memory_store, clock) -> None:
    memory_store.batch_set_rule(_rule("api/u", SECOND=1))

    assert memory_store.evaluate("api/u").allowed is True
    assert memory_store.evaluate("api/u").allowed is False

    clock.advance(1)
    assert memory_store.evaluate("api/u").allowed is True


def test_sixth_call_in_same_second_rejected(memory_store, clock) -> None:
    memory_store.batch_set_rule(_rule("api/u", SECOND=5, MINUTE=100))

    results = [memory_store.evaluate("api/u") for _ in range(6)]

    assert all(r.allowed for r in results[:5])
    assert results[5].category is SECOND

    clock.advance(1)
    assert memory_store.evaluate("api/u").allowed is True


def test_rejection_does_not_consume_other_granularities(memory_store) -> None:
    memory_store.batch_set_rule(_rule("api/u", SECOND=1, MINUTE=10))
    memory_store.evaluate("api/u")
    memory_store.evaluate("api/u")
    memory_store.evaluate("api/u")

    (rule,) = memory_store.query_rules("api/u")

    assert [g.now_amount for g in rule.granularities] == [1, 1]


def test_custom_override_sets_window_length(memory_store, clock) -> None:
    clock.now = 1_700_000_000.0  # multiple of 10 and 100
    memory_store.batch_set_rule(
        LimiterRule(
            key="api/job",
            granularities=[Granularity(category=GranularityCategory.CUSTOM, max_amount=1, duration_seconds=100)],
        )
    )

    assert memory_store.evaluate("api/job", override_expire_seconds=10).allowed is True
    clock.advance(5)
    assert memory_store.evaluate("api/job", override_expire_seconds=10).allowed is False
    clock.advance(5)
    # a new 10 second window even though the rule says 100
    assert memory_store.evaluate("api/job", override_expire_seconds=10).allowed is True


def test_query_sorted_by_max_amount_and_filtered(memory_store, clock) -> None:
    memory_store.batch_set_rule(_rule("api/u1", DAY=1000, SECOND=5, MINUTE=100))
    memory_store.batch_set_rule(_rule("jobs/nightly", DAY=1))

    rules = memory_store.query_rules("api/*")

    assert [r.key for r in rules] == ["api/u1"]
    assert [g.max_amount for g in rules[0].granularities] == [5, 100, 1000]
    assert rules[0].as_of_time == int(clock.now * 1000)


def test_empty_rule_clears_limits(memory_store) -> None:
    memory_store.batch_set_rule(_rule("api/u", MINUTE=0))
    assert memory_store.evaluate("api/u").allowed is False

    memory_store.batch_set_rule(LimiterRule(key="api/u"))

    assert memory_store.evaluate("api/u").outcome is Outcome.NO_RULE
    assert memory_store.query_rules("*") == []


def test_concurrent_increments_accept_exactly_max(clock) -> None:
    store = InMemoryQuotaStore(clock=clock)
    store.batch_set_rule(_rule("api/shared", MINUTE=50))
    accepted = []
    lock = threading.Lock()

    def worker() -> None:
        count = sum(store.evaluate("api/shared").allowed for _ in range(25))
        with lock:
            accepted.append(count)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sum(accepted) == 50
    assert sum(store.query_overages("api/shared").values()) == 150


def test_negative_override_does_not_skip_custom_window(memory_store) -> None:
    memory_store.batch_set_rule(
        LimiterRule(
            key="api/job",
            granularities=[Granularity(category=GranularityCategory.CUSTOM, max_amount=1, duration_seconds=60)],
        )
    )

    assert memory_store.evaluate("api/job", override_expire_seconds=-5).allowed is True
    assert memory_store.evaluate("api/job", override_expire_seconds=-5).allowed is False
