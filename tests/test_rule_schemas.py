import pytest
from pydantic import ValidationError

from quota_api.schemas.rules import Granularity, GranularityCategory, IncrementRequest, LimiterRule


def test_custom_requires_duration() -> None:
    with pytest.raises(ValidationError):
        Granularity(category=GranularityCategory.CUSTOM, max_amount=1)


def test_duration_only_allowed_for_custom() -> None:
    with pytest.raises(ValidationError):
        Granularity(category=GranularityCategory.MINUTE, max_amount=1, duration_seconds=60)


def test_negative_max_amount_rejected() -> None:
    with pytest.raises(ValidationError):
        Granularity(category=GranularityCategory.MINUTE, max_amount=-1)


def test_duplicate_categories_rejected() -> None:
    with pytest.raises(ValidationError):
        LimiterRule(
            key="api/u",
            granularities=[
                Granularity(category=GranularityCategory.MINUTE, max_amount=1),
                Granularity(category=GranularityCategory.MINUTE, max_amount=2),
            ],
        )


def test_empty_key_rejected() -> None:
    with pytest.raises(ValidationError):
        LimiterRule(key="")


def test_ordered_granularities_use_category_order() -> None:
    rule = LimiterRule(
        key="api/u",
        granularities=[
            Granularity(category=GranularityCategory.YEAR, max_amount=1),
            Granularity(category=GranularityCategory.SECOND, max_amount=9),
            Granularity(category=GranularityCategory.HOUR, max_amount=5),
        ],
    )

    assert [g.category for g in rule.ordered_granularities()] == [
        GranularityCategory.SECOND,
        GranularityCategory.HOUR,
        GranularityCategory.YEAR,
    ]


@pytest.mark.parametrize("payload", [{"keys": []}, {"keys": [""]}, {"keys": ["a"], "expire_seconds": 0}])
def test_increment_request_validation(payload) -> None:
    with pytest.raises(ValidationError):
        IncrementRequest(**payload)
