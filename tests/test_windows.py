from datetime import datetime, timezone

import pytest

from quota_api.adapters.quota.windows import window_bounds
from quota_api.schemas.rules import GranularityCategory


def _ts(*args: int) -> int:
    return int(datetime(*args, tzinfo=timezone.utc).timestamp())


@pytest.mark.parametrize(
    ("category", "length"),
    [
        (GranularityCategory.SECOND, 1),
        (GranularityCategory.MINUTE, 60),
        (GranularityCategory.HOUR, 3600),
        (GranularityCategory.DAY, 86400),
    ],
)
def test_fixed_windows_are_epoch_aligned(category, length) -> None:
    now = _ts(2024, 3, 15, 10, 42, 17) + 0.75

    start, end = window_bounds(category, now)

    assert start <= now < end
    assert start % length == 0
    assert end - start == length


def test_month_window_follows_calendar() -> None:
    assert window_bounds(GranularityCategory.MONTH, _ts(2024, 2, 29, 23, 59, 59)) == (
        _ts(2024, 2, 1),
        _ts(2024, 3, 1),
    )


def test_december_rolls_into_next_year() -> None:
    assert window_bounds(GranularityCategory.MONTH, _ts(2023, 12, 31, 12)) == (
        _ts(2023, 12, 1),
        _ts(2024, 1, 1),
    )


def test_year_window() -> None:
    assert window_bounds(GranularityCategory.YEAR, _ts(2024, 7, 4)) == (_ts(2024, 1, 1), _ts(2025, 1, 1))


def test_custom_window_requires_duration() -> None:
    assert window_bounds(GranularityCategory.CUSTOM, 1000.0) is None
    assert window_bounds(GranularityCategory.CUSTOM, 1000.0, 0) is None
    assert window_bounds(GranularityCategory.CUSTOM, 1005.0, 10) == (1000, 1010)
