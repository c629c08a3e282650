"""Window boundaries for each granularity category.

All windows are aligned in UTC. SECOND, MINUTE, HOUR and DAY are fixed-length
epoch multiples; MONTH and YEAR follow the calendar; CUSTOM uses an explicit
length in seconds. ``limiter.lua`` computes the same boundaries server-side.
"""

from __future__ import annotations

from datetime import datetime, timezone

from quota_api.schemas.rules import GranularityCategory

FIXED_WINDOW_SECONDS: dict[GranularityCategory, int] = {
    GranularityCategory.SECOND: 1,
    GranularityCategory.MINUTE: 60,
    GranularityCategory.HOUR: 3600,
    GranularityCategory.DAY: 86400,
}


def _epoch(value: datetime) -> int:
    return int(value.timestamp())


def window_bounds(
    category: GranularityCategory,
    now: float,
    duration_seconds: int | None = None,
) -> tuple[int, int] | None:
    """Compute ``(start, end)`` epoch seconds of the window containing ``now``.

    Args:
        category: Granularity category.
        now: UNIX time in seconds.
        duration_seconds: Window length for CUSTOM.

    Returns:
        Window bounds, or None for a CUSTOM window without a usable length.
    """
    seconds = int(now)

    if category is GranularityCategory.CUSTOM:
        if not duration_seconds or duration_seconds <= 0:
            return None
        start = seconds - seconds % duration_seconds
        return start, start + duration_seconds

    length = FIXED_WINDOW_SECONDS.get(category)
    if length is not None:
        start = seconds - seconds % length
        return start, start + length

    current = datetime.fromtimestamp(seconds, tz=timezone.utc)
    if category is GranularityCategory.MONTH:
        start_dt = datetime(current.year, current.month, 1, tzinfo=timezone.utc)
        if current.month == 12:
            end_dt = datetime(current.year + 1, 1, 1, tzinfo=timezone.utc)
        else:
            end_dt = datetime(current.year, current.month + 1, 1, tzinfo=timezone.utc)
        return _epoch(start_dt), _epoch(end_dt)

    start_dt = datetime(current.year, 1, 1, tzinfo=timezone.utc)
    end_dt = datetime(current.year + 1, 1, 1, tzinfo=timezone.utc)
    return _epoch(start_dt), _epoch(end_dt)
