"""Reservation time arithmetic.

Times travel as `HH:MM` strings (seconds tolerated) or `datetime.time` values.
Intervals are half-open `[start, end)` in minutes since midnight of the
booking date; an end at or before its start belongs to the next day.
"""

from datetime import time

MINUTES_PER_DAY = 24 * 60
DEFAULT_DURATION_MINUTES = 120


def to_minutes(value: str | time) -> int:
    """Convert `HH:MM` (or a `time`) to minutes since midnight."""

    if isinstance(value, time):
        return value.hour * 60 + value.minute
    parts = value.strip().split(":")
    if len(parts) < 2:
        raise ValueError(f"invalid time: {value!r}")
    hour, minute = int(parts[0]), int(parts[1])
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValueError(f"invalid time: {value!r}")
    return hour * 60 + minute


def format_minutes(minutes: int) -> str:
    hour, minute = divmod(minutes % MINUTES_PER_DAY, 60)
    return f"{hour:02d}:{minute:02d}"


def compute_end_time(start_time: str | time, duration_minutes: int = DEFAULT_DURATION_MINUTES) -> str:
    """Add the fixed duration to a start time, wrapping past midnight."""

    return format_minutes(to_minutes(start_time) + duration_minutes)


def parse_time(value: str | time) -> time:
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    minutes = to_minutes(value)
    return time(minutes // 60, minutes % 60)


def interval(start_time: str | time, end_time: str | time, day_offset: int = 0) -> tuple[int, int]:
    """Half-open minute interval, normalized across midnight and shifted by whole days."""

    start = to_minutes(start_time)
    end = to_minutes(end_time)
    if end <= start:
        end += MINUTES_PER_DAY
    shift = day_offset * MINUTES_PER_DAY
    return start + shift, end + shift


def overlaps(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """Half-open overlap: `[s1,e1)` and `[s2,e2)` intersect iff s1 < e2 and e1 > s2."""

    return start_a < end_b and end_a > start_b


def crosses_midnight(start_time: str | time, end_time: str | time) -> bool:
    return to_minutes(end_time) <= to_minutes(start_time)
