"""Unit tests for reservation time arithmetic."""

from datetime import time

import pytest

from tablebook.common.timeslots import compute_end_time, crosses_midnight, interval, overlaps, to_minutes


def test_compute_end_time_adds_two_hours_by_default():
    assert compute_end_time("19:00") == "21:00"
    assert compute_end_time("19:30", 90) == "21:00"


def test_compute_end_time_wraps_past_midnight():
    """Hour component past 24 wraps to the next day's clock time."""

    assert compute_end_time("23:00") == "01:00"
    assert compute_end_time("22:00") == "00:00"


def test_to_minutes_accepts_seconds_and_time_objects():
    assert to_minutes("19:30") == 1170
    assert to_minutes("19:30:00") == 1170
    assert to_minutes(time(7, 5)) == 425


@pytest.mark.parametrize("value", ["", "7", "25:00", "10:61", "ab:cd"])
def test_to_minutes_rejects_garbage(value):
    with pytest.raises(ValueError):
        to_minutes(value)


def test_adjacent_intervals_do_not_overlap():
    """[10:00,12:00) and [12:00,14:00) share only an endpoint."""

    assert not overlaps(*interval("10:00", "12:00"), *interval("12:00", "14:00"))
    assert not overlaps(*interval("12:00", "14:00"), *interval("10:00", "12:00"))


def test_partially_overlapping_intervals_overlap():
    assert overlaps(*interval("10:00", "12:00"), *interval("11:00", "13:00"))
    assert overlaps(*interval("11:00", "13:00"), *interval("10:00", "12:00"))


def test_containment_overlaps_even_with_different_start_times():
    assert overlaps(*interval("18:00", "22:00"), *interval("19:00", "20:00"))


def test_interval_crossing_midnight_is_normalized():
    assert crosses_midnight("23:00", "01:00")
    assert interval("23:00", "01:00") == (1380, 1500)
    # A 00:30 slot on the next day sits at 1440 + 30 on the same axis.
    assert overlaps(*interval("23:00", "01:00"), *interval("00:30", "02:30", day_offset=1))
    assert not overlaps(*interval("23:00", "01:00"), *interval("01:00", "03:00", day_offset=1))
