"""Summary: Tests for interval helpers.

Importance: Overlap and band rules decide which candidates survive every search.
Alternatives: Test only through the availability engine.
"""

from __future__ import annotations

from datetime import datetime, time, timezone

import pytest

from meetpilot.errors import ValidationError
from meetpilot.intervals import (
    band_hours,
    in_band,
    overlaps,
    parse_time_of_day,
    resolve_timezone,
    time_of_day,
    within_waking_hours,
)
from meetpilot.models import DEFAULT_WORK_HOURS, BusyInterval, TimeOfDay, WorkHours


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(2030, 1, 7, hour, minute, tzinfo=timezone.utc)


def test_overlap_is_half_open() -> None:
    """Summary: Adjacent intervals do not conflict.

    Importance: Back-to-back meetings must both remain schedulable.
    Alternatives: Treat touching endpoints as a conflict.
    """

    assert overlaps(_at(9), _at(10), _at(9, 30), _at(11))
    assert not overlaps(_at(9), _at(10), _at(10), _at(11))
    assert not overlaps(_at(10), _at(11), _at(9), _at(10))


def test_busy_interval_rejects_empty_span() -> None:
    with pytest.raises(ValidationError):
        BusyInterval(start=_at(10), end=_at(10), owner_id=1)


def test_band_hours_skip_lunch_and_add_evening() -> None:
    """Summary: Default work hours produce morning, afternoon, and evening bands.

    Importance: The lunch hour is never offered as a candidate.
    Alternatives: Offer every hour of the working day.
    """

    assert band_hours(DEFAULT_WORK_HOURS) == [9, 10, 11, 13, 14, 15, 16, 17, 18, 19, 20]
    late = WorkHours(start=time(10, 30), end=time(16, 0))
    assert band_hours(late) == [11, 13, 14, 15, 18, 19, 20]


def test_in_band_uses_the_containing_hour() -> None:
    assert in_band(_at(9), DEFAULT_WORK_HOURS)
    assert in_band(_at(9, 30), DEFAULT_WORK_HOURS)
    assert in_band(_at(20, 45), DEFAULT_WORK_HOURS)
    assert not in_band(_at(12), DEFAULT_WORK_HOURS)
    assert not in_band(_at(12, 30), DEFAULT_WORK_HOURS)
    assert not in_band(_at(21, 30), DEFAULT_WORK_HOURS)


def test_within_waking_hours() -> None:
    """Summary: Spans before waking or past bedtime are rejected.

    Importance: Keeps cross-timezone candidates humane for both people.
    Alternatives: Rely on work hours alone.
    """

    assert within_waking_hours(_at(9), _at(10), time(7), time(23))
    assert not within_waking_hours(_at(6), _at(7), time(7), time(23))
    assert not within_waking_hours(_at(22, 30), _at(23, 30), time(7), time(23))
    assert within_waking_hours(_at(22), _at(23), time(8), time(1))
    assert within_waking_hours(_at(9), _at(10), None, None)


def test_parse_time_of_day_and_timezones() -> None:
    assert parse_time_of_day("08:15") == time(8, 15)
    with pytest.raises(ValidationError):
        parse_time_of_day("25:00")
    with pytest.raises(ValidationError):
        resolve_timezone("Mars/Olympus")
    assert resolve_timezone("Asia/Seoul").key == "Asia/Seoul"


def test_time_of_day_buckets() -> None:
    assert time_of_day(9) == TimeOfDay.MORNING
    assert time_of_day(12) == TimeOfDay.AFTERNOON
    assert time_of_day(16) == TimeOfDay.AFTERNOON
    assert time_of_day(17) == TimeOfDay.EVENING
