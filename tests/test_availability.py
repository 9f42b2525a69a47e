"""Summary: Tests for the availability engine.

Importance: Ensures shared free slots honour busy time, bands, weekends, and timezones.
Alternatives: Validate availability manually against sample calendars.
"""

from __future__ import annotations

from datetime import datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from meetpilot.availability import AvailabilityEngine, score_slot
from meetpilot.errors import ValidationError
from meetpilot.models import (
    BusyInterval,
    LearnedPattern,
    Participant,
    Relationship,
    RelationshipStatus,
    TimeOfDay,
    TimeSlot,
)

MONDAY = datetime(2030, 1, 7, tzinfo=timezone.utc)


def _participant(user_id: int, tz: str = "UTC", **kwargs) -> Participant:
    return Participant(
        user_id=user_id,
        email=f"user{user_id}@example.com",
        display_name=f"User {user_id}",
        timezone=tz,
        **kwargs,
    )


def _engine(now: datetime = MONDAY) -> AvailabilityEngine:
    return AvailabilityEngine(clock=lambda: now)


def test_busy_hour_is_excluded_from_working_day() -> None:
    """Summary: A busy afternoon hour removes only that candidate.

    Importance: Verifies lunch exclusion and the window end bound together.
    Alternatives: Compare only the number of slots.
    """

    busy = [BusyInterval(start=MONDAY.replace(hour=14), end=MONDAY.replace(hour=15), owner_id=1)]
    slots = _engine().find_slots(
        _participant(1),
        _participant(2),
        busy,
        [],
        MONDAY.replace(hour=9),
        MONDAY.replace(hour=18),
        60,
    )
    assert [slot.start.hour for slot in slots] == [9, 10, 11, 13, 15, 16, 17]
    assert all(slot.duration == timedelta(hours=1) for slot in slots)
    assert all(slot.available for slot in slots)


def test_back_to_back_busy_time_does_not_block() -> None:
    busy = [BusyInterval(start=MONDAY.replace(hour=9), end=MONDAY.replace(hour=10), owner_id=2)]
    slots = _engine().find_slots(
        _participant(1),
        _participant(2),
        [],
        busy,
        MONDAY.replace(hour=9),
        MONDAY.replace(hour=12),
        60,
    )
    assert [slot.start.hour for slot in slots] == [10, 11]


def test_slots_never_overlap_either_calendar() -> None:
    busy_a = [BusyInterval(start=MONDAY.replace(hour=10, minute=30), end=MONDAY.replace(hour=11), owner_id=1)]
    busy_b = [BusyInterval(start=MONDAY.replace(hour=16), end=MONDAY.replace(hour=19, minute=15), owner_id=2)]
    slots = _engine().find_slots(
        _participant(1), _participant(2), busy_a, busy_b, MONDAY, MONDAY + timedelta(days=1), 60
    )
    assert [slot.start.hour for slot in slots] == [9, 11, 13, 14, 15, 20]
    for slot in slots:
        for interval in busy_a + busy_b:
            assert not (slot.start < interval.end and interval.start < slot.end)


def test_weekends_are_skipped_by_default() -> None:
    """Summary: Saturday and Sunday produce no candidates.

    Importance: Keeps friend meetings on weekdays unless configured otherwise.
    Alternatives: Always include weekends.
    """

    saturday = MONDAY - timedelta(days=2)
    slots = _engine().find_slots(
        _participant(1), _participant(2), [], [], saturday, MONDAY, 60
    )
    assert slots == []
    weekend_engine = AvailabilityEngine(skip_weekends=False, clock=lambda: MONDAY)
    weekend_slots = weekend_engine.find_slots(
        _participant(1), _participant(2), [], [], saturday, MONDAY, 60
    )
    assert len(weekend_slots) == 22


def test_other_participant_bands_apply_in_their_timezone() -> None:
    """Summary: The second participant's local bands filter candidates.

    Importance: A Seoul friend should not be offered 3am meetings.
    Alternatives: Apply only the first participant's hours.
    """

    seoul = _participant(2, "Asia/Seoul")
    slots = _engine().find_slots(
        _participant(1), seoul, [], [], MONDAY, MONDAY + timedelta(days=1), 60
    )
    # 09:00-11:00 UTC is 18:00-20:00 in Seoul, the evening band.
    assert [slot.start.hour for slot in slots] == [9, 10, 11]
    for slot in slots:
        assert slot.start.astimezone(ZoneInfo("Asia/Seoul")).hour in (18, 19, 20)


def test_half_hour_offset_timezone_still_shares_slots() -> None:
    """Summary: A Kolkata friend overlaps a London user on every weekday.

    Importance: Candidates land on half past the hour in UTC+05:30 and must still count.
    Alternatives: Only support whole-hour offset zones.
    """

    london = _participant(1, "Europe/London")
    kolkata = _participant(2, "Asia/Kolkata")
    slots = _engine().find_slots(london, kolkata, [], [], MONDAY, MONDAY + timedelta(days=5), 60)
    assert len(slots) == 30
    monday = [slot for slot in slots if slot.start.date() == MONDAY.date()]
    assert [slot.start.hour for slot in monday] == [9, 10, 11, 13, 14, 15]
    local = [slot.start.astimezone(ZoneInfo("Asia/Kolkata")) for slot in monday]
    assert [(item.hour, item.minute) for item in local][-1] == (20, 30)


def test_naive_window_uses_first_participant_timezone() -> None:
    slots = _engine().find_slots(
        _participant(1, "America/New_York"),
        _participant(2, "America/New_York"),
        [],
        [],
        datetime(2030, 1, 7, 9),
        datetime(2030, 1, 7, 11),
        60,
    )
    assert [slot.start.isoformat() for slot in slots] == [
        "2030-01-07T09:00:00-05:00",
        "2030-01-07T10:00:00-05:00",
    ]


def test_wake_and_sleep_times_filter_candidates() -> None:
    early_sleeper = _participant(2, sleep_time=time(19, 0), wake_time=time(10, 0))
    slots = _engine().find_slots(
        _participant(1), early_sleeper, [], [], MONDAY, MONDAY + timedelta(days=1), 60
    )
    assert [slot.start.hour for slot in slots] == [10, 11, 13, 14, 15, 16, 17, 18]


def test_invalid_inputs_are_rejected() -> None:
    with pytest.raises(ValidationError):
        _engine().find_slots(_participant(1), _participant(2), [], [], MONDAY, MONDAY, 60)
    with pytest.raises(ValidationError):
        _engine().find_slots(
            _participant(1), _participant(2), [], [], MONDAY, MONDAY + timedelta(days=1), 0
        )


def test_recommend_orders_by_score_then_start() -> None:
    """Summary: Recommendations sort by descending score with earliest-start ties.

    Importance: Clients show the first recommendation as the best time.
    Alternatives: Keep chronological order.
    """

    slots = [
        TimeSlot(start=MONDAY.replace(hour=9), end=MONDAY.replace(hour=10)),
        TimeSlot(start=MONDAY.replace(hour=15), end=MONDAY.replace(hour=16)),
        TimeSlot(start=MONDAY.replace(hour=14), end=MONDAY.replace(hour=15)),
        TimeSlot(start=MONDAY.replace(hour=11), end=MONDAY.replace(hour=12), available=False),
    ]
    ranked = _engine().recommend(slots)
    assert [slot.start.hour for slot in ranked] == [14, 15, 9]
    assert [slot.score for slot in ranked] == [6, 6, 3]


def test_learned_evening_preference_boosts_evening_slots() -> None:
    relationship = Relationship(
        id=1,
        user_id=1,
        friend_id=2,
        status=RelationshipStatus.ACCEPTED,
        created_at=MONDAY,
        pattern=LearnedPattern(preferred_time=TimeOfDay.EVENING),
    )
    slots = [
        TimeSlot(start=MONDAY.replace(hour=15), end=MONDAY.replace(hour=16)),
        TimeSlot(start=MONDAY.replace(hour=18), end=MONDAY.replace(hour=19)),
    ]
    ranked = _engine().recommend(slots, relationship)
    assert ranked[0].start.hour == 18
    assert ranked[0].score == 7


def test_score_slot_factors() -> None:
    friday = MONDAY + timedelta(days=4)
    slot = TimeSlot(start=friday.replace(hour=15), end=friday.replace(hour=16))
    assert score_slot(slot, None, MONDAY) == 3 + 2 + 2
    far = TimeSlot(start=MONDAY.replace(hour=9) + timedelta(days=14), end=MONDAY.replace(hour=10) + timedelta(days=14))
    assert score_slot(far, None, MONDAY) == 1
    afternoon = LearnedPattern(preferred_time=TimeOfDay.AFTERNOON)
    lunchtime = TimeSlot(start=MONDAY.replace(hour=13), end=MONDAY.replace(hour=14))
    assert score_slot(lunchtime, afternoon, MONDAY) == 3 + 2
