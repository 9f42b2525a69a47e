"""Summary: Availability search and slot scoring.

Importance: Finds meeting times that fit both calendars and ranks them by learned habits.
Alternatives: Delegate free/busy search to the calendar provider's API.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, time, timedelta, timezone
from typing import Callable, Iterable

from meetpilot.errors import ValidationError
from meetpilot.intervals import (
    band_hours,
    ensure_aware,
    in_band,
    iter_days,
    overlaps_any,
    resolve_timezone,
    within_waking_hours,
)
from meetpilot.models import (
    BusyInterval,
    LearnedPattern,
    Participant,
    Relationship,
    TimeOfDay,
    TimeSlot,
)

logger = logging.getLogger(__name__)

FRIDAY = 4
SATURDAY = 5


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AvailabilityEngine:
    """Summary: Computes shared free slots for two participants and ranks them.

    Importance: Pure and synchronous, so callers can wrap it in their own deadlines.
    Alternatives: Use an interval tree or constraint solver for larger calendars.
    """

    skip_weekends: bool = True
    clock: Callable[[], datetime] = field(default=_utc_now)

    def find_slots(
        self,
        participant_a: Participant,
        participant_b: Participant,
        busy_a: Iterable[BusyInterval],
        busy_b: Iterable[BusyInterval],
        window_start: datetime,
        window_end: datetime,
        duration_minutes: int,
    ) -> list[TimeSlot]:
        """Summary: Return every hourly candidate that both participants can attend.

        Importance: Days are walked in participant A's timezone; each participant's
        bands, wake/sleep times, and busy intervals are honoured in their own zone.
        Alternatives: Search in UTC and ignore local working hours.
        """

        if duration_minutes <= 0:
            raise ValidationError("Duration must be positive")
        tz_a = resolve_timezone(participant_a.timezone)
        tz_b = resolve_timezone(participant_b.timezone)
        window_start = ensure_aware(window_start, tz_a)
        window_end = ensure_aware(window_end, tz_a)
        if window_start >= window_end:
            raise ValidationError("Availability window must start before it ends")
        busy_a = [_normalize(interval, tz_a) for interval in busy_a]
        busy_b = [_normalize(interval, tz_b) for interval in busy_b]
        length = timedelta(minutes=duration_minutes)

        slots: list[TimeSlot] = []
        first_day = window_start.astimezone(tz_a).date()
        last_day = window_end.astimezone(tz_a).date()
        for day in iter_days(first_day, last_day):
            if self.skip_weekends and day.weekday() >= SATURDAY:
                continue
            for hour in band_hours(participant_a.effective_work_hours):
                start = datetime.combine(day, time(hour), tzinfo=tz_a)
                end = (start.astimezone(timezone.utc) + length).astimezone(tz_a)
                if start < window_start or end > window_end:
                    continue
                if not _fits_participant(participant_a, start, end, tz_a):
                    continue
                if not _fits_participant(participant_b, start, end, tz_b):
                    continue
                if overlaps_any(start, end, busy_a) or overlaps_any(start, end, busy_b):
                    continue
                slots.append(TimeSlot(start=start, end=end, available=True))
        logger.debug(
            "Found %s slots for users %s and %s.",
            len(slots),
            participant_a.user_id,
            participant_b.user_id,
        )
        return slots

    def recommend(
        self, slots: Iterable[TimeSlot], relationship: Relationship | None = None
    ) -> list[TimeSlot]:
        """Summary: Score available slots and sort them best first.

        Importance: Ties resolve to the earliest start so results are deterministic.
        Alternatives: Learn a ranking model from accepted proposals.
        """

        pattern = relationship.pattern if relationship else None
        now = self.clock()
        scored = [
            replace(slot, score=score_slot(slot, pattern, now))
            for slot in slots
            if slot.available
        ]
        return sorted(scored, key=lambda slot: (-(slot.score or 0), slot.start))


def score_slot(slot: TimeSlot, pattern: LearnedPattern | None, now: datetime) -> int:
    """Summary: Additive heuristic score for one slot at its local hour.

    Importance: Favors mid-afternoon, dinner time, Fridays, near dates, and learned habits.
    Alternatives: Weight factors from user feedback.
    """

    hour = slot.start.hour
    score = 0
    if 14 <= hour <= 16:
        score += 3
    if 18 <= hour <= 19:
        score += 2
    if slot.start.weekday() == FRIDAY:
        score += 2
    days_from_now = (slot.start - now) // timedelta(days=1)
    if days_from_now <= 3:
        score += 3
    elif days_from_now <= 7:
        score += 2
    else:
        score += 1
    if pattern and pattern.preferred_time == TimeOfDay.AFTERNOON and 12 <= hour <= 17:
        score += 2
    if pattern and pattern.preferred_time == TimeOfDay.EVENING and 17 <= hour <= 21:
        score += 2
    return score


def _fits_participant(participant: Participant, start: datetime, end: datetime, tz) -> bool:
    local_start = start.astimezone(tz)
    local_end = end.astimezone(tz)
    if not in_band(local_start, participant.effective_work_hours):
        return False
    return within_waking_hours(
        local_start, local_end, participant.wake_time, participant.sleep_time
    )


def _normalize(interval: BusyInterval, tz) -> BusyInterval:
    if interval.start.tzinfo and interval.end.tzinfo:
        return interval
    return BusyInterval(
        start=ensure_aware(interval.start, tz),
        end=ensure_aware(interval.end, tz),
        owner_id=interval.owner_id,
    )
