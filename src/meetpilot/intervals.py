"""Summary: Pure interval and time-of-day helpers.

Importance: Keeps overlap and band arithmetic in one dependency-free place.
Alternatives: Inline the arithmetic inside the availability engine.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Iterable, Iterator
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from meetpilot.errors import ValidationError
from meetpilot.models import BusyInterval, TimeOfDay, WorkHours

LUNCH_START_HOUR = 12
LUNCH_END_HOUR = 13
EVENING_START_HOUR = 18
EVENING_END_HOUR = 21


def overlaps(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Summary: Half-open overlap test for [start_a, end_a) and [start_b, end_b).

    Importance: Back-to-back events do not conflict.
    Alternatives: Treat touching intervals as conflicting.
    """

    return start_a < end_b and start_b < end_a


def overlaps_any(start: datetime, end: datetime, busy: Iterable[BusyInterval]) -> bool:
    return any(overlaps(start, end, interval.start, interval.end) for interval in busy)


def parse_time_of_day(value: str) -> time:
    """Summary: Parse an "HH:MM" (or "HH:MM:SS") local time string.

    Importance: Profiles store work hours as plain strings.
    Alternatives: Store minutes-since-midnight integers.
    """

    parts = value.strip().split(":")
    if len(parts) < 2:
        raise ValidationError(f"Invalid time of day: {value!r}")
    try:
        hour, minute = int(parts[0]), int(parts[1])
        second = int(parts[2]) if len(parts) > 2 else 0
        return time(hour, minute, second)
    except ValueError as exc:
        raise ValidationError(f"Invalid time of day: {value!r}") from exc


def resolve_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValidationError(f"Unknown timezone: {name!r}") from exc


def ensure_aware(value: datetime, tz: ZoneInfo) -> datetime:
    """Attach tz to naive datetimes; leave aware ones untouched."""

    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value


def iter_days(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def _first_full_hour(value: time) -> int:
    if value.minute or value.second:
        return value.hour + 1
    return value.hour


def band_hours(work_hours: WorkHours) -> list[int]:
    """Summary: Candidate start hours for one day of a work-hour profile.

    Importance: Morning runs from work start to lunch, afternoon from lunch end to
    work end, and the evening band is always offered. The lunch hour never is.
    Alternatives: Use a fixed set of hours for everyone.
    """

    morning = range(_first_full_hour(work_hours.start), LUNCH_START_HOUR)
    afternoon = range(LUNCH_END_HOUR, work_hours.end.hour)
    evening = range(EVENING_START_HOUR, EVENING_END_HOUR)
    hours = set(morning) | set(afternoon) | set(evening)
    hours.discard(LUNCH_START_HOUR)
    return sorted(hour for hour in hours if 0 <= hour <= 23)


def in_band(local_start: datetime, work_hours: WorkHours) -> bool:
    """Summary: Whether the local hour containing a start time is a band hour.

    Importance: Participants in half-hour and 45-minute offset zones see candidates
    generated on another zone's whole hours.
    Alternatives: Generate candidates on every participant's own whole hours.
    """

    return local_start.hour in band_hours(work_hours)


def within_waking_hours(
    local_start: datetime, local_end: datetime, wake: time | None, sleep: time | None
) -> bool:
    """Summary: Check a local span against optional wake and sleep times.

    Importance: Avoids proposing meetings while a participant is asleep.
    Alternatives: Ignore wake/sleep preferences entirely.
    """

    if wake is not None and local_start.time() < wake:
        return False
    if sleep is None:
        return True
    if wake is not None and sleep <= wake:
        # Bedtime is after midnight, so any same-day span ends before it.
        return local_end.date() == local_start.date()
    if local_end.date() != local_start.date():
        return False
    return local_end.time() <= sleep


def time_of_day(hour: int) -> TimeOfDay:
    """Summary: Bucket a confirmed hour for preference learning.

    Importance: Morning before noon, afternoon until 17:00, evening after.
    Alternatives: Learn an exact preferred hour.
    """

    if hour < 12:
        return TimeOfDay.MORNING
    if hour < 17:
        return TimeOfDay.AFTERNOON
    return TimeOfDay.EVENING
