"""Summary: External calendar provider interfaces and implementations.

Importance: Encapsulates read-only access to a user's external calendar for sync.
Alternatives: Use provider SDKs directly without a shared abstraction.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path

from meetpilot.intervals import overlaps
from meetpilot.models import CalendarEvent


class CalendarProvider(ABC):
    """Summary: Abstract interface for external calendar reads.

    Importance: Standardizes retrieval across mocked and real providers.
    Alternatives: Couple sync to a single calendar API.
    """

    @abstractmethod
    def fetch_events(self, start: datetime, end: datetime) -> list[CalendarEvent]:
        """Summary: Fetch events overlapping [start, end) from the provider.

        Importance: Drives calendar sync into the local busy-time store.
        Alternatives: Fetch a fixed number of upcoming events.
        """


class MockCalendarProvider(CalendarProvider):
    """Summary: Loads events from a local JSON fixture.

    Importance: Supports offline demos and tests.
    Alternatives: Generate synthetic events in code.
    """

    def __init__(self, fixture_path: Path) -> None:
        self._fixture_path = fixture_path

    def fetch_events(self, start: datetime, end: datetime) -> list[CalendarEvent]:
        """Summary: Load fixture events that overlap the requested range.

        Importance: Provides predictable calendar data for local workflows.
        Alternatives: Return every fixture event regardless of range.
        """

        data = json.loads(self._fixture_path.read_text(encoding="utf-8"))
        events = [
            CalendarEvent(
                provider_event_id=item["provider_event_id"],
                title=item.get("title", "Untitled"),
                start_time=_as_utc(datetime.fromisoformat(item["start_time"])),
                end_time=_as_utc(datetime.fromisoformat(item["end_time"])),
                location=item.get("location"),
            )
            for item in data
        ]
        return [event for event in events if overlaps(event.start_time, event.end_time, start, end)]


class IcsCalendarProvider(CalendarProvider):
    """Summary: Loads events from an iCalendar (.ics) file.

    Importance: Enables calendar sync without direct provider APIs.
    Alternatives: Use Google or Microsoft APIs with OAuth.
    """

    def __init__(self, ics_path: Path) -> None:
        self._ics_path = ics_path

    def fetch_events(self, start: datetime, end: datetime) -> list[CalendarEvent]:
        """Summary: Parse events from an .ics file that overlap the range.

        Importance: Supports local-first calendar imports.
        Alternatives: Use a dedicated iCalendar parsing library.
        """

        raw = self._ics_path.read_text(encoding="utf-8")
        events = [
            CalendarEvent(
                provider_event_id=event.get("UID", f"ics-{index}"),
                title=event.get("SUMMARY", "Untitled"),
                start_time=_parse_ics_datetime(event.get("DTSTART", "")),
                end_time=_parse_ics_datetime(event.get("DTEND", "")),
                location=event.get("LOCATION"),
            )
            for index, event in enumerate(_parse_ics_events(raw))
        ]
        return [event for event in events if overlaps(event.start_time, event.end_time, start, end)]


def _parse_ics_events(raw: str) -> list[dict[str, str]]:
    """Summary: Parse raw iCalendar data into event dictionaries.

    Importance: Extracts the minimal fields needed for busy-time sync.
    Alternatives: Use an iCalendar library for robust parsing.
    """

    unfolded_lines: list[str] = []
    for line in raw.splitlines():
        if line.startswith(" ") and unfolded_lines:
            unfolded_lines[-1] += line[1:]
        else:
            unfolded_lines.append(line.strip())
    events: list[dict[str, str]] = []
    current: dict[str, str] | None = None
    for line in unfolded_lines:
        if line == "BEGIN:VEVENT":
            current = {}
            continue
        if line == "END:VEVENT" and current is not None:
            events.append(current)
            current = None
            continue
        if current is None or ":" not in line:
            continue
        key, value = line.split(":", 1)
        current[key.split(";", 1)[0]] = value
    return events


def _parse_ics_datetime(value: str) -> datetime:
    """Summary: Parse a minimal iCalendar datetime string.

    Importance: Floating and date-only values are treated as UTC.
    Alternatives: Honour TZID parameters with a timezone database lookup.
    """

    cleaned = value.replace("Z", "")
    if len(cleaned) == 8:
        parsed = datetime.strptime(cleaned, "%Y%m%d")
    else:
        parsed = datetime.strptime(cleaned, "%Y%m%dT%H%M%S")
    return parsed.replace(tzinfo=timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
