"""Summary: Meeting detection for synced calendar events.

Importance: Flags which imported events look like meetings with other people.
Alternatives: Use an LLM-based classifier for higher accuracy.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass

DEFAULT_MEETING_KEYWORDS = ("meeting", "meet", "call", "coffee", "lunch", "dinner", "sync", "1:1")


class MeetingDetector(ABC):
    """Summary: Pluggable predicate deciding whether an event is a meeting.

    Importance: Heuristics stay outside the scheduling core's correctness guarantees.
    Alternatives: Require users to tag meetings manually.
    """

    @abstractmethod
    def is_meeting(self, title: str, location: str | None = None) -> bool:
        """Summary: Return True when the event looks like a meeting."""


@dataclass(frozen=True)
class KeywordMeetingDetector(MeetingDetector):
    """Summary: Simple keyword-based meeting detector.

    Importance: Offers deterministic, fast detection without AI.
    Alternatives: Inspect attendee lists or conference links instead.
    """

    keywords: tuple[str, ...] = DEFAULT_MEETING_KEYWORDS

    def is_meeting(self, title: str, location: str | None = None) -> bool:
        text = f"{title} {location or ''}".lower()
        tokens = set(_tokenize(text))
        for keyword in self.keywords:
            cleaned = keyword.strip().lower()
            if not cleaned:
                continue
            if " " in cleaned or not cleaned.isalnum():
                if cleaned in text:
                    return True
            elif cleaned in tokens:
                return True
        return False


def _tokenize(text: str) -> list[str]:
    """Summary: Split text into lowercase word tokens.

    Importance: Prevents partial matches such as "meet" inside "sweet".
    Alternatives: Match raw substrings.
    """

    return [token for token in re.split(r"\W+", text) if token]
