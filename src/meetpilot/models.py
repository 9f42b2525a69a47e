"""Summary: Domain model dataclasses for MeetPilot.

Importance: Defines the core entities shared across services, storage, and the engine.
Alternatives: Use Pydantic models or ORM classes directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from enum import Enum

from meetpilot.errors import ValidationError


class RelationshipStatus(str, Enum):
    """Summary: Lifecycle states of a friendship row."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ProposalStatus(str, Enum):
    """Summary: Negotiation states of a meeting proposal.

    Importance: Drives which transitions the proposal manager allows.
    Alternatives: Track status as free-form strings on the event row.
    """

    PENDING = "pending"
    NEGOTIATING = "negotiating"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in (ProposalStatus.CONFIRMED, ProposalStatus.REJECTED)


class InvitationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"


class AttendanceStatus(str, Enum):
    ACCEPTED = "accepted"
    NEEDS_ACTION = "needs_action"


class MeetingType(str, Enum):
    COFFEE = "coffee"
    MEAL = "meal"
    ONLINE = "online"
    ACTIVITY = "activity"
    OTHER = "other"


class TimeOfDay(str, Enum):
    """Summary: Coarse time-of-day bucket used for learned preferences."""

    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"


@dataclass(frozen=True)
class User:
    """Summary: Represents a person who owns a calendar.

    Importance: Provides identity and the pre-resolved timezone for scheduling.
    Alternatives: Resolve users from the external identity provider on each request.
    """

    display_name: str
    email: str
    timezone: str = "UTC"


@dataclass(frozen=True)
class WorkHours:
    """Summary: Local work-hour window of a participant.

    Importance: Bounds the morning and afternoon candidate bands.
    Alternatives: Offer every hour of the day and rely on busy intervals only.
    """

    start: time
    end: time

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValidationError("Work hours must start before they end")


DEFAULT_WORK_HOURS = WorkHours(start=time(9, 0), end=time(18, 0))


@dataclass(frozen=True)
class Participant:
    """Summary: Read-only scheduling snapshot of one user.

    Importance: Carries everything the availability engine needs about a person.
    Alternatives: Pass raw profile rows into the engine.
    """

    user_id: int
    email: str
    display_name: str
    timezone: str = "UTC"
    work_hours: WorkHours | None = None
    wake_time: time | None = None
    sleep_time: time | None = None

    @property
    def effective_work_hours(self) -> WorkHours:
        return self.work_hours or DEFAULT_WORK_HOURS


@dataclass(frozen=True)
class BusyInterval:
    """Summary: A confirmed event span that blocks a participant.

    Importance: Input to the overlap test in slot search.
    Alternatives: Pass full calendar events into the engine.
    """

    start: datetime
    end: datetime
    owner_id: int

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValidationError("Busy interval must start before it ends")


@dataclass(frozen=True)
class TimeSlot:
    """Summary: A candidate meeting span of fixed duration.

    Importance: Unit of output for availability search and recommendation.
    Alternatives: Return bare (start, end) tuples.
    """

    start: datetime
    end: datetime
    available: bool = True
    score: int | None = None

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


@dataclass(frozen=True)
class CalendarEvent:
    """Summary: A confirmed calendar event owned by a user.

    Importance: Source of busy intervals and target of calendar sync.
    Alternatives: Store only busy spans without titles.
    """

    provider_event_id: str
    title: str
    start_time: datetime
    end_time: datetime
    location: str | None = None
    is_meeting: bool = False


@dataclass
class LearnedPattern:
    """Summary: Per-relationship aggregate learned from confirmed meetings.

    Importance: Biases slot scoring and location suggestions toward past habits.
    Alternatives: Recompute patterns from meeting history on every request.
    """

    preferred_time: TimeOfDay | None = None
    locations: list[str] = field(default_factory=list)
    meeting_count: int = 0
    last_meeting_type: MeetingType | None = None


MAX_LEARNED_LOCATIONS = 10


@dataclass
class Relationship:
    """Summary: Directed friendship row between two users.

    Importance: Two accepted rows model one symmetric friendship.
    Alternatives: Store a single unordered row with a canonical pair.
    """

    id: int
    user_id: int
    friend_id: int
    status: RelationshipStatus
    created_at: datetime
    accepted_at: datetime | None = None
    note: str | None = None
    pattern: LearnedPattern = field(default_factory=LearnedPattern)


@dataclass(frozen=True)
class InvitationToken:
    """Summary: Invitation issued when a friend request targets an unknown email.

    Importance: Lets the invitee join and become a friend later.
    Alternatives: Reject requests for unregistered emails.
    """

    id: int
    inviter_id: int
    invitee_email: str
    code: str
    created_at: datetime
    expires_at: datetime
    status: InvitationStatus = InvitationStatus.PENDING


@dataclass(frozen=True)
class Suggestion:
    """Summary: One counter-proposal entry in a negotiation history."""

    by: int
    time: datetime | None
    location: str | None
    at: datetime


@dataclass(frozen=True)
class FriendMeetingDetails:
    """Summary: Proposal details for a meeting between friends.

    Importance: Keeps friend-meeting fields explicit instead of an open metadata map.
    Alternatives: Store heterogeneous metadata as a JSON dictionary.
    """

    meeting_type: MeetingType = MeetingType.COFFEE
    suggested_locations: tuple[str, ...] = ()

    kind = "friend_meeting"


@dataclass(frozen=True)
class GeneralMeetingDetails:
    """Summary: Proposal details for any other meeting."""

    description: str | None = None

    kind = "general"


ProposalDetails = FriendMeetingDetails | GeneralMeetingDetails


@dataclass
class MeetingProposal:
    """Summary: Tentative calendar record negotiated between two users.

    Importance: Central object of the propose/accept/reject/suggest state machine.
    Alternatives: Model proposals as calendar events with free-form metadata.
    """

    id: int
    proposer_id: int
    invitee_id: int
    title: str
    start_time: datetime
    duration_minutes: int
    location: str | None
    status: ProposalStatus
    details: ProposalDetails
    proposer_attendance: AttendanceStatus = AttendanceStatus.ACCEPTED
    invitee_attendance: AttendanceStatus = AttendanceStatus.NEEDS_ACTION
    suggestions: list[Suggestion] = field(default_factory=list)
    created_at: datetime | None = None
    accepted_at: datetime | None = None

    @property
    def end_time(self) -> datetime:
        return self.start_time + timedelta(minutes=self.duration_minutes)
