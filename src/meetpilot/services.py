"""Summary: Core application services for MeetPilot.

Importance: Orchestrates availability search, meeting negotiation, friendships, and calendar sync.
Alternatives: Build a full service layer with dependency injection framework.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Callable

from meetpilot.availability import AvailabilityEngine
from meetpilot.calendar import CalendarProvider
from meetpilot.coordinator import ConcurrencyCoordinator, pair_key, user_key
from meetpilot.detector import MeetingDetector
from meetpilot.errors import (
    ALREADY_FRIENDS,
    INVALID_TRANSITION,
    INVITATION_EXPIRED,
    REQUEST_PENDING,
    SLOT_TAKEN,
    ConflictError,
    ExternalServiceError,
    ForbiddenError,
    NoAvailableSlotError,
    NotFoundError,
    SchedulingError,
    ValidationError,
)
from meetpilot.intervals import ensure_aware, parse_time_of_day, resolve_timezone, time_of_day
from meetpilot.models import (
    MAX_LEARNED_LOCATIONS,
    AttendanceStatus,
    CalendarEvent,
    FriendMeetingDetails,
    InvitationStatus,
    InvitationToken,
    LearnedPattern,
    MeetingProposal,
    MeetingType,
    Participant,
    ProposalStatus,
    Relationship,
    RelationshipStatus,
    Suggestion,
    TimeSlot,
    User,
    WorkHours,
)
from meetpilot.notifications import NotificationDispatcher
from meetpilot.preferences import PreferenceCache
from meetpilot.storage.sqlite_store import SqliteStore, StoredEvent, StoredUser


logger = logging.getLogger(__name__)

TOP_AVAILABLE = 10
TOP_RECOMMENDED = 3
MAX_SUGGESTED_LOCATIONS = 3
CALENDAR_SYNC = "calendar-sync"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AvailabilityResult:
    """Summary: Outcome of a shared availability search.

    Importance: Separates chronological candidates from the ranked shortlist.
    Alternatives: Return a single ranked list.
    """

    available: list[TimeSlot]
    recommended: list[TimeSlot]
    total_available: int


@dataclass(frozen=True)
class SyncResult:
    user_id: int
    fetched: int
    event_ids: list[int]


@dataclass(frozen=True)
class UserService:
    """Summary: Manages users, scheduling profiles, and manual busy events.

    Importance: Supplies the participant snapshots the availability engine reads.
    Alternatives: Use an external identity and profile provider.
    """

    store: SqliteStore

    def create_user(self, display_name: str, email: str, timezone_name: str = "UTC") -> int:
        """Summary: Create or ensure a user exists.

        Importance: The timezone is validated once here and trusted afterwards.
        Alternatives: Resolve timezones lazily during each search.
        """

        if not display_name.strip() or "@" not in email:
            raise ValidationError("A display name and a valid email are required")
        resolve_timezone(timezone_name)
        return self.store.ensure_user(
            User(display_name=display_name.strip(), email=email.strip(), timezone=timezone_name)
        )

    def list_users(self) -> list[StoredUser]:
        return self.store.list_users()

    def update_profile(
        self,
        user_id: int,
        timezone_name: str | None = None,
        work_start: str | None = None,
        work_end: str | None = None,
        wake_time: str | None = None,
        sleep_time: str | None = None,
    ) -> Participant:
        """Summary: Update the profile fields that shape candidate bands.

        Importance: Work start and end must be supplied together.
        Alternatives: Store one free-form availability rule string.
        """

        if timezone_name is not None:
            resolve_timezone(timezone_name)
        if (work_start is None) != (work_end is None):
            raise ValidationError("Work start and end must be provided together")
        work_hours = None
        if work_start is not None and work_end is not None:
            work_hours = WorkHours(
                start=parse_time_of_day(work_start), end=parse_time_of_day(work_end)
            )
        for value in (wake_time, sleep_time):
            if value is not None:
                parse_time_of_day(value)
        if not self.store.update_profile(
            user_id,
            timezone_name=timezone_name,
            work_hours=work_hours,
            wake_time=wake_time,
            sleep_time=sleep_time,
        ):
            raise NotFoundError(f"User {user_id} not found")
        participant = self.store.get_participant(user_id)
        if participant is None:
            raise NotFoundError(f"User {user_id} not found")
        logger.info("Updated profile for user %s.", user_id)
        return participant

    def add_event(
        self,
        user_id: int,
        title: str,
        start_time: datetime,
        end_time: datetime,
        location: str | None = None,
    ) -> int:
        """Summary: Record a confirmed busy event for a user.

        Importance: Lets users block time without an external calendar.
        Alternatives: Require calendar sync for all busy time.
        """

        participant = self.store.get_participant(user_id)
        if participant is None:
            raise NotFoundError(f"User {user_id} not found")
        tz = resolve_timezone(participant.timezone)
        start_time = ensure_aware(start_time, tz)
        end_time = ensure_aware(end_time, tz)
        if start_time >= end_time:
            raise ValidationError("Event must start before it ends")
        event = CalendarEvent(
            provider_event_id=f"manual-{uuid.uuid4().hex}",
            title=title,
            start_time=start_time,
            end_time=end_time,
            location=location,
        )
        return self.store.save_events(user_id, [event])[0]

    def list_events(self, user_id: int, limit: int = 50) -> list[StoredEvent]:
        return self.store.list_events(user_id, limit)


@dataclass(frozen=True)
class AvailabilityService:
    """Summary: Runs availability searches between two friends.

    Importance: Reads busy intervals and profiles as snapshots before any critical section.
    Alternatives: Let clients compute overlap from raw calendars.
    """

    store: SqliteStore
    engine: AvailabilityEngine
    preferences: PreferenceCache
    window_days: int = 7
    default_duration_minutes: int = 60
    clock: Callable[[], datetime] = field(default=_utc_now)

    async def get_availability(
        self,
        user_id: int,
        friend_id: int,
        window_start: datetime | None = None,
        window_end: datetime | None = None,
        duration_minutes: int | None = None,
    ) -> AvailabilityResult:
        """Summary: Find and rank shared free slots for a user and a friend.

        Importance: Only accepted friends may inspect each other's availability.
        Alternatives: Allow availability lookups between any two users.
        """

        relationship = self.store.find_relationship_between(user_id, friend_id)
        if relationship is None or relationship.status != RelationshipStatus.ACCEPTED:
            raise ForbiddenError("Availability is only shared between friends")
        return self.search(user_id, friend_id, window_start, window_end, duration_minutes)

    def search(
        self,
        user_id: int,
        friend_id: int,
        window_start: datetime | None = None,
        window_end: datetime | None = None,
        duration_minutes: int | None = None,
    ) -> AvailabilityResult:
        """Summary: Run find_slots and recommend over the snapshot inputs.

        Importance: Defaults to the configured window from now and default duration.
        Alternatives: Require callers to always pass an explicit window.
        """

        participant_a = self._participant(user_id)
        participant_b = self._participant(friend_id)
        duration = self.default_duration_minutes if duration_minutes is None else duration_minutes
        start = window_start or self.clock()
        end = window_end or start + timedelta(days=self.window_days)
        tz_a = resolve_timezone(participant_a.timezone)
        start = ensure_aware(start, tz_a)
        end = ensure_aware(end, tz_a)
        busy_a = self.store.list_confirmed_events(user_id, start, end)
        busy_b = self.store.list_confirmed_events(friend_id, start, end)
        slots = self.engine.find_slots(
            participant_a, participant_b, busy_a, busy_b, start, end, duration
        )
        relationship = self._relationship_with_pattern(user_id, friend_id)
        recommended = self.engine.recommend(slots, relationship)
        logger.info(
            "Availability for users %s and %s: %s slots.", user_id, friend_id, len(slots)
        )
        return AvailabilityResult(
            available=slots[:TOP_AVAILABLE],
            recommended=recommended[:TOP_RECOMMENDED],
            total_available=len(slots),
        )

    def learned_pattern(self, user_id: int, friend_id: int) -> LearnedPattern:
        """Summary: Return the cached learned pattern for a pair of users.

        Importance: Saves a relationship read on every search and proposal.
        Alternatives: Always read the relationship row.
        """

        key = pair_key(user_id, friend_id)
        cached = self.preferences.get(key)
        if cached is not None:
            return cached
        relationship = self.store.get_relationship(
            user_id, friend_id
        ) or self.store.find_relationship_between(user_id, friend_id)
        pattern = relationship.pattern if relationship else LearnedPattern()
        self.preferences.put(key, pattern)
        return pattern

    def _relationship_with_pattern(self, user_id: int, friend_id: int) -> Relationship | None:
        relationship = self.store.find_relationship_between(user_id, friend_id)
        if relationship is None:
            return None
        return replace(relationship, pattern=self.learned_pattern(user_id, friend_id))

    def _participant(self, user_id: int) -> Participant:
        participant = self.store.get_participant(user_id)
        if participant is None:
            raise NotFoundError(f"User {user_id} not found")
        return participant


@dataclass(frozen=True)
class ProposalService:
    """Summary: Meeting proposal state machine.

    Importance: Validates and authorizes before locking, then re-checks and writes
    inside the pair's critical section; notifications run after the section exits.
    Alternatives: Optimistic concurrency with version columns.
    """

    store: SqliteStore
    availability: AvailabilityService
    coordinator: ConcurrencyCoordinator
    notifications: NotificationDispatcher
    default_locations: tuple[str, ...] = ()
    lock_timeout: float | None = None
    clock: Callable[[], datetime] = field(default=_utc_now)

    async def propose(
        self,
        proposer_id: int,
        invitee_id: int,
        start_time: datetime | None = None,
        auto_select: bool = False,
        duration_minutes: int | None = None,
        location: str | None = None,
        meeting_type: MeetingType = MeetingType.COFFEE,
        title: str | None = None,
    ) -> MeetingProposal:
        """Summary: Create a pending proposal for a friend.

        Importance: With auto_select the best recommended slot in the default window is
        used, and an empty shortlist fails without creating anything.
        Alternatives: Always require an explicit time.
        """

        if proposer_id == invitee_id:
            raise ValidationError("Cannot propose a meeting to yourself")
        if start_time is None and not auto_select:
            raise ValidationError("Either a time or auto_select is required")
        duration = (
            self.availability.default_duration_minutes
            if duration_minutes is None
            else duration_minutes
        )
        if duration <= 0:
            raise ValidationError("Duration must be positive")
        proposer = self._participant(proposer_id)
        invitee = self._participant(invitee_id)
        self._require_friends(proposer_id, invitee_id)

        if auto_select:
            result = self.availability.search(proposer_id, invitee_id, duration_minutes=duration)
            if not result.recommended:
                raise NoAvailableSlotError("No shared free time in the search window")
            start_time = result.recommended[0].start
        start_time = ensure_aware(start_time, resolve_timezone(proposer.timezone))

        suggested: tuple[str, ...] = ()
        if not location:
            learned = self.availability.learned_pattern(proposer_id, invitee_id).locations
            suggested = tuple((learned or list(self.default_locations))[:MAX_SUGGESTED_LOCATIONS])
            location = suggested[0] if suggested else None

        proposal = MeetingProposal(
            id=0,
            proposer_id=proposer_id,
            invitee_id=invitee_id,
            title=title or f"Meeting with {proposer.display_name}",
            start_time=start_time,
            duration_minutes=duration,
            location=location,
            status=ProposalStatus.PENDING,
            details=FriendMeetingDetails(meeting_type=meeting_type, suggested_locations=suggested),
            created_at=self.clock(),
        )

        async def create() -> MeetingProposal:
            self._require_friends(proposer_id, invitee_id)
            if auto_select:
                self._require_free(proposal)
            proposal_id = self.store.insert_proposal(proposal)
            return replace(proposal, id=proposal_id)

        created = await self.coordinator.with_lock(
            pair_key(proposer_id, invitee_id), create, self.lock_timeout
        )
        logger.info(
            "User %s proposed meeting %s to user %s.", proposer_id, created.id, invitee_id
        )
        self.notifications.dispatch(
            "send_meeting_proposal",
            invitee.email,
            proposer.display_name,
            created.start_time,
            created.location,
        )
        return created

    async def accept(self, proposal_id: int, actor_id: int) -> MeetingProposal:
        """Summary: Confirm a proposal as the invitee.

        Importance: Confirmation also teaches the relationship its preferred time and place.
        Alternatives: Confirm only after both parties accept explicitly.
        """

        proposal = self._get(proposal_id)
        self._require_invitee(proposal, actor_id)
        self._require_open(proposal)

        async def confirm() -> MeetingProposal:
            current = self._get(proposal_id)
            self._require_open(current)
            self._require_free(current)
            confirmed = replace(
                current,
                status=ProposalStatus.CONFIRMED,
                invitee_attendance=AttendanceStatus.ACCEPTED,
                accepted_at=self.clock(),
            )
            self.store.update_proposal(confirmed)
            self._learn(confirmed)
            return confirmed

        confirmed = await self.coordinator.with_lock(
            pair_key(proposal.proposer_id, proposal.invitee_id), confirm, self.lock_timeout
        )
        logger.info("User %s accepted meeting %s.", actor_id, proposal_id)

        def accepted_args() -> tuple | None:
            proposer = self.store.get_user(confirmed.proposer_id)
            if proposer is None:
                return None
            invitee = self.store.get_user(confirmed.invitee_id)
            return (
                proposer.email,
                invitee.display_name if invitee else str(actor_id),
                confirmed.start_time,
                confirmed.location,
            )

        self.notifications.dispatch_deferred("send_meeting_accepted", accepted_args)
        return confirmed

    async def reject(self, proposal_id: int, actor_id: int) -> MeetingProposal:
        """Summary: Reject a proposal as the invitee by deleting the tentative record.

        Importance: No row persists; the returned copy reports the rejected state.
        Alternatives: Keep rejected proposals for history.
        """

        proposal = self._get(proposal_id)
        self._require_invitee(proposal, actor_id)
        self._require_open(proposal)

        async def delete() -> MeetingProposal:
            current = self._get(proposal_id)
            self._require_open(current)
            self.store.delete_proposal(proposal_id)
            return replace(current, status=ProposalStatus.REJECTED)

        rejected = await self.coordinator.with_lock(
            pair_key(proposal.proposer_id, proposal.invitee_id), delete, self.lock_timeout
        )
        logger.info("User %s rejected meeting %s.", actor_id, proposal_id)
        return rejected

    async def suggest(
        self,
        proposal_id: int,
        actor_id: int,
        alternative_time: datetime | None = None,
        alternative_location: str | None = None,
    ) -> MeetingProposal:
        """Summary: Counter-propose a time and/or location from either party.

        Importance: History is appended, never rewritten, and the end time follows
        from the original duration.
        Alternatives: Replace the previous suggestion of the other party.
        """

        if alternative_time is None and not alternative_location:
            raise ValidationError("Suggest an alternative time or location")
        proposal = self._get(proposal_id)
        if actor_id not in (proposal.proposer_id, proposal.invitee_id):
            raise ForbiddenError("Only the participants can negotiate this meeting")
        self._require_open(proposal)
        if alternative_time is not None:
            actor = self._participant(actor_id)
            alternative_time = ensure_aware(alternative_time, resolve_timezone(actor.timezone))

        async def negotiate() -> MeetingProposal:
            current = self._get(proposal_id)
            self._require_open(current)
            entry = Suggestion(
                by=actor_id,
                time=alternative_time,
                location=alternative_location or None,
                at=self.clock(),
            )
            updated = replace(
                current,
                status=ProposalStatus.NEGOTIATING,
                start_time=alternative_time or current.start_time,
                location=alternative_location or current.location,
                suggestions=[*current.suggestions, entry],
            )
            self.store.update_proposal(updated)
            return updated

        updated = await self.coordinator.with_lock(
            pair_key(proposal.proposer_id, proposal.invitee_id), negotiate, self.lock_timeout
        )
        logger.info("User %s suggested changes to meeting %s.", actor_id, proposal_id)
        return updated

    async def respond(
        self,
        proposal_id: int,
        actor_id: int,
        action: str,
        alternative_time: datetime | None = None,
        alternative_location: str | None = None,
    ) -> MeetingProposal:
        """Summary: Dispatch accept, reject, or suggest.

        Importance: Single entrypoint for the HTTP and CLI layers.
        Alternatives: Expose each transition as its own route only.
        """

        if action == "accept":
            return await self.accept(proposal_id, actor_id)
        if action == "reject":
            return await self.reject(proposal_id, actor_id)
        if action == "suggest":
            return await self.suggest(
                proposal_id, actor_id, alternative_time, alternative_location
            )
        raise ValidationError(f"Unknown action: {action}")

    def get_proposal(self, proposal_id: int, actor_id: int) -> MeetingProposal:
        proposal = self._get(proposal_id)
        if actor_id not in (proposal.proposer_id, proposal.invitee_id):
            raise ForbiddenError("Only the participants can view this meeting")
        return proposal

    def list_proposals(
        self, user_id: int, status: ProposalStatus | None = None
    ) -> list[MeetingProposal]:
        return self.store.list_proposals(user_id, status)

    def _learn(self, proposal: MeetingProposal) -> None:
        """Summary: Apply confirmed-meeting learning to both relationship rows.

        Importance: Runs inside the pair's critical section, so both rows stay in step.
        Alternatives: Recompute patterns in a nightly batch job.
        """

        proposer = self._participant(proposal.proposer_id)
        local_hour = proposal.start_time.astimezone(resolve_timezone(proposer.timezone)).hour
        meeting_type = (
            proposal.details.meeting_type
            if isinstance(proposal.details, FriendMeetingDetails)
            else None
        )
        for user_id, friend_id in (
            (proposal.proposer_id, proposal.invitee_id),
            (proposal.invitee_id, proposal.proposer_id),
        ):
            relationship = self.store.get_relationship(user_id, friend_id)
            if relationship is None:
                continue
            relationship.pattern = learn_from_meeting(
                relationship.pattern, proposal.location, local_hour, meeting_type
            )
            self.store.update_relationship(relationship)
        self.availability.preferences.invalidate(pair_key(proposal.proposer_id, proposal.invitee_id))

    def _require_friends(self, user_id: int, friend_id: int) -> None:
        relationship = self.store.find_relationship_between(user_id, friend_id)
        if relationship is None or relationship.status != RelationshipStatus.ACCEPTED:
            raise ForbiddenError("Meetings can only be proposed between friends")

    def _require_free(self, proposal: MeetingProposal) -> None:
        """Summary: Refuse a slot that either participant already has confirmed.

        Importance: Called with the pair lock held, so two proposals for one pair
        cannot both be confirmed over the same span.
        Alternatives: Enforce an exclusion constraint in the database.
        """

        for user_id in (proposal.proposer_id, proposal.invitee_id):
            busy = self.store.list_confirmed_events(
                user_id, proposal.start_time, proposal.end_time
            )
            if busy:
                raise ConflictError(
                    f"User {user_id} already has a meeting at {proposal.start_time.isoformat()}",
                    SLOT_TAKEN,
                )

    def _get(self, proposal_id: int) -> MeetingProposal:
        proposal = self.store.get_proposal(proposal_id)
        if proposal is None:
            raise NotFoundError(f"Proposal {proposal_id} not found")
        return proposal

    def _participant(self, user_id: int) -> Participant:
        participant = self.store.get_participant(user_id)
        if participant is None:
            raise NotFoundError(f"User {user_id} not found")
        return participant

    @staticmethod
    def _require_invitee(proposal: MeetingProposal, actor_id: int) -> None:
        if actor_id != proposal.invitee_id:
            raise ForbiddenError("Only the invitee can respond to this proposal")

    @staticmethod
    def _require_open(proposal: MeetingProposal) -> None:
        if proposal.status.is_terminal:
            raise ConflictError(
                f"Proposal {proposal.id} is already {proposal.status.value}", INVALID_TRANSITION
            )


def learn_from_meeting(
    pattern: LearnedPattern,
    location: str | None,
    local_hour: int,
    meeting_type: MeetingType | None,
) -> LearnedPattern:
    """Summary: Fold one confirmed meeting into a learned pattern.

    Importance: The latest location moves to the front of a ring buffer of 10.
    Alternatives: Count location frequencies instead of recency.
    """

    locations = list(pattern.locations)
    if location:
        locations = [location, *[item for item in locations if item != location]]
    return LearnedPattern(
        preferred_time=time_of_day(local_hour),
        locations=locations[:MAX_LEARNED_LOCATIONS],
        meeting_count=pattern.meeting_count + 1,
        last_meeting_type=meeting_type or pattern.last_meeting_type,
    )


@dataclass(frozen=True)
class FriendshipService:
    """Summary: Friend request flow guarded by the pair's critical section.

    Importance: Prevents duplicate rows when both users send requests at once.
    Alternatives: Rely on a unique index over the unordered pair.
    """

    store: SqliteStore
    coordinator: ConcurrencyCoordinator
    notifications: NotificationDispatcher
    lock_timeout: float | None = None
    invitation_ttl_days: int = 7
    app_url: str = "http://localhost:8000"
    clock: Callable[[], datetime] = field(default=_utc_now)

    async def request_friendship(
        self, user_id: int, target_email: str, note: str | None = None
    ) -> Relationship | InvitationToken:
        """Summary: Send a friend request, or an invitation for unknown emails.

        Importance: The duplicate check and insert run inside one critical section.
        Alternatives: Insert first and clean up duplicates afterwards.
        """

        email = (target_email or "").strip().lower()
        if "@" not in email:
            raise ValidationError("A valid target email is required")
        requester = self.store.get_user(user_id)
        if requester is None:
            raise NotFoundError(f"User {user_id} not found")
        target = self.store.get_user_by_email(email)
        if target is None:
            return self._invite(requester, email)
        if target.id == user_id:
            raise ValidationError("Cannot send a friend request to yourself")

        async def create() -> Relationship:
            existing = self.store.find_relationship_between(user_id, target.id)
            if existing is not None:
                if existing.status == RelationshipStatus.ACCEPTED:
                    raise ConflictError("Already friends", ALREADY_FRIENDS)
                if existing.status == RelationshipStatus.PENDING:
                    raise ConflictError("A friend request is already pending", REQUEST_PENDING)
                self.store.delete_relationship(existing.id)
            return self.store.insert_relationship(
                user_id=user_id,
                friend_id=target.id,
                status=RelationshipStatus.PENDING,
                created_at=self.clock(),
                note=note,
            )

        relationship = await self.coordinator.with_lock(
            pair_key(user_id, target.id), create, self.lock_timeout
        )
        logger.info("User %s sent a friend request to user %s.", user_id, target.id)
        return relationship

    async def respond_friendship(
        self, relationship_id: int, actor_id: int, action: str
    ) -> Relationship:
        """Summary: Accept or decline a pending request as its recipient.

        Importance: Accepting writes a reciprocal row; declining deletes the request.
        Alternatives: Keep declined requests as blocked rows.
        """

        if action not in ("accept", "decline"):
            raise ValidationError(f"Unknown action: {action}")
        relationship = self.store.get_relationship_by_id(relationship_id)
        if relationship is None:
            raise NotFoundError(f"Friend request {relationship_id} not found")
        if actor_id != relationship.friend_id:
            raise ForbiddenError("Only the recipient can respond to this request")
        self._require_pending(relationship)

        async def apply() -> Relationship:
            current = self.store.get_relationship_by_id(relationship_id)
            if current is None:
                raise NotFoundError(f"Friend request {relationship_id} not found")
            self._require_pending(current)
            if action == "decline":
                self.store.delete_relationship(current.id)
                return replace(current, status=RelationshipStatus.REJECTED)
            now = self.clock()
            accepted = replace(current, status=RelationshipStatus.ACCEPTED, accepted_at=now)
            self.store.update_relationship(accepted)
            reciprocal = self.store.get_relationship(current.friend_id, current.user_id)
            if reciprocal is None:
                self.store.insert_relationship(
                    user_id=current.friend_id,
                    friend_id=current.user_id,
                    status=RelationshipStatus.ACCEPTED,
                    created_at=now,
                    accepted_at=now,
                )
            else:
                self.store.update_relationship(
                    replace(reciprocal, status=RelationshipStatus.ACCEPTED, accepted_at=now)
                )
            return accepted

        result = await self.coordinator.with_lock(
            pair_key(relationship.user_id, relationship.friend_id), apply, self.lock_timeout
        )
        logger.info("User %s responded %s to friend request %s.", actor_id, action, relationship_id)
        return result

    async def accept_invitation(self, code: str, actor_id: int) -> Relationship:
        """Summary: Redeem an emailed invitation code as the invited user.

        Importance: The invitee becomes an accepted friend of the inviter in one step,
        and the invitation can only be used once before it expires.
        Alternatives: Turn the invitation into an ordinary pending friend request.
        """

        code = (code or "").strip()
        if not code:
            raise ValidationError("An invitation code is required")
        invitation = self.store.get_invitation_by_code(code)
        if invitation is None:
            raise NotFoundError("Invitation not found")
        actor = self.store.get_user(actor_id)
        if actor is None:
            raise NotFoundError(f"User {actor_id} not found")
        if actor.email.strip().lower() != invitation.invitee_email:
            raise ValidationError("This invitation is not for your email address")
        if actor_id == invitation.inviter_id:
            raise ValidationError("Cannot accept your own invitation")
        self._require_unused(invitation)

        async def redeem() -> Relationship:
            current = self.store.get_invitation_by_code(code)
            if current is None:
                raise NotFoundError("Invitation not found")
            self._require_unused(current)
            now = self.clock()
            if now >= current.expires_at:
                self.store.update_invitation_status(current.id, InvitationStatus.EXPIRED)
                raise ConflictError("This invitation has expired", INVITATION_EXPIRED)
            existing = self.store.find_relationship_between(current.inviter_id, actor_id)
            if existing is not None and existing.status == RelationshipStatus.ACCEPTED:
                self.store.update_invitation_status(current.id, InvitationStatus.ACCEPTED)
                raise ConflictError("Already friends", ALREADY_FRIENDS)
            if existing is not None:
                self.store.delete_relationship(existing.id)
            relationship = self.store.insert_relationship(
                user_id=current.inviter_id,
                friend_id=actor_id,
                status=RelationshipStatus.ACCEPTED,
                created_at=now,
                accepted_at=now,
            )
            self.store.insert_relationship(
                user_id=actor_id,
                friend_id=current.inviter_id,
                status=RelationshipStatus.ACCEPTED,
                created_at=now,
                accepted_at=now,
            )
            self.store.update_invitation_status(current.id, InvitationStatus.ACCEPTED)
            return relationship

        relationship = await self.coordinator.with_lock(
            pair_key(invitation.inviter_id, actor_id), redeem, self.lock_timeout
        )
        logger.info(
            "User %s accepted an invitation from user %s.", actor_id, invitation.inviter_id
        )
        return relationship

    def list_friends(
        self, user_id: int, status: RelationshipStatus | None = None
    ) -> list[Relationship]:
        return self.store.list_relationships(user_id, status)

    def _invite(self, requester: StoredUser, email: str) -> InvitationToken:
        now = self.clock()
        invitation = self.store.create_invitation(
            inviter_id=requester.id,
            invitee_email=email,
            code=secrets.token_urlsafe(16),
            created_at=now,
            expires_at=now + timedelta(days=self.invitation_ttl_days),
        )
        logger.info("User %s invited %s.", requester.id, email)
        self.notifications.dispatch(
            "send_friend_invitation",
            email,
            requester.display_name,
            f"{self.app_url.rstrip('/')}/invite?token={invitation.code}",
        )
        return invitation

    @staticmethod
    def _require_unused(invitation: InvitationToken) -> None:
        if invitation.status != InvitationStatus.PENDING:
            raise ConflictError(
                f"This invitation is already {invitation.status.value}", INVALID_TRANSITION
            )

    @staticmethod
    def _require_pending(relationship: Relationship) -> None:
        if relationship.status != RelationshipStatus.PENDING:
            raise ConflictError(
                f"Friend request {relationship.id} is {relationship.status.value}",
                INVALID_TRANSITION,
            )


@dataclass(frozen=True)
class CalendarSyncService:
    """Summary: Pulls a user's external calendar into the busy-time store.

    Importance: Debounced per user, serialized per user, and bounded by the
    external-call pool so bursts of triggers cannot exceed provider quota.
    Alternatives: Poll every calendar on a fixed schedule.
    """

    store: SqliteStore
    coordinator: ConcurrencyCoordinator
    detector: MeetingDetector
    debounce_ms: int = 1000
    lock_timeout: float | None = None

    async def sync(
        self, user_id: int, provider: CalendarProvider, start: datetime, end: datetime
    ) -> SyncResult:
        """Summary: Fetch events in [start, end) and upsert them as busy time.

        Importance: Repeated triggers inside the debounce window share one run.
        Alternatives: Run every trigger and rely on idempotent upserts.
        """

        if self.store.get_user(user_id) is None:
            raise NotFoundError(f"User {user_id} not found")
        start = ensure_aware(start, timezone.utc)
        end = ensure_aware(end, timezone.utc)
        if start >= end:
            raise ValidationError("Sync range must start before it ends")
        key = user_key(CALENDAR_SYNC, user_id)

        async def fetch() -> list[CalendarEvent]:
            try:
                return await asyncio.to_thread(provider.fetch_events, start, end)
            except SchedulingError:
                raise
            except (OSError, ValueError, KeyError) as exc:
                raise ExternalServiceError(f"Calendar provider failed: {exc}") from exc

        async def locked() -> SyncResult:
            events = await self.coordinator.with_external_limit(fetch)
            tagged = [
                replace(event, is_meeting=self.detector.is_meeting(event.title, event.location))
                for event in events
            ]
            ids = self.store.save_events(user_id, tagged)
            logger.info("Synced %s events for user %s.", len(ids), user_id)
            return SyncResult(user_id=user_id, fetched=len(events), event_ids=ids)

        async def run() -> SyncResult:
            return await self.coordinator.with_lock(key, locked, self.lock_timeout)

        return await self.coordinator.debounce(key, run, self.debounce_ms)
