"""Summary: FastAPI application for MeetPilot.

Importance: Exposes HTTP endpoints for availability, proposals, friendships, and calendar sync.
Alternatives: Use a CLI-only workflow or a different web framework.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Literal

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from meetpilot.app import build_services
from meetpilot.calendar import CalendarProvider, IcsCalendarProvider, MockCalendarProvider
from meetpilot.config import AppConfig
from meetpilot.errors import SchedulingError
from meetpilot.models import (
    FriendMeetingDetails,
    InvitationToken,
    MeetingProposal,
    MeetingType,
    ProposalStatus,
    Relationship,
    RelationshipStatus,
    TimeSlot,
)
from meetpilot.notifications import Notifier


logger = logging.getLogger(__name__)

STATUS_BY_CODE = {
    "VALIDATION": 400,
    "FORBIDDEN": 403,
    "NOT_FOUND": 404,
    "CONFLICT": 409,
    "NO_AVAILABLE_SLOT": 422,
    "LOCK_TIMEOUT": 503,
    "EXTERNAL_SERVICE_ERROR": 502,
}


class UserCreateRequest(BaseModel):
    display_name: str = Field(min_length=1)
    email: str
    timezone: str = "UTC"


class ProfileUpdateRequest(BaseModel):
    """Summary: Request payload for scheduling profile updates.

    Importance: Work hours are sent as HH:MM pairs in the user's local time.
    Alternatives: Accept a list of weekly availability rules.
    """

    timezone: str | None = None
    work_start: str | None = None
    work_end: str | None = None
    wake_time: str | None = None
    sleep_time: str | None = None


class EventCreateRequest(BaseModel):
    title: str = "Busy"
    start_time: datetime
    end_time: datetime
    location: str | None = None


class ProposalCreateRequest(BaseModel):
    """Summary: Request payload for a new meeting proposal.

    Importance: Either a start time or auto_select must be provided.
    Alternatives: Separate endpoints for manual and automatic scheduling.
    """

    invitee_id: int
    start_time: datetime | None = None
    auto_select: bool = False
    duration_minutes: int | None = Field(default=None, ge=1, le=24 * 60)
    location: str | None = None
    meeting_type: MeetingType = MeetingType.COFFEE
    title: str | None = None


class ProposalResponseRequest(BaseModel):
    action: Literal["accept", "reject", "suggest"]
    alternative_time: datetime | None = None
    alternative_location: str | None = None


class FriendRequestCreate(BaseModel):
    email: str
    note: str | None = None


class FriendResponseRequest(BaseModel):
    action: Literal["accept", "decline"]


class InvitationAcceptRequest(BaseModel):
    code: str = Field(min_length=1)


class CalendarSyncRequest(BaseModel):
    """Summary: Request payload for calendar sync.

    Importance: Local fixture and .ics sources stand in for provider APIs.
    Alternatives: Require OAuth-connected providers.
    """

    source: Literal["mock", "ics"] = "mock"
    path: str | None = None
    start: datetime
    end: datetime


def create_app(config: AppConfig, notifier: Notifier | None = None) -> FastAPI:
    """Summary: Create the FastAPI application.

    Importance: Services are built once so every request shares the same coordinator.
    Alternatives: Instantiate services globally outside the factory.
    """

    if not logging.getLogger().handlers:
        logging.basicConfig(level=config.log_level, format="%(levelname)s %(name)s: %(message)s")
    app = FastAPI(title="MeetPilot API", version="0.1.0")
    services = build_services(config, notifier)
    app.state.services = services

    @app.exception_handler(SchedulingError)
    async def scheduling_error_handler(request: Request, exc: SchedulingError) -> JSONResponse:
        status_code = STATUS_BY_CODE.get(exc.code, 500)
        logger.warning("%s %s failed: %s %s", request.method, request.url.path, exc.code, exc.message)
        return JSONResponse(
            status_code=status_code,
            content={"error": exc.code, "reason": exc.reason, "detail": exc.message},
        )

    def require_api_key(x_api_key: str | None = Header(default=None)) -> None:
        """Summary: Enforce API key authentication when configured.

        Importance: Adds a minimal security layer for local and private deployments.
        Alternatives: Use OAuth or session-based authentication.
        """

        if not config.api_key:
            return
        if x_api_key != config.api_key:
            raise HTTPException(status_code=401, detail="Invalid API key")

    def current_user(x_user_id: int = Header()) -> int:
        """Summary: Resolve the acting user from the gateway header.

        Importance: Every mutation is authorized against this identity.
        Alternatives: Issue per-user session tokens.
        """

        if services.store.get_user(x_user_id) is None:
            raise HTTPException(status_code=401, detail="Unknown user")
        return x_user_id

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/users", dependencies=[Depends(require_api_key)])
    def create_user(payload: UserCreateRequest) -> dict[str, Any]:
        user_id = services.users.create_user(payload.display_name, payload.email, payload.timezone)
        return {"id": user_id}

    @app.put("/users/{user_id}/profile", dependencies=[Depends(require_api_key)])
    def update_profile(
        user_id: int, payload: ProfileUpdateRequest, actor_id: int = Depends(current_user)
    ) -> dict[str, Any]:
        """Summary: Update the caller's own scheduling profile.

        Importance: Profiles shape both sides of every availability search.
        Alternatives: Let administrators edit any profile.
        """

        if user_id != actor_id:
            raise HTTPException(status_code=403, detail="Cannot edit another user's profile")
        participant = services.users.update_profile(
            user_id,
            timezone_name=payload.timezone,
            work_start=payload.work_start,
            work_end=payload.work_end,
            wake_time=payload.wake_time,
            sleep_time=payload.sleep_time,
        )
        work_hours = participant.effective_work_hours
        return {
            "id": participant.user_id,
            "timezone": participant.timezone,
            "work_start": work_hours.start.strftime("%H:%M"),
            "work_end": work_hours.end.strftime("%H:%M"),
            "wake_time": participant.wake_time.strftime("%H:%M") if participant.wake_time else None,
            "sleep_time": participant.sleep_time.strftime("%H:%M") if participant.sleep_time else None,
        }

    @app.post("/events", dependencies=[Depends(require_api_key)])
    def add_event(payload: EventCreateRequest, actor_id: int = Depends(current_user)) -> dict[str, Any]:
        event_id = services.users.add_event(
            actor_id, payload.title, payload.start_time, payload.end_time, payload.location
        )
        return {"id": event_id}

    @app.get("/events", dependencies=[Depends(require_api_key)])
    def list_events(limit: int = 50, actor_id: int = Depends(current_user)) -> list[dict[str, Any]]:
        return [
            {
                "id": event.id,
                "provider_event_id": event.provider_event_id,
                "title": event.title,
                "start_time": event.start_time,
                "end_time": event.end_time,
                "location": event.location,
                "is_meeting": event.is_meeting,
            }
            for event in services.users.list_events(actor_id, limit)
        ]

    @app.get("/availability", dependencies=[Depends(require_api_key)])
    async def availability(
        friend_id: int,
        start: datetime | None = None,
        end: datetime | None = None,
        duration_minutes: int | None = None,
        actor_id: int = Depends(current_user),
    ) -> dict[str, Any]:
        """Summary: Shared free slots between the caller and a friend.

        Importance: Clients show available slots and a ranked shortlist.
        Alternatives: Return only the top recommendation.
        """

        result = await services.availability.get_availability(
            actor_id, friend_id, start, end, duration_minutes
        )
        return {
            "available": [_slot_to_dict(slot) for slot in result.available],
            "recommended": [_slot_to_dict(slot) for slot in result.recommended],
            "total_available": result.total_available,
        }

    @app.post("/proposals", dependencies=[Depends(require_api_key)])
    async def create_proposal(
        payload: ProposalCreateRequest, actor_id: int = Depends(current_user)
    ) -> dict[str, Any]:
        proposal = await services.proposals.propose(
            actor_id,
            payload.invitee_id,
            start_time=payload.start_time,
            auto_select=payload.auto_select,
            duration_minutes=payload.duration_minutes,
            location=payload.location,
            meeting_type=payload.meeting_type,
            title=payload.title,
        )
        return _proposal_to_dict(proposal)

    @app.get("/proposals", dependencies=[Depends(require_api_key)])
    def list_proposals(
        status: ProposalStatus | None = None, actor_id: int = Depends(current_user)
    ) -> list[dict[str, Any]]:
        return [
            _proposal_to_dict(proposal)
            for proposal in services.proposals.list_proposals(actor_id, status)
        ]

    @app.get("/proposals/{proposal_id}", dependencies=[Depends(require_api_key)])
    def get_proposal(proposal_id: int, actor_id: int = Depends(current_user)) -> dict[str, Any]:
        return _proposal_to_dict(services.proposals.get_proposal(proposal_id, actor_id))

    @app.post("/proposals/{proposal_id}/respond", dependencies=[Depends(require_api_key)])
    async def respond_proposal(
        proposal_id: int, payload: ProposalResponseRequest, actor_id: int = Depends(current_user)
    ) -> dict[str, Any]:
        """Summary: Accept, reject, or counter-propose a meeting.

        Importance: All three transitions run inside the pair's critical section.
        Alternatives: Expose one route per transition.
        """

        proposal = await services.proposals.respond(
            proposal_id,
            actor_id,
            payload.action,
            alternative_time=payload.alternative_time,
            alternative_location=payload.alternative_location,
        )
        return _proposal_to_dict(proposal)

    @app.post("/friends/requests", dependencies=[Depends(require_api_key)])
    async def request_friend(
        payload: FriendRequestCreate, actor_id: int = Depends(current_user)
    ) -> dict[str, Any]:
        result = await services.friendships.request_friendship(actor_id, payload.email, payload.note)
        if isinstance(result, InvitationToken):
            return {
                "invited": True,
                "invitation_id": result.id,
                "email": result.invitee_email,
                "expires_at": result.expires_at.isoformat(),
            }
        return {"invited": False, **_relationship_to_dict(result)}

    @app.post("/friends/{relationship_id}/respond", dependencies=[Depends(require_api_key)])
    async def respond_friend(
        relationship_id: int, payload: FriendResponseRequest, actor_id: int = Depends(current_user)
    ) -> dict[str, Any]:
        relationship = await services.friendships.respond_friendship(
            relationship_id, actor_id, payload.action
        )
        return _relationship_to_dict(relationship)

    @app.post("/invitations/accept", dependencies=[Depends(require_api_key)])
    async def accept_invitation(
        payload: InvitationAcceptRequest, actor_id: int = Depends(current_user)
    ) -> dict[str, Any]:
        """Summary: Redeem an emailed invitation as the invited user.

        Importance: Completes the friend flow for people who signed up from an invite.
        Alternatives: Send a regular friend request after signup.
        """

        relationship = await services.friendships.accept_invitation(payload.code, actor_id)
        return _relationship_to_dict(relationship)

    @app.get("/friends", dependencies=[Depends(require_api_key)])
    def list_friends(
        status: RelationshipStatus | None = None, actor_id: int = Depends(current_user)
    ) -> list[dict[str, Any]]:
        return [
            _relationship_to_dict(relationship)
            for relationship in services.friendships.list_friends(actor_id, status)
        ]

    @app.post("/calendar/sync", dependencies=[Depends(require_api_key)])
    async def sync_calendar(
        payload: CalendarSyncRequest, actor_id: int = Depends(current_user)
    ) -> dict[str, Any]:
        """Summary: Pull the caller's calendar into busy time.

        Importance: Keeps availability in step with external calendars.
        Alternatives: Accept raw event payloads over the API.
        """

        provider: CalendarProvider
        if payload.source == "ics":
            if not payload.path:
                raise HTTPException(status_code=400, detail="ICS path is required")
            ics_path = Path(payload.path)
            if not ics_path.exists():
                raise HTTPException(status_code=404, detail="ICS file not found")
            provider = IcsCalendarProvider(ics_path)
        else:
            fixture_path = Path(payload.path) if payload.path else Path("data/mock_events.json")
            if not fixture_path.exists():
                raise HTTPException(status_code=404, detail="Fixture not found")
            provider = MockCalendarProvider(fixture_path)
        result = await services.calendar_sync.sync(actor_id, provider, payload.start, payload.end)
        return {"fetched": result.fetched, "event_ids": result.event_ids}

    return app


def _slot_to_dict(slot: TimeSlot) -> dict[str, Any]:
    return {
        "start": slot.start.isoformat(),
        "end": slot.end.isoformat(),
        "available": slot.available,
        "score": slot.score,
    }


def _proposal_to_dict(proposal: MeetingProposal) -> dict[str, Any]:
    """Summary: Serialize a proposal for API clients.

    Importance: The details variant is flattened under its kind tag.
    Alternatives: Use pydantic response models for every variant.
    """

    details = proposal.details
    if isinstance(details, FriendMeetingDetails):
        details_payload: dict[str, Any] = {
            "kind": details.kind,
            "meeting_type": details.meeting_type.value,
            "suggested_locations": list(details.suggested_locations),
        }
    else:
        details_payload = {"kind": details.kind, "description": details.description}
    return {
        "id": proposal.id,
        "proposer_id": proposal.proposer_id,
        "invitee_id": proposal.invitee_id,
        "title": proposal.title,
        "start_time": proposal.start_time.isoformat(),
        "end_time": proposal.end_time.isoformat(),
        "duration_minutes": proposal.duration_minutes,
        "location": proposal.location,
        "status": proposal.status.value,
        "proposer_attendance": proposal.proposer_attendance.value,
        "invitee_attendance": proposal.invitee_attendance.value,
        "details": details_payload,
        "suggestions": [
            {
                "by": item.by,
                "time": item.time.isoformat() if item.time else None,
                "location": item.location,
                "at": item.at.isoformat(),
            }
            for item in proposal.suggestions
        ],
    }


def _relationship_to_dict(relationship: Relationship) -> dict[str, Any]:
    pattern = relationship.pattern
    return {
        "id": relationship.id,
        "user_id": relationship.user_id,
        "friend_id": relationship.friend_id,
        "status": relationship.status.value,
        "note": relationship.note,
        "accepted_at": relationship.accepted_at.isoformat() if relationship.accepted_at else None,
        "preferred_time": pattern.preferred_time.value if pattern.preferred_time else None,
        "common_locations": list(pattern.locations),
        "meeting_count": pattern.meeting_count,
    }
