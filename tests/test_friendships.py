"""Summary: Tests for the friend request flow.

Importance: Friendship gates availability and proposals, so races here leak access.
Alternatives: Rely on unique indexes to reject duplicates.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable

import pytest

from meetpilot.app import AppServices, build_services
from meetpilot.config import AppConfig
from meetpilot.errors import (
    ALREADY_FRIENDS,
    INVALID_TRANSITION,
    INVITATION_EXPIRED,
    REQUEST_PENDING,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from meetpilot.models import InvitationStatus, InvitationToken, Relationship, RelationshipStatus
from meetpilot.notifications import Notifier


class RecordingNotifier(Notifier):
    def __init__(self) -> None:
        self.sent: list[tuple[str, tuple[Any, ...]]] = []

    def send_meeting_proposal(self, *args: Any) -> None:
        self.sent.append(("proposal", args))

    def send_meeting_accepted(self, *args: Any) -> None:
        self.sent.append(("accepted", args))

    def send_friend_invitation(self, *args: Any) -> None:
        self.sent.append(("invitation", args))


def _build_config(db_path: str) -> AppConfig:
    return AppConfig(
        db_path=db_path,
        api_host="127.0.0.1",
        api_port=8000,
        api_key="",
        log_level="INFO",
        lock_timeout_seconds=5.0,
        sync_lock_timeout_seconds=60.0,
        external_call_pool_size=5,
        sync_debounce_ms=10,
        availability_window_days=7,
        default_duration_minutes=60,
        skip_weekends=True,
        preference_cache_ttl_seconds=300.0,
        default_locations=["Cafe One"],
        invitation_ttl_days=7,
        app_url="http://meetpilot.test/",
        meeting_keywords=["meeting"],
    )


def _run(services: AppServices, call: Callable[[], Awaitable[Any]]) -> Any:
    async def main() -> Any:
        try:
            return await call()
        finally:
            await services.notifications.drain()

    return asyncio.run(main())


def _setup(tmp_path: Path) -> tuple[AppServices, RecordingNotifier, int, int]:
    notifier = RecordingNotifier()
    services = build_services(_build_config(str(tmp_path / "test.db")), notifier)
    alice = services.users.create_user("Alice", "alice@example.com")
    bob = services.users.create_user("Bob", "bob@example.com", "Asia/Seoul")
    return services, notifier, alice, bob


def test_request_creates_pending_relationship(tmp_path: Path) -> None:
    services, _, alice, bob = _setup(tmp_path)
    result = _run(
        services,
        lambda: services.friendships.request_friendship(alice, "Bob@Example.com", "from school"),
    )
    assert isinstance(result, Relationship)
    assert result.status == RelationshipStatus.PENDING
    assert (result.user_id, result.friend_id) == (alice, bob)
    assert result.note == "from school"
    assert [item.id for item in services.friendships.list_friends(bob)] == [result.id]


def test_concurrent_requests_leave_one_pending_row(tmp_path: Path) -> None:
    """Summary: Simultaneous requests in both directions produce one row.

    Importance: The duplicate check and insert must be atomic per pair.
    Alternatives: Clean up duplicate rows after the fact.
    """

    services, _, alice, bob = _setup(tmp_path)

    async def both() -> list[Any]:
        return await asyncio.gather(
            services.friendships.request_friendship(alice, "bob@example.com"),
            services.friendships.request_friendship(bob, "alice@example.com"),
            return_exceptions=True,
        )

    results = _run(services, both)
    created = [result for result in results if isinstance(result, Relationship)]
    conflicts = [result for result in results if isinstance(result, ConflictError)]
    assert len(created) == 1
    assert len(conflicts) == 1
    assert conflicts[0].reason == REQUEST_PENDING
    rows = services.friendships.list_friends(alice)
    assert len(rows) == 1
    assert rows[0].status == RelationshipStatus.PENDING


def test_accept_writes_reciprocal_row(tmp_path: Path) -> None:
    services, _, alice, bob = _setup(tmp_path)
    request = _run(services, lambda: services.friendships.request_friendship(alice, "bob@example.com"))
    accepted = _run(
        services, lambda: services.friendships.respond_friendship(request.id, bob, "accept")
    )
    assert accepted.status == RelationshipStatus.ACCEPTED
    assert accepted.accepted_at is not None
    reciprocal = services.store.get_relationship(bob, alice)
    assert reciprocal is not None
    assert reciprocal.status == RelationshipStatus.ACCEPTED
    with pytest.raises(ConflictError) as excinfo:
        _run(services, lambda: services.friendships.request_friendship(bob, "alice@example.com"))
    assert excinfo.value.reason == ALREADY_FRIENDS


def test_only_recipient_can_respond(tmp_path: Path) -> None:
    services, _, alice, bob = _setup(tmp_path)
    request = _run(services, lambda: services.friendships.request_friendship(alice, "bob@example.com"))
    with pytest.raises(ForbiddenError):
        _run(services, lambda: services.friendships.respond_friendship(request.id, alice, "accept"))
    with pytest.raises(ValidationError):
        _run(services, lambda: services.friendships.respond_friendship(request.id, bob, "maybe"))
    with pytest.raises(NotFoundError):
        _run(services, lambda: services.friendships.respond_friendship(999, bob, "accept"))
    stored = services.store.get_relationship_by_id(request.id)
    assert stored is not None and stored.status == RelationshipStatus.PENDING


def test_decline_deletes_request_and_allows_retry(tmp_path: Path) -> None:
    """Summary: Declining removes the row so a new request can be sent later.

    Importance: Declines are not permanent blocks.
    Alternatives: Keep declined rows and refuse new requests.
    """

    services, _, alice, bob = _setup(tmp_path)
    request = _run(services, lambda: services.friendships.request_friendship(alice, "bob@example.com"))
    declined = _run(
        services, lambda: services.friendships.respond_friendship(request.id, bob, "decline")
    )
    assert declined.status == RelationshipStatus.REJECTED
    assert services.store.get_relationship_by_id(request.id) is None
    with pytest.raises(NotFoundError):
        _run(services, lambda: services.friendships.respond_friendship(request.id, bob, "accept"))
    retry = _run(services, lambda: services.friendships.request_friendship(alice, "bob@example.com"))
    assert retry.status == RelationshipStatus.PENDING


def test_unknown_email_creates_invitation(tmp_path: Path) -> None:
    services, notifier, alice, _ = _setup(tmp_path)
    fixed = datetime(2030, 1, 7, tzinfo=timezone.utc)
    friendships = replace(services.friendships, clock=lambda: fixed)
    result = _run(services, lambda: friendships.request_friendship(alice, "newcomer@example.com"))
    assert isinstance(result, InvitationToken)
    assert result.invitee_email == "newcomer@example.com"
    assert result.expires_at == fixed + timedelta(days=7)
    assert services.store.list_invitations(alice)[0].code == result.code
    name, args = notifier.sent[0]
    assert name == "invitation"
    assert args[0] == "newcomer@example.com"
    assert args[2] == f"http://meetpilot.test/invite?token={result.code}"


def test_invited_user_redeems_code_once(tmp_path: Path) -> None:
    """Summary: Redeeming an invitation makes both users accepted friends.

    Importance: Invitees who sign up from an email land directly in the friend list.
    Alternatives: Make the invitee send a fresh friend request after signup.
    """

    services, _, alice, _ = _setup(tmp_path)
    invitation = _run(
        services, lambda: services.friendships.request_friendship(alice, "newcomer@example.com")
    )
    carol = services.users.create_user("Carol", "Newcomer@Example.com")
    relationship = _run(
        services, lambda: services.friendships.accept_invitation(invitation.code, carol)
    )
    assert relationship.status == RelationshipStatus.ACCEPTED
    assert (relationship.user_id, relationship.friend_id) == (alice, carol)
    reciprocal = services.store.get_relationship(carol, alice)
    assert reciprocal is not None and reciprocal.status == RelationshipStatus.ACCEPTED
    assert services.store.list_invitations(alice)[0].status == InvitationStatus.ACCEPTED
    with pytest.raises(ConflictError) as excinfo:
        _run(services, lambda: services.friendships.accept_invitation(invitation.code, carol))
    assert excinfo.value.reason == INVALID_TRANSITION


def test_invitation_checks_code_recipient_and_expiry(tmp_path: Path) -> None:
    services, _, alice, bob = _setup(tmp_path)
    issued = datetime(2030, 1, 7, tzinfo=timezone.utc)
    friendships = replace(services.friendships, clock=lambda: issued)
    invitation = _run(
        services, lambda: friendships.request_friendship(alice, "late@example.com")
    )
    late = services.users.create_user("Late", "late@example.com")
    with pytest.raises(NotFoundError):
        _run(services, lambda: friendships.accept_invitation("no-such-code", late))
    with pytest.raises(ValidationError):
        _run(services, lambda: friendships.accept_invitation(invitation.code, bob))

    expired_clock = replace(friendships, clock=lambda: issued + timedelta(days=7))
    with pytest.raises(ConflictError) as excinfo:
        _run(services, lambda: expired_clock.accept_invitation(invitation.code, late))
    assert excinfo.value.reason == INVITATION_EXPIRED
    assert services.store.get_invitation_by_code(invitation.code).status == InvitationStatus.EXPIRED
    assert services.store.find_relationship_between(alice, late) is None


def test_invitation_for_existing_friend_reports_already_friends(tmp_path: Path) -> None:
    services, _, alice, _ = _setup(tmp_path)
    invitation = _run(
        services, lambda: services.friendships.request_friendship(alice, "dave@example.com")
    )
    dave = services.users.create_user("Dave", "dave@example.com")
    request = _run(
        services, lambda: services.friendships.request_friendship(alice, "dave@example.com")
    )
    _run(services, lambda: services.friendships.respond_friendship(request.id, dave, "accept"))
    with pytest.raises(ConflictError) as excinfo:
        _run(services, lambda: services.friendships.accept_invitation(invitation.code, dave))
    assert excinfo.value.reason == ALREADY_FRIENDS
    assert services.store.get_invitation_by_code(invitation.code).status == InvitationStatus.ACCEPTED
    assert len(services.friendships.list_friends(dave)) == 2


def test_request_validation(tmp_path: Path) -> None:
    services, _, alice, _ = _setup(tmp_path)
    with pytest.raises(ValidationError):
        _run(services, lambda: services.friendships.request_friendship(alice, "not-an-email"))
    with pytest.raises(ValidationError):
        _run(services, lambda: services.friendships.request_friendship(alice, "alice@example.com"))
    with pytest.raises(NotFoundError):
        _run(services, lambda: services.friendships.request_friendship(999, "bob@example.com"))


def test_availability_requires_accepted_friendship(tmp_path: Path) -> None:
    services, _, alice, bob = _setup(tmp_path)
    monday = datetime(2030, 1, 7, tzinfo=timezone.utc)
    with pytest.raises(ForbiddenError):
        _run(
            services,
            lambda: services.availability.get_availability(
                alice, bob, monday, monday + timedelta(days=1)
            ),
        )
    request = _run(services, lambda: services.friendships.request_friendship(alice, "bob@example.com"))
    _run(services, lambda: services.friendships.respond_friendship(request.id, bob, "accept"))
    result = _run(
        services,
        lambda: services.availability.get_availability(alice, bob, monday, monday + timedelta(days=1)),
    )
    # Bob is in Seoul, so only the UTC morning maps onto his evening band.
    assert [slot.start.hour for slot in result.available] == [9, 10, 11]
    assert result.total_available == 3
    assert len(result.recommended) == 3
