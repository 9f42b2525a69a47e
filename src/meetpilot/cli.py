"""Summary: Command-line interface for MeetPilot.

Importance: Provides a local-first entry point for scheduling workflows.
Alternatives: Build a web UI or desktop client first.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable

from meetpilot.app import AppServices, build_services
from meetpilot.calendar import IcsCalendarProvider, MockCalendarProvider
from meetpilot.config import AppConfig
from meetpilot.errors import SchedulingError
from meetpilot.models import InvitationToken, MeetingType, ProposalStatus


def build_parser() -> argparse.ArgumentParser:
    """Summary: Build the CLI argument parser.

    Importance: Defines supported commands for local operation.
    Alternatives: Use a CLI framework like Typer or Click.
    """

    parser = argparse.ArgumentParser(description="MeetPilot CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    add_user = subparsers.add_parser("add-user", help="Create a user")
    add_user.add_argument("display_name", type=str)
    add_user.add_argument("email", type=str)
    add_user.add_argument("--timezone", type=str, default="UTC")

    subparsers.add_parser("list-users", help="List users")

    set_profile = subparsers.add_parser("set-profile", help="Update a scheduling profile")
    set_profile.add_argument("user_id", type=int)
    set_profile.add_argument("--timezone", type=str, default=None)
    set_profile.add_argument("--work-start", type=str, default=None)
    set_profile.add_argument("--work-end", type=str, default=None)
    set_profile.add_argument("--wake-time", type=str, default=None)
    set_profile.add_argument("--sleep-time", type=str, default=None)

    add_event = subparsers.add_parser("add-event", help="Block time on a user's calendar")
    add_event.add_argument("user_id", type=int)
    add_event.add_argument("start", type=datetime.fromisoformat)
    add_event.add_argument("end", type=datetime.fromisoformat)
    add_event.add_argument("--title", type=str, default="Busy")
    add_event.add_argument("--location", type=str, default=None)

    availability = subparsers.add_parser("availability", help="Find shared free slots")
    availability.add_argument("user_id", type=int)
    availability.add_argument("friend_id", type=int)
    availability.add_argument("--start", type=datetime.fromisoformat, default=None)
    availability.add_argument("--end", type=datetime.fromisoformat, default=None)
    availability.add_argument("--duration", type=int, default=None)

    propose = subparsers.add_parser("propose", help="Propose a meeting to a friend")
    propose.add_argument("proposer_id", type=int)
    propose.add_argument("invitee_id", type=int)
    propose.add_argument("--start", type=datetime.fromisoformat, default=None)
    propose.add_argument("--auto", action="store_true")
    propose.add_argument("--duration", type=int, default=None)
    propose.add_argument("--location", type=str, default=None)
    propose.add_argument(
        "--type", type=str, default=MeetingType.COFFEE.value, choices=[t.value for t in MeetingType]
    )
    propose.add_argument("--title", type=str, default=None)

    respond = subparsers.add_parser("respond", help="Accept, reject, or counter a proposal")
    respond.add_argument("proposal_id", type=int)
    respond.add_argument("actor_id", type=int)
    respond.add_argument("action", choices=["accept", "reject", "suggest"])
    respond.add_argument("--time", type=datetime.fromisoformat, default=None)
    respond.add_argument("--location", type=str, default=None)

    list_proposals = subparsers.add_parser("list-proposals", help="List a user's proposals")
    list_proposals.add_argument("user_id", type=int)
    list_proposals.add_argument(
        "--status", type=str, default=None, choices=[s.value for s in ProposalStatus]
    )

    request_friend = subparsers.add_parser("request-friend", help="Send a friend request")
    request_friend.add_argument("user_id", type=int)
    request_friend.add_argument("email", type=str)
    request_friend.add_argument("--note", type=str, default=None)

    respond_friend = subparsers.add_parser("respond-friend", help="Answer a friend request")
    respond_friend.add_argument("relationship_id", type=int)
    respond_friend.add_argument("actor_id", type=int)
    respond_friend.add_argument("action", choices=["accept", "decline"])

    accept_invite = subparsers.add_parser("accept-invite", help="Redeem a friend invitation code")
    accept_invite.add_argument("code")
    accept_invite.add_argument("actor_id", type=int)

    list_friends = subparsers.add_parser("list-friends", help="List a user's relationships")
    list_friends.add_argument("user_id", type=int)

    sync_mock = subparsers.add_parser("sync-calendar-mock", help="Sync events from a JSON fixture")
    sync_mock.add_argument("user_id", type=int)
    sync_mock.add_argument("--fixture", type=str, default=str(Path("data") / "mock_events.json"))
    sync_mock.add_argument("--days", type=int, default=30)

    sync_ics = subparsers.add_parser("sync-calendar-ics", help="Sync events from an .ics file")
    sync_ics.add_argument("user_id", type=int)
    sync_ics.add_argument("path", type=str)
    sync_ics.add_argument("--days", type=int, default=30)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", type=str, default=None)
    serve.add_argument("--port", type=int, default=None)

    return parser


def run_cli(argv: list[str] | None = None) -> None:
    """Summary: Execute CLI commands based on arguments.

    Importance: Domain errors print their code and exit with status 1.
    Alternatives: Invoke services via an HTTP API.
    """

    parser = build_parser()
    args = parser.parse_args(argv)
    config = AppConfig.from_env()
    if not logging.getLogger().handlers:
        logging.basicConfig(level=config.log_level, format="%(levelname)s %(name)s: %(message)s")

    if args.command == "serve":
        import uvicorn

        from meetpilot.api import create_app

        uvicorn.run(
            create_app(config),
            host=args.host or config.api_host,
            port=args.port or config.api_port,
        )
        return

    services = build_services(config)
    try:
        _dispatch(args, services)
    except SchedulingError as exc:
        print(f"error {exc.code}: {exc.message}", file=sys.stderr)
        raise SystemExit(1) from exc


def _dispatch(args: argparse.Namespace, services: AppServices) -> None:
    if args.command == "add-user":
        user_id = services.users.create_user(args.display_name, args.email, args.timezone)
        print(f"User {user_id} ({args.email}).")
        return

    if args.command == "list-users":
        for user in services.users.list_users():
            print(f"{user.id}\t{user.display_name}\t{user.email}\t{user.timezone}")
        return

    if args.command == "set-profile":
        participant = services.users.update_profile(
            args.user_id,
            timezone_name=args.timezone,
            work_start=args.work_start,
            work_end=args.work_end,
            wake_time=args.wake_time,
            sleep_time=args.sleep_time,
        )
        hours = participant.effective_work_hours
        print(
            f"User {participant.user_id}: {participant.timezone}, "
            f"work {hours.start.strftime('%H:%M')}-{hours.end.strftime('%H:%M')}."
        )
        return

    if args.command == "add-event":
        event_id = services.users.add_event(
            args.user_id, args.title, args.start, args.end, args.location
        )
        print(f"Added event {event_id}.")
        return

    if args.command == "availability":
        result = _run(
            services,
            lambda: services.availability.get_availability(
                args.user_id, args.friend_id, args.start, args.end, args.duration
            ),
        )
        print(f"{result.total_available} available slots.")
        for slot in result.available:
            print(f"  {slot.start.isoformat()} - {slot.end.isoformat()}")
        print("Recommended:")
        for slot in result.recommended:
            print(f"  {slot.start.isoformat()} (score {slot.score})")
        return

    if args.command == "propose":
        proposal = _run(
            services,
            lambda: services.proposals.propose(
                args.proposer_id,
                args.invitee_id,
                start_time=args.start,
                auto_select=args.auto,
                duration_minutes=args.duration,
                location=args.location,
                meeting_type=MeetingType(args.type),
                title=args.title,
            ),
        )
        print(
            f"Proposal {proposal.id} at {proposal.start_time.isoformat()} "
            f"({proposal.location or 'location to be decided'})."
        )
        return

    if args.command == "respond":
        proposal = _run(
            services,
            lambda: services.proposals.respond(
                args.proposal_id, args.actor_id, args.action, args.time, args.location
            ),
        )
        print(f"Proposal {proposal.id} is {proposal.status.value}.")
        return

    if args.command == "list-proposals":
        status = ProposalStatus(args.status) if args.status else None
        for proposal in services.proposals.list_proposals(args.user_id, status):
            print(
                f"{proposal.id}\t{proposal.status.value}\t{proposal.start_time.isoformat()}\t"
                f"{proposal.proposer_id}->{proposal.invitee_id}\t{proposal.title}"
            )
        return

    if args.command == "request-friend":
        result = _run(
            services,
            lambda: services.friendships.request_friendship(args.user_id, args.email, args.note),
        )
        if isinstance(result, InvitationToken):
            print(
                f"Invited {result.invitee_email} with code {result.code} "
                f"(expires {result.expires_at.isoformat()})."
            )
        else:
            print(f"Friend request {result.id} sent.")
        return

    if args.command == "respond-friend":
        relationship = _run(
            services,
            lambda: services.friendships.respond_friendship(
                args.relationship_id, args.actor_id, args.action
            ),
        )
        print(f"Friend request {relationship.id} is {relationship.status.value}.")
        return

    if args.command == "accept-invite":
        relationship = _run(
            services,
            lambda: services.friendships.accept_invitation(args.code, args.actor_id),
        )
        print(f"Now friends with user {relationship.user_id}.")
        return

    if args.command == "list-friends":
        for relationship in services.friendships.list_friends(args.user_id):
            print(
                f"{relationship.id}\t{relationship.user_id}->{relationship.friend_id}\t"
                f"{relationship.status.value}\t{relationship.pattern.meeting_count} meetings"
            )
        return

    if args.command in ("sync-calendar-mock", "sync-calendar-ics"):
        if args.command == "sync-calendar-mock":
            provider = MockCalendarProvider(Path(args.fixture))
        else:
            provider = IcsCalendarProvider(Path(args.path))
        start = datetime.now(timezone.utc)
        end = start + timedelta(days=args.days)
        result = _run(
            services, lambda: services.calendar_sync.sync(args.user_id, provider, start, end)
        )
        print(f"Synced {len(result.event_ids)} events.")
        return


def _run(services: AppServices, call: Callable[[], Awaitable[Any]]) -> Any:
    """Summary: Run one coroutine and wait for its notifications.

    Importance: Background notifications would be cancelled when the loop closes.
    Alternatives: Keep a long-lived event loop for the CLI process.
    """

    async def main() -> Any:
        try:
            return await call()
        finally:
            await services.notifications.drain()

    return asyncio.run(main())


if __name__ == "__main__":
    run_cli()
