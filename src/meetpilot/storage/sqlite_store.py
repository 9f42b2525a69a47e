"""Summary: SQLite storage implementation for MeetPilot.

Importance: Provides the event, profile, relationship, and proposal stores in one local database.
Alternatives: Use an ORM or an external database immediately.
"""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from meetpilot.errors import ExternalServiceError
from meetpilot.intervals import parse_time_of_day
from meetpilot.models import (
    AttendanceStatus,
    BusyInterval,
    CalendarEvent,
    FriendMeetingDetails,
    GeneralMeetingDetails,
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
    TimeOfDay,
    User,
    WorkHours,
)


@dataclass(frozen=True)
class StoredUser:
    """Summary: User record with database identifier.

    Importance: Resolves emails to IDs for friend requests and notifications.
    Alternatives: Keep only a single implicit user without records.
    """

    id: int
    display_name: str
    email: str
    timezone: str


@dataclass(frozen=True)
class StoredEvent:
    """Summary: Synced or manually added calendar event with database identifier.

    Importance: Lets callers list what blocks a user's calendar.
    Alternatives: Expose busy intervals only.
    """

    id: int
    user_id: int
    provider_event_id: str
    title: str
    start_time: str
    end_time: str
    location: str | None
    is_meeting: bool


def to_db_time(value: datetime) -> str:
    """Summary: Serialize a datetime as a second-precision UTC ISO string.

    Importance: A single format keeps lexical comparison in SQL correct.
    Alternatives: Store epoch seconds as integers.
    """

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).replace(microsecond=0).isoformat()


def from_db_time(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)


class SqliteStore:
    """Summary: SQLite-backed storage for MeetPilot.

    Importance: Enables local-first persistence with minimal dependencies.
    Alternatives: Use Postgres and SQLAlchemy from day one.
    """

    def __init__(self, db_path: str) -> None:
        """Summary: Initialize the storage with a database path.

        Importance: Allows configurable database location per environment.
        Alternatives: Hardcode a default path in the class.
        """

        self._db_path = Path(db_path)

    def initialize(self) -> None:
        """Summary: Create tables if they do not exist.

        Importance: Ensures the database is ready for scheduling workflows.
        Alternatives: Run migrations using a dedicated migration tool.
        """

        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    display_name TEXT NOT NULL,
                    email TEXT NOT NULL UNIQUE,
                    timezone TEXT NOT NULL DEFAULT 'UTC',
                    work_start TEXT,
                    work_end TEXT,
                    wake_time TEXT,
                    sleep_time TEXT
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS events (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    provider_event_id TEXT NOT NULL,
                    title TEXT,
                    start_time TEXT NOT NULL,
                    end_time TEXT NOT NULL,
                    location TEXT,
                    status TEXT NOT NULL DEFAULT 'confirmed',
                    is_meeting INTEGER NOT NULL DEFAULT 0,
                    UNIQUE(user_id, provider_event_id)
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS proposals (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    proposer_id INTEGER NOT NULL,
                    invitee_id INTEGER NOT NULL,
                    title TEXT NOT NULL,
                    start_time TEXT NOT NULL,
                    end_time TEXT NOT NULL,
                    duration_minutes INTEGER NOT NULL,
                    location TEXT,
                    status TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    meeting_type TEXT,
                    suggested_locations TEXT,
                    description TEXT,
                    proposer_attendance TEXT NOT NULL,
                    invitee_attendance TEXT NOT NULL,
                    suggestions TEXT NOT NULL DEFAULT '[]',
                    created_at TEXT NOT NULL,
                    accepted_at TEXT
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS friendships (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    friend_id INTEGER NOT NULL,
                    status TEXT NOT NULL,
                    note TEXT,
                    created_at TEXT NOT NULL,
                    accepted_at TEXT,
                    preferred_time TEXT,
                    common_locations TEXT NOT NULL DEFAULT '[]',
                    meeting_count INTEGER NOT NULL DEFAULT 0,
                    last_meeting_type TEXT,
                    UNIQUE(user_id, friend_id),
                    CHECK (user_id != friend_id)
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS invitations (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    inviter_id INTEGER NOT NULL,
                    invitee_email TEXT NOT NULL,
                    code TEXT NOT NULL UNIQUE,
                    status TEXT NOT NULL DEFAULT 'pending',
                    created_at TEXT NOT NULL,
                    expires_at TEXT NOT NULL
                )
                """
            )
            connection.commit()

    def ensure_user(self, user: User) -> int:
        """Summary: Ensure a user exists and return their ID.

        Importance: Provides a stable user record for data ownership.
        Alternatives: Fail when the email already exists.
        """

        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                "INSERT OR IGNORE INTO users (display_name, email, timezone) VALUES (?, ?, ?)",
                (user.display_name, user.email.lower(), user.timezone),
            )
            if cursor.rowcount:
                user_id = cursor.lastrowid
            else:
                cursor.execute("SELECT id FROM users WHERE email = ?", (user.email.lower(),))
                row = cursor.fetchone()
                user_id = int(row[0]) if row else 0
            connection.commit()
        return int(user_id)

    def get_user(self, user_id: int) -> StoredUser | None:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                "SELECT id, display_name, email, timezone FROM users WHERE id = ?", (user_id,)
            )
            row = cursor.fetchone()
        return StoredUser(*row) if row else None

    def get_user_by_email(self, email: str) -> StoredUser | None:
        """Summary: Fetch a user by email.

        Importance: Friend requests are addressed by email.
        Alternatives: Use user IDs only.
        """

        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                "SELECT id, display_name, email, timezone FROM users WHERE email = ?",
                (email.strip().lower(),),
            )
            row = cursor.fetchone()
        return StoredUser(*row) if row else None

    def list_users(self) -> list[StoredUser]:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute("SELECT id, display_name, email, timezone FROM users ORDER BY id")
            rows = cursor.fetchall()
        return [StoredUser(*row) for row in rows]

    def update_profile(
        self,
        user_id: int,
        timezone_name: str | None = None,
        work_hours: WorkHours | None = None,
        wake_time: str | None = None,
        sleep_time: str | None = None,
    ) -> bool:
        """Summary: Update the scheduling profile of a user.

        Importance: Work hours and wake/sleep times shape candidate bands.
        Alternatives: Read profiles from an external profile service.
        """

        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                UPDATE users SET
                    timezone = COALESCE(?, timezone),
                    work_start = COALESCE(?, work_start),
                    work_end = COALESCE(?, work_end),
                    wake_time = COALESCE(?, wake_time),
                    sleep_time = COALESCE(?, sleep_time)
                WHERE id = ?
                """,
                (
                    timezone_name,
                    work_hours.start.strftime("%H:%M") if work_hours else None,
                    work_hours.end.strftime("%H:%M") if work_hours else None,
                    wake_time,
                    sleep_time,
                    user_id,
                ),
            )
            updated = cursor.rowcount > 0
            connection.commit()
        return updated

    def get_participant(self, user_id: int) -> Participant | None:
        """Summary: Build a read-only scheduling snapshot for a user.

        Importance: Supplies the profile half of the availability inputs.
        Alternatives: Pass raw rows into the availability engine.
        """

        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                SELECT id, email, display_name, timezone, work_start, work_end, wake_time, sleep_time
                FROM users WHERE id = ?
                """,
                (user_id,),
            )
            row = cursor.fetchone()
        if not row:
            return None
        work_hours = None
        if row[4] and row[5]:
            work_hours = WorkHours(start=parse_time_of_day(row[4]), end=parse_time_of_day(row[5]))
        return Participant(
            user_id=row[0],
            email=row[1],
            display_name=row[2],
            timezone=row[3],
            work_hours=work_hours,
            wake_time=parse_time_of_day(row[6]) if row[6] else None,
            sleep_time=parse_time_of_day(row[7]) if row[7] else None,
        )

    def save_events(self, user_id: int, events: list[CalendarEvent]) -> list[int]:
        """Summary: Upsert confirmed events for a user and return their IDs.

        Importance: Calendar sync is idempotent per provider event ID.
        Alternatives: Delete and re-insert the whole range on every sync.
        """

        ids: list[int] = []
        with self._connection() as connection:
            cursor = connection.cursor()
            for event in events:
                cursor.execute(
                    """
                    INSERT INTO events (
                        user_id, provider_event_id, title, start_time, end_time, location, is_meeting
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(user_id, provider_event_id) DO UPDATE SET
                        title = excluded.title,
                        start_time = excluded.start_time,
                        end_time = excluded.end_time,
                        location = excluded.location,
                        is_meeting = excluded.is_meeting
                    """,
                    (
                        user_id,
                        event.provider_event_id,
                        event.title,
                        to_db_time(event.start_time),
                        to_db_time(event.end_time),
                        event.location,
                        int(event.is_meeting),
                    ),
                )
                cursor.execute(
                    "SELECT id FROM events WHERE user_id = ? AND provider_event_id = ?",
                    (user_id, event.provider_event_id),
                )
                row = cursor.fetchone()
                if row:
                    ids.append(int(row[0]))
            connection.commit()
        return ids

    def list_events(self, user_id: int, limit: int = 50) -> list[StoredEvent]:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                SELECT id, user_id, provider_event_id, title, start_time, end_time, location, is_meeting
                FROM events
                WHERE user_id = ?
                ORDER BY start_time
                LIMIT ?
                """,
                (user_id, limit),
            )
            rows = cursor.fetchall()
        return [StoredEvent(*row[:7], bool(row[7])) for row in rows]

    def list_confirmed_events(
        self, user_id: int, start: datetime, end: datetime
    ) -> list[BusyInterval]:
        """Summary: Return busy intervals of a user that overlap [start, end).

        Importance: Confirmed proposals block both participants alongside synced events.
        Alternatives: Treat only synced provider events as busy time.
        """

        window = (to_db_time(end), to_db_time(start))
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                SELECT start_time, end_time FROM events
                WHERE user_id = ? AND status = 'confirmed' AND start_time < ? AND end_time > ?
                UNION ALL
                SELECT start_time, end_time FROM proposals
                WHERE (proposer_id = ? OR invitee_id = ?) AND status = ?
                    AND start_time < ? AND end_time > ?
                ORDER BY start_time
                """,
                (
                    user_id,
                    *window,
                    user_id,
                    user_id,
                    ProposalStatus.CONFIRMED.value,
                    *window,
                ),
            )
            rows = cursor.fetchall()
        return [
            BusyInterval(start=from_db_time(row[0]), end=from_db_time(row[1]), owner_id=user_id)
            for row in rows
            if row[0] < row[1]
        ]

    def insert_proposal(self, proposal: MeetingProposal) -> int:
        """Summary: Insert a tentative meeting record and return its ID.

        Importance: The record is the source of truth for the negotiation.
        Alternatives: Keep proposals in memory until confirmed.
        """

        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                INSERT INTO proposals (
                    proposer_id, invitee_id, title, start_time, end_time, duration_minutes,
                    location, status, kind, meeting_type, suggested_locations, description,
                    proposer_attendance, invitee_attendance, suggestions, created_at, accepted_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    proposal.proposer_id,
                    proposal.invitee_id,
                    *self._proposal_columns(proposal),
                ),
            )
            proposal_id = int(cursor.lastrowid)
            connection.commit()
        return proposal_id

    def update_proposal(self, proposal: MeetingProposal) -> bool:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                UPDATE proposals SET
                    title = ?, start_time = ?, end_time = ?, duration_minutes = ?, location = ?,
                    status = ?, kind = ?, meeting_type = ?, suggested_locations = ?,
                    description = ?, proposer_attendance = ?, invitee_attendance = ?,
                    suggestions = ?, created_at = ?, accepted_at = ?
                WHERE id = ?
                """,
                (*self._proposal_columns(proposal), proposal.id),
            )
            updated = cursor.rowcount > 0
            connection.commit()
        return updated

    def delete_proposal(self, proposal_id: int) -> bool:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute("DELETE FROM proposals WHERE id = ?", (proposal_id,))
            deleted = cursor.rowcount > 0
            connection.commit()
        return deleted

    def get_proposal(self, proposal_id: int) -> MeetingProposal | None:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(f"SELECT {_PROPOSAL_FIELDS} FROM proposals WHERE id = ?", (proposal_id,))
            row = cursor.fetchone()
        return _row_to_proposal(row) if row else None

    def list_proposals(
        self, user_id: int, status: ProposalStatus | None = None, limit: int = 50
    ) -> list[MeetingProposal]:
        """Summary: List proposals where the user is proposer or invitee.

        Importance: Lets each party see what awaits their response.
        Alternatives: Separate inbox and outbox queries.
        """

        query = f"SELECT {_PROPOSAL_FIELDS} FROM proposals WHERE (proposer_id = ? OR invitee_id = ?)"
        params: list[Any] = [user_id, user_id]
        if status is not None:
            query += " AND status = ?"
            params.append(status.value)
        query += " ORDER BY start_time LIMIT ?"
        params.append(limit)
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(query, params)
            rows = cursor.fetchall()
        return [_row_to_proposal(row) for row in rows]

    def insert_relationship(
        self,
        user_id: int,
        friend_id: int,
        status: RelationshipStatus,
        created_at: datetime,
        note: str | None = None,
        accepted_at: datetime | None = None,
        pattern: LearnedPattern | None = None,
    ) -> Relationship:
        """Summary: Insert a directed friendship row.

        Importance: Creates pending requests and reciprocal accepted rows.
        Alternatives: Upsert to tolerate duplicates silently.
        """

        pattern = pattern or LearnedPattern()
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                INSERT INTO friendships (
                    user_id, friend_id, status, note, created_at, accepted_at,
                    preferred_time, common_locations, meeting_count, last_meeting_type
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    friend_id,
                    status.value,
                    note,
                    created_at.isoformat(),
                    accepted_at.isoformat() if accepted_at else None,
                    *_pattern_columns(pattern),
                ),
            )
            relationship_id = int(cursor.lastrowid)
            connection.commit()
        return Relationship(
            id=relationship_id,
            user_id=user_id,
            friend_id=friend_id,
            status=status,
            created_at=created_at,
            accepted_at=accepted_at,
            note=note,
            pattern=pattern,
        )

    def update_relationship(self, relationship: Relationship) -> bool:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                UPDATE friendships SET
                    status = ?, note = ?, accepted_at = ?, preferred_time = ?,
                    common_locations = ?, meeting_count = ?, last_meeting_type = ?
                WHERE id = ?
                """,
                (
                    relationship.status.value,
                    relationship.note,
                    relationship.accepted_at.isoformat() if relationship.accepted_at else None,
                    *_pattern_columns(relationship.pattern),
                    relationship.id,
                ),
            )
            updated = cursor.rowcount > 0
            connection.commit()
        return updated

    def delete_relationship(self, relationship_id: int) -> bool:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute("DELETE FROM friendships WHERE id = ?", (relationship_id,))
            deleted = cursor.rowcount > 0
            connection.commit()
        return deleted

    def get_relationship_by_id(self, relationship_id: int) -> Relationship | None:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                f"SELECT {_RELATIONSHIP_FIELDS} FROM friendships WHERE id = ?", (relationship_id,)
            )
            row = cursor.fetchone()
        return _row_to_relationship(row) if row else None

    def get_relationship(self, user_id: int, friend_id: int) -> Relationship | None:
        """Summary: Fetch the directed row from user_id to friend_id.

        Importance: Each side of an accepted friendship keeps its own learned pattern.
        Alternatives: Query both directions every time.
        """

        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                f"SELECT {_RELATIONSHIP_FIELDS} FROM friendships WHERE user_id = ? AND friend_id = ?",
                (user_id, friend_id),
            )
            row = cursor.fetchone()
        return _row_to_relationship(row) if row else None

    def find_relationship_between(self, user_a: int, user_b: int) -> Relationship | None:
        """Summary: Fetch a row in either direction, preferring accepted rows.

        Importance: Duplicate-request detection must see requests sent either way.
        Alternatives: Store one canonical row per unordered pair.
        """

        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                f"""
                SELECT {_RELATIONSHIP_FIELDS} FROM friendships
                WHERE (user_id = ? AND friend_id = ?) OR (user_id = ? AND friend_id = ?)
                ORDER BY CASE status WHEN 'accepted' THEN 0 ELSE 1 END, id
                LIMIT 1
                """,
                (user_a, user_b, user_b, user_a),
            )
            row = cursor.fetchone()
        return _row_to_relationship(row) if row else None

    def list_relationships(
        self, user_id: int, status: RelationshipStatus | None = None
    ) -> list[Relationship]:
        """Summary: List rows where the user is sender or recipient.

        Importance: Powers friend lists and pending-request inboxes.
        Alternatives: Materialize a friends view in SQL.
        """

        query = f"SELECT {_RELATIONSHIP_FIELDS} FROM friendships WHERE (user_id = ? OR friend_id = ?)"
        params: list[Any] = [user_id, user_id]
        if status is not None:
            query += " AND status = ?"
            params.append(status.value)
        query += " ORDER BY id"
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(query, params)
            rows = cursor.fetchall()
        return [_row_to_relationship(row) for row in rows]

    def create_invitation(
        self,
        inviter_id: int,
        invitee_email: str,
        code: str,
        created_at: datetime,
        expires_at: datetime,
    ) -> InvitationToken:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                INSERT INTO invitations (inviter_id, invitee_email, code, created_at, expires_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (inviter_id, invitee_email, code, created_at.isoformat(), expires_at.isoformat()),
            )
            invitation_id = int(cursor.lastrowid)
            connection.commit()
        return InvitationToken(
            id=invitation_id,
            inviter_id=inviter_id,
            invitee_email=invitee_email,
            code=code,
            created_at=created_at,
            expires_at=expires_at,
        )

    def list_invitations(self, inviter_id: int) -> list[InvitationToken]:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                f"SELECT {_INVITATION_FIELDS} FROM invitations WHERE inviter_id = ? ORDER BY id",
                (inviter_id,),
            )
            rows = cursor.fetchall()
        return [_row_to_invitation(row) for row in rows]

    def get_invitation_by_code(self, code: str) -> InvitationToken | None:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                f"SELECT {_INVITATION_FIELDS} FROM invitations WHERE code = ?",
                (code,),
            )
            row = cursor.fetchone()
        return _row_to_invitation(row) if row else None

    def update_invitation_status(self, invitation_id: int, status: InvitationStatus) -> bool:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                "UPDATE invitations SET status = ? WHERE id = ?",
                (status.value, invitation_id),
            )
            connection.commit()
            return cursor.rowcount > 0

    @staticmethod
    def _proposal_columns(proposal: MeetingProposal) -> tuple[Any, ...]:
        """Summary: Flatten the mutable proposal fields into column order.

        Importance: Insert and update share one serialization of the tagged details.
        Alternatives: Serialize the whole proposal into a JSON column.
        """

        details = proposal.details
        if isinstance(details, FriendMeetingDetails):
            meeting_type = details.meeting_type.value
            suggested = json.dumps(list(details.suggested_locations))
            description = None
        else:
            meeting_type = None
            suggested = None
            description = details.description
        suggestions = json.dumps(
            [
                {
                    "by": item.by,
                    "time": item.time.isoformat() if item.time else None,
                    "location": item.location,
                    "at": item.at.isoformat(),
                }
                for item in proposal.suggestions
            ]
        )
        return (
            proposal.title,
            to_db_time(proposal.start_time),
            to_db_time(proposal.end_time),
            proposal.duration_minutes,
            proposal.location,
            proposal.status.value,
            details.kind,
            meeting_type,
            suggested,
            description,
            proposal.proposer_attendance.value,
            proposal.invitee_attendance.value,
            suggestions,
            (proposal.created_at or datetime.now(timezone.utc)).isoformat(),
            proposal.accepted_at.isoformat() if proposal.accepted_at else None,
        )

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Summary: Context manager for SQLite connections.

        Importance: Ensures connections are closed and driver errors surface as store failures.
        Alternatives: Keep a single long-lived connection.
        """

        connection = sqlite3.connect(self._db_path)
        try:
            yield connection
        except sqlite3.DatabaseError as exc:
            raise ExternalServiceError(f"Storage failure: {exc}") from exc
        finally:
            connection.close()


_PROPOSAL_FIELDS = (
    "id, proposer_id, invitee_id, title, start_time, duration_minutes, location, status, kind, "
    "meeting_type, suggested_locations, description, proposer_attendance, invitee_attendance, "
    "suggestions, created_at, accepted_at"
)

_INVITATION_FIELDS = "id, inviter_id, invitee_email, code, created_at, expires_at, status"

_RELATIONSHIP_FIELDS = (
    "id, user_id, friend_id, status, note, created_at, accepted_at, preferred_time, "
    "common_locations, meeting_count, last_meeting_type"
)


def _row_to_proposal(row: tuple[Any, ...]) -> MeetingProposal:
    if row[8] == FriendMeetingDetails.kind:
        details = FriendMeetingDetails(
            meeting_type=MeetingType(row[9] or MeetingType.OTHER.value),
            suggested_locations=tuple(json.loads(row[10] or "[]")),
        )
    else:
        details = GeneralMeetingDetails(description=row[11])
    suggestions = [
        Suggestion(
            by=item["by"],
            time=from_db_time(item["time"]),
            location=item["location"],
            at=datetime.fromisoformat(item["at"]),
        )
        for item in json.loads(row[14] or "[]")
    ]
    return MeetingProposal(
        id=row[0],
        proposer_id=row[1],
        invitee_id=row[2],
        title=row[3],
        start_time=datetime.fromisoformat(row[4]),
        duration_minutes=row[5],
        location=row[6],
        status=ProposalStatus(row[7]),
        details=details,
        proposer_attendance=AttendanceStatus(row[12]),
        invitee_attendance=AttendanceStatus(row[13]),
        suggestions=suggestions,
        created_at=from_db_time(row[15]),
        accepted_at=from_db_time(row[16]),
    )


def _pattern_columns(pattern: LearnedPattern) -> tuple[Any, ...]:
    return (
        pattern.preferred_time.value if pattern.preferred_time else None,
        json.dumps(pattern.locations),
        pattern.meeting_count,
        pattern.last_meeting_type.value if pattern.last_meeting_type else None,
    )


def _row_to_relationship(row: tuple[Any, ...]) -> Relationship:
    return Relationship(
        id=row[0],
        user_id=row[1],
        friend_id=row[2],
        status=RelationshipStatus(row[3]),
        note=row[4],
        created_at=datetime.fromisoformat(row[5]),
        accepted_at=from_db_time(row[6]),
        pattern=LearnedPattern(
            preferred_time=TimeOfDay(row[7]) if row[7] else None,
            locations=list(json.loads(row[8] or "[]")),
            meeting_count=row[9],
            last_meeting_type=MeetingType(row[10]) if row[10] else None,
        ),
    )


def _row_to_invitation(row: tuple[Any, ...]) -> InvitationToken:
    return InvitationToken(
        id=row[0],
        inviter_id=row[1],
        invitee_email=row[2],
        code=row[3],
        created_at=datetime.fromisoformat(row[4]),
        expires_at=datetime.fromisoformat(row[5]),
        status=InvitationStatus(row[6]),
    )
