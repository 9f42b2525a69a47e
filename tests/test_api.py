"""Summary: API integration tests.

Importance: Validates FastAPI endpoints against core scheduling workflows.
Alternatives: Use manual curl testing only.
"""

from __future__ import annotations

from pathlib import Path

from fastapi.testclient import TestClient

from meetpilot.api import create_app
from meetpilot.config import AppConfig


def _build_config(db_path: str, api_key: str = "") -> AppConfig:
    """Summary: Build an AppConfig for API tests.

    Importance: Ensures tests use isolated storage.
    Alternatives: Load AppConfig from environment variables.
    """

    return AppConfig(
        db_path=db_path,
        api_host="127.0.0.1",
        api_port=8000,
        api_key=api_key,
        log_level="INFO",
        lock_timeout_seconds=5.0,
        sync_lock_timeout_seconds=60.0,
        external_call_pool_size=5,
        sync_debounce_ms=10,
        availability_window_days=7,
        default_duration_minutes=60,
        skip_weekends=True,
        preference_cache_ttl_seconds=300.0,
        default_locations=["Cafe One", "Cafe Two"],
        invitation_ttl_days=7,
        app_url="http://localhost:8000",
        meeting_keywords=["meeting", "coffee"],
    )


def _befriend(client: TestClient) -> tuple[int, int]:
    alice = client.post("/users", json={"display_name": "Alice", "email": "alice@example.com"}).json()["id"]
    bob = client.post("/users", json={"display_name": "Bob", "email": "bob@example.com"}).json()["id"]
    request = client.post(
        "/friends/requests", json={"email": "bob@example.com"}, headers={"X-User-Id": str(alice)}
    )
    assert request.status_code == 200
    assert request.json()["invited"] is False
    accepted = client.post(
        f"/friends/{request.json()['id']}/respond",
        json={"action": "accept"},
        headers={"X-User-Id": str(bob)},
    )
    assert accepted.status_code == 200
    assert accepted.json()["status"] == "accepted"
    return alice, bob


def test_health(tmp_path: Path) -> None:
    with TestClient(create_app(_build_config(str(tmp_path / "test.db")))) as client:
        assert client.get("/health").json() == {"status": "ok"}


def test_api_key_is_enforced_when_configured(tmp_path: Path) -> None:
    config = _build_config(str(tmp_path / "test.db"), api_key="secret")
    with TestClient(create_app(config)) as client:
        payload = {"display_name": "Alice", "email": "alice@example.com"}
        assert client.post("/users", json=payload).status_code == 401
        response = client.post("/users", json=payload, headers={"X-API-Key": "secret"})
        assert response.status_code == 200


def test_availability_and_proposal_flow(tmp_path: Path) -> None:
    """Summary: Search, propose, counter, and accept over HTTP.

    Importance: Confirms the HTTP layer wires into the scheduling services.
    Alternatives: Validate only the service layer.
    """

    with TestClient(create_app(_build_config(str(tmp_path / "test.db")))) as client:
        alice, bob = _befriend(client)
        busy = client.post(
            "/events",
            json={
                "title": "Dentist",
                "start_time": "2030-01-07T14:00:00+00:00",
                "end_time": "2030-01-07T15:00:00+00:00",
            },
            headers={"X-User-Id": str(alice)},
        )
        assert busy.status_code == 200

        availability = client.get(
            "/availability",
            params={
                "friend_id": bob,
                "start": "2030-01-07T09:00:00+00:00",
                "end": "2030-01-07T18:00:00+00:00",
            },
            headers={"X-User-Id": str(alice)},
        )
        assert availability.status_code == 200
        body = availability.json()
        hours = [slot["start"][11:13] for slot in body["available"]]
        assert hours == ["09", "10", "11", "13", "15", "16", "17"]
        assert body["total_available"] == 7
        assert len(body["recommended"]) == 3

        created = client.post(
            "/proposals",
            json={"invitee_id": bob, "start_time": "2030-01-07T15:00:00+00:00"},
            headers={"X-User-Id": str(alice)},
        )
        assert created.status_code == 200
        proposal = created.json()
        assert proposal["status"] == "pending"
        assert proposal["location"] == "Cafe One"
        assert proposal["details"]["kind"] == "friend_meeting"

        forbidden = client.post(
            f"/proposals/{proposal['id']}/respond",
            json={"action": "accept"},
            headers={"X-User-Id": str(alice)},
        )
        assert forbidden.status_code == 403
        assert forbidden.json()["error"] == "FORBIDDEN"

        countered = client.post(
            f"/proposals/{proposal['id']}/respond",
            json={"action": "suggest", "alternative_time": "2030-01-07T16:00:00+00:00"},
            headers={"X-User-Id": str(bob)},
        )
        assert countered.json()["status"] == "negotiating"

        accepted = client.post(
            f"/proposals/{proposal['id']}/respond",
            json={"action": "accept"},
            headers={"X-User-Id": str(bob)},
        )
        assert accepted.status_code == 200
        assert accepted.json()["status"] == "confirmed"
        assert accepted.json()["start_time"] == "2030-01-07T16:00:00+00:00"

        again = client.post(
            f"/proposals/{proposal['id']}/respond",
            json={"action": "accept"},
            headers={"X-User-Id": str(bob)},
        )
        assert again.status_code == 409
        assert again.json()["reason"] == "INVALID_TRANSITION"

        listed = client.get("/proposals", params={"status": "confirmed"}, headers={"X-User-Id": str(bob)})
        assert [item["id"] for item in listed.json()] == [proposal["id"]]

        friends = client.get("/friends", headers={"X-User-Id": str(alice)}).json()
        assert all(item["meeting_count"] == 1 for item in friends)


def test_duplicate_friend_request_conflicts(tmp_path: Path) -> None:
    with TestClient(create_app(_build_config(str(tmp_path / "test.db")))) as client:
        alice, bob = _befriend(client)
        response = client.post(
            "/friends/requests", json={"email": "alice@example.com"}, headers={"X-User-Id": str(bob)}
        )
        assert response.status_code == 409
        assert response.json() == {
            "error": "CONFLICT",
            "reason": "ALREADY_FRIENDS",
            "detail": "Already friends",
        }


def test_unknown_friend_email_returns_invitation(tmp_path: Path) -> None:
    with TestClient(create_app(_build_config(str(tmp_path / "test.db")))) as client:
        alice = client.post(
            "/users", json={"display_name": "Alice", "email": "alice@example.com"}
        ).json()["id"]
        response = client.post(
            "/friends/requests", json={"email": "new@example.com"}, headers={"X-User-Id": str(alice)}
        )
        assert response.status_code == 200
        assert response.json()["invited"] is True


def test_invitation_accept_route(tmp_path: Path) -> None:
    """Summary: An invited user redeems the emailed code over HTTP.

    Importance: Closes the invitation loop started by a request to an unknown email.
    Alternatives: Only support redemption from the CLI.
    """

    app = create_app(_build_config(str(tmp_path / "test.db")))
    with TestClient(app) as client:
        alice = client.post(
            "/users", json={"display_name": "Alice", "email": "alice@example.com"}
        ).json()["id"]
        client.post(
            "/friends/requests", json={"email": "new@example.com"}, headers={"X-User-Id": str(alice)}
        )
        code = app.state.services.store.list_invitations(alice)[0].code
        newcomer = client.post(
            "/users", json={"display_name": "New", "email": "new@example.com"}
        ).json()["id"]
        headers = {"X-User-Id": str(newcomer)}

        accepted = client.post("/invitations/accept", json={"code": code}, headers=headers)
        assert accepted.status_code == 200
        assert accepted.json()["status"] == "accepted"
        assert accepted.json()["friend_id"] == newcomer

        reused = client.post("/invitations/accept", json={"code": code}, headers=headers)
        assert reused.status_code == 409
        assert reused.json()["reason"] == "INVALID_TRANSITION"
        missing = client.post("/invitations/accept", json={"code": "nope"}, headers=headers)
        assert missing.status_code == 404


def test_availability_between_strangers_is_forbidden(tmp_path: Path) -> None:
    with TestClient(create_app(_build_config(str(tmp_path / "test.db")))) as client:
        alice = client.post(
            "/users", json={"display_name": "Alice", "email": "alice@example.com"}
        ).json()["id"]
        bob = client.post("/users", json={"display_name": "Bob", "email": "bob@example.com"}).json()["id"]
        response = client.get(
            "/availability", params={"friend_id": bob}, headers={"X-User-Id": str(alice)}
        )
        assert response.status_code == 403
        unknown = client.get("/availability", params={"friend_id": bob}, headers={"X-User-Id": "999"})
        assert unknown.status_code == 401


def test_profile_and_calendar_sync(tmp_path: Path) -> None:
    fixture = tmp_path / "events.json"
    fixture.write_text(
        """
        [
          {
            "provider_event_id": "evt-1",
            "title": "Team meeting",
            "start_time": "2030-01-07T10:00:00+00:00",
            "end_time": "2030-01-07T11:00:00+00:00"
          }
        ]
        """.strip(),
        encoding="utf-8",
    )
    with TestClient(create_app(_build_config(str(tmp_path / "test.db")))) as client:
        alice = client.post(
            "/users", json={"display_name": "Alice", "email": "alice@example.com"}
        ).json()["id"]
        headers = {"X-User-Id": str(alice)}
        profile = client.put(
            f"/users/{alice}/profile",
            json={"timezone": "Asia/Seoul", "work_start": "10:00", "work_end": "19:00"},
            headers=headers,
        )
        assert profile.status_code == 200
        assert profile.json()["work_start"] == "10:00"
        bad = client.put(f"/users/{alice}/profile", json={"timezone": "Nowhere/City"}, headers=headers)
        assert bad.status_code == 400
        assert bad.json()["error"] == "VALIDATION"

        synced = client.post(
            "/calendar/sync",
            json={
                "source": "mock",
                "path": str(fixture),
                "start": "2030-01-07T00:00:00+00:00",
                "end": "2030-01-08T00:00:00+00:00",
            },
            headers=headers,
        )
        assert synced.status_code == 200
        assert synced.json()["fetched"] == 1
        events = client.get("/events", headers=headers).json()
        assert events[0]["is_meeting"] is True
