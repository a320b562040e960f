# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for the HTTP and WebSocket API.

The app runs its real lifespan against a SQLite database file. Fixture
data is written with a synchronous session before the client starts.
"""

from collections.abc import Generator
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from starlette.websockets import WebSocketDisconnect

from src.api.app import create_app
from src.core.config import get_settings
from src.domains.auth.jwt import JWTManager
from src.infrastructure.database.models import Episode, Learner, Program, Question, Quiz

pytestmark = pytest.mark.integration


@pytest.fixture
def seeded(create_schema, sync_database_url: str) -> dict[str, Any]:
    """Write a learner, a peer, an admin and a small program."""
    engine = create_engine(sync_database_url)
    with Session(engine, expire_on_commit=False) as session:
        learner = Learner(name="Ada Learner", email="ada@questlms.dev", role="STUDENT")
        peer = Learner(name="Bo Learner", email="bo@questlms.dev", role="STUDENT")
        admin = Learner(name="Cy Admin", email="cy@questlms.dev", role="ADMIN")
        program = Program(title="Orbital Mechanics", reward_points=1200)
        session.add_all([learner, peer, admin, program])
        session.flush()

        episodes = [
            Episode(program_id=program.id, title="Kepler", order=1),
            Episode(program_id=program.id, title="Hohmann", order=2),
        ]
        quiz = Quiz(program_id=program.id)
        quiz.questions = [
            Question(text="2 + 2?", options=["3", "4"], answer=1, order=0),
            Question(text="Red?", options=["yes", "no"], answer=0, order=1),
        ]
        session.add_all([*episodes, quiz])
        session.commit()

        data = {
            "learner": learner.id,
            "peer": peer.id,
            "admin": admin.id,
            "program": program.id,
            "episodes": [e.id for e in episodes],
            "quiz": quiz.id,
        }
    engine.dispose()
    return data


@pytest.fixture
def client(app_settings_env, seeded) -> Generator[TestClient, None, None]:
    """Test client with the lifespan running."""
    with TestClient(create_app()) as test_client:
        yield test_client


@pytest.fixture
def tokens(app_settings_env, seeded) -> dict[str, str]:
    """Access tokens for the seeded accounts."""
    manager = JWTManager(get_settings().jwt)
    return {
        "learner": manager.create_access_token(seeded["learner"], role="STUDENT", name="Ada Learner"),
        "peer": manager.create_access_token(seeded["peer"], role="STUDENT", name="Bo Learner"),
        "admin": manager.create_access_token(seeded["admin"], role="ADMIN", name="Cy Admin"),
    }


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class TestHealth:
    """Health endpoints are public."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["components"]["database"]["status"] == "healthy"
        assert body["components"]["redis"] is None

    def test_readiness(self, client):
        response = client.get("/health/ready")

        assert response.json()["ready"] is True


class TestAuthorization:
    """Authentication and role checks."""

    def test_missing_token(self, client):
        response = client.get("/api/v1/enrollments")

        assert response.status_code == 401
        assert response.json() == {"error": "unauthorized", "detail": "Not authenticated"}

    def test_invalid_token(self, client):
        response = client.get("/api/v1/enrollments", headers=_auth("not-a-jwt"))

        assert response.status_code == 401

    def test_students_cannot_reach_admin_endpoints(self, client, tokens, seeded):
        response = client.get(
            "/api/v1/admin/stats",
            params={"programId": seeded["program"]},
            headers=_auth(tokens["learner"]),
        )

        assert response.status_code == 403
        assert response.json()["error"] == "forbidden"

    def test_validation_errors_are_invalid_input(self, client, tokens):
        response = client.post("/api/v1/quiz/submit", json={"answers": [0]}, headers=_auth(tokens["learner"]))

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_input"


class TestLearningJourney:
    """Enroll, watch, pass and claim over HTTP."""

    def test_full_journey(self, client, tokens, seeded):
        headers = _auth(tokens["learner"])
        program = seeded["program"]

        enrolled = client.post("/api/v1/enrollments", json={"programId": program}, headers=headers)
        assert enrolled.status_code == 201
        assert enrolled.json()["progress"] == 0

        early = client.post("/api/v1/rewards/claim", json={"programId": program}, headers=headers)
        assert early.status_code == 412
        assert early.json()["error"] == "precondition_failed"

        for expected, episode in zip([33, 67], seeded["episodes"]):
            step = client.post("/api/v1/episodes/complete", json={"episodeId": episode}, headers=headers)
            assert step.status_code == 200
            assert step.json()["enrollment"]["progress"] == expected

        episodes = client.get("/api/v1/episodes", params={"programId": program}, headers=headers).json()
        assert [e["completed"] for e in episodes["items"]] == [True, True]

        quiz = client.get("/api/v1/quiz", params={"programId": program}, headers=headers).json()
        assert quiz["id"] == seeded["quiz"]
        assert all("answer" not in q for q in quiz["questions"])

        mismatch = client.post(
            "/api/v1/quiz/submit",
            json={"quizId": seeded["quiz"], "answers": [1]},
            headers=headers,
        )
        assert mismatch.status_code == 400
        assert mismatch.json()["details"] == {"expected": 2, "received": 1}

        graded = client.post(
            "/api/v1/quiz/submit",
            json={"quizId": seeded["quiz"], "answers": [1, 0]},
            headers=headers,
        ).json()
        assert graded["passed"] is True
        assert graded["enrollment"]["completed"] is True
        assert graded["enrollment"]["claimable"] is True

        claim = client.post("/api/v1/rewards/claim", json={"programId": program}, headers=headers)
        assert claim.status_code == 200
        assert claim.json() == {
            "programId": program,
            "rewardPoints": 1200,
            "xpPoints": 1200,
            "level": 2,
            "previousLevel": 1,
            "leveledUp": True,
        }

        again = client.post("/api/v1/rewards/claim", json={"programId": program}, headers=headers)
        assert again.status_code == 412

        me = client.get("/api/v1/rewards/me", headers=headers).json()
        assert me["xpPoints"] == 1200
        assert me["level"] == 2
        assert me["nextLevelXp"] == 2000

    def test_unenroll_twice(self, client, tokens, seeded):
        headers = _auth(tokens["learner"])
        program = seeded["program"]
        client.post("/api/v1/enrollments", json={"programId": program}, headers=headers)

        assert client.delete(f"/api/v1/enrollments/{program}", headers=headers).status_code == 204
        assert client.delete(f"/api/v1/enrollments/{program}", headers=headers).status_code == 412
        assert client.get(f"/api/v1/enrollments/{program}", headers=headers).status_code == 412

    def test_unknown_program(self, client, tokens):
        response = client.post(
            "/api/v1/enrollments",
            json={"programId": "missing"},
            headers=_auth(tokens["learner"]),
        )

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"


class TestAdmin:
    """Admin dashboard endpoints."""

    def test_override_participants_and_stats(self, client, tokens, seeded):
        program = seeded["program"]
        client.post("/api/v1/enrollments", json={"programId": program}, headers=_auth(tokens["learner"]))
        admin = _auth(tokens["admin"])

        override = client.patch(
            "/api/v1/enrollments/progress",
            json={"learnerId": seeded["learner"], "programId": program, "progress": 100},
            headers=admin,
        )
        assert override.status_code == 200
        assert override.json()["completed"] is True

        participants = client.get("/api/v1/admin/participants", params={"programId": program}, headers=admin)
        assert participants.json()["total"] == 1
        assert participants.json()["items"][0]["email"] == "ada@questlms.dev"

        stats = client.get("/api/v1/admin/stats", params={"programId": program}, headers=admin).json()
        assert stats == {
            "programId": program,
            "totalEnrolled": 1,
            "completionRate": 100,
            "avgScore": 0,
            "activeToday": 0,
        }

        removed = client.request(
            "DELETE",
            "/api/v1/admin/participants",
            json={"learnerId": seeded["learner"], "programId": program},
            headers=admin,
        )
        assert removed.status_code == 204


class TestDiscussionREST:
    """Discussion endpoints."""

    def test_post_like_list_and_clear(self, client, tokens, seeded):
        program = seeded["program"]
        learner = _auth(tokens["learner"])

        posted = client.post(
            "/api/v1/discussion",
            json={"programId": program, "message": "  Hi all "},
            headers=learner,
        )
        assert posted.status_code == 201
        record = posted.json()
        assert record["message"] == "Hi all"
        assert record["user"]["name"] == "Ada Learner"

        liked = client.post(f"/api/v1/discussion/{record['id']}/like", headers=_auth(tokens["peer"]))
        assert liked.json() == {"id": record["id"], "likes": 1}

        listed = client.get("/api/v1/discussion", params={"programId": program}, headers=learner).json()
        assert listed["total"] == 1
        assert listed["items"][0]["likes"] == 1

        assert client.delete("/api/v1/discussion", params={"programId": program}, headers=learner).status_code == 403
        cleared = client.delete("/api/v1/discussion", params={"programId": program}, headers=_auth(tokens["admin"]))
        assert cleared.json() == {"programId": program, "deleted": 1}

    def test_blank_message_rejected(self, client, tokens, seeded):
        response = client.post(
            "/api/v1/discussion",
            json={"programId": seeded["program"], "message": "   "},
            headers=_auth(tokens["learner"]),
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Message is required"

    def test_like_unknown_message(self, client, tokens):
        response = client.post("/api/v1/discussion/missing/like", headers=_auth(tokens["learner"]))

        assert response.status_code == 404


class TestDiscussionSocket:
    """Live room relay over WebSocket."""

    def _connect(self, client: TestClient, token: str):
        return client.websocket_connect(f"/api/v1/discussion/ws?token={token}")

    def _sync(self, ws) -> None:
        """Wait until every frame sent so far has been processed."""
        ws.send_json({"event": "ping"})
        assert ws.receive_json()["event"] == "pong"

    def test_rejects_bad_token(self, client):
        with self._connect(client, "garbage") as ws:
            error = ws.receive_json()
            assert error["event"] == "error"
            assert error["data"]["code"] == "AUTH_FAILED"
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_json()

        assert exc_info.value.code == 1008

    def test_relays_to_other_members_only(self, client, tokens, seeded):
        program = seeded["program"]

        with self._connect(client, tokens["learner"]) as sender, self._connect(client, tokens["peer"]) as peer:
            hello = sender.receive_json()
            assert hello["event"] == "connected"
            assert hello["data"]["learnerId"] == seeded["learner"]
            assert peer.receive_json()["event"] == "connected"

            for ws in (sender, peer):
                ws.send_json({"event": "join-program", "data": program})
                self._sync(ws)

            record = client.post(
                "/api/v1/discussion",
                json={"programId": program, "message": "Hello room"},
                headers=_auth(tokens["learner"]),
            ).json()
            sender.send_json({"event": "new-message", "data": record})

            relayed = peer.receive_json()
            assert relayed == {"event": "message", "data": record}

            sender.send_json({"event": "like-message", "data": {"messageId": record["id"], "programId": program}})
            assert peer.receive_json() == {"event": "message-liked", "data": {"messageId": record["id"]}}

            # The sender's next frame is its own pong, not an echo
            self._sync(sender)

    def test_unknown_event_and_bad_frame(self, client, tokens):
        with self._connect(client, tokens["learner"]) as ws:
            ws.receive_json()

            ws.send_json({"event": "shout", "data": {}})
            assert ws.receive_json()["data"]["code"] == "UNKNOWN_EVENT"

            ws.send_text("not json")
            assert ws.receive_json()["data"]["code"] == "INVALID_FRAME"

    def test_binary_frame_is_rejected_and_socket_stays_open(self, client, tokens):
        with self._connect(client, tokens["learner"]) as ws:
            ws.receive_json()

            ws.send_bytes(b'{"event": "ping"}')
            error = ws.receive_json()
            assert error["event"] == "error"
            assert error["data"]["code"] == "INVALID_FRAME"

            self._sync(ws)
