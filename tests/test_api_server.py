from __future__ import annotations

from datetime import timedelta

from fastapi.testclient import TestClient
import pytest

from quiz_attempts.server.api_server import create_api_app

from conftest import T0


@pytest.fixture
def client(manager) -> TestClient:
    return TestClient(create_api_app(manager))


def _create_manual_quiz(client: TestClient, duration: int = 30) -> int:
    response = client.post(
        "/quizzes",
        json={"title": "Practice", "mode": "manual", "duration_minutes": duration},
    )
    assert response.status_code == 201
    return response.json()["id"]


def test_attempt_lifecycle_over_http(client, clock):
    quiz_id = _create_manual_quiz(client)
    created = client.post(f"/quizzes/{quiz_id}/attempts", json={"email": "ana@example.com", "nij": "N-1"})
    assert created.status_code == 201
    attempt = created.json()
    assert attempt["effective_end"] == (T0 + timedelta(minutes=30)).isoformat()

    clock.advance(minutes=40)
    assert client.get(f"/attempts/{attempt['id']}/status").json()["status"] == "expired"

    submitted = client.post(
        f"/attempts/{attempt['id']}/submit",
        json={"total_questions": 10, "correct_answers": 7},
    )
    assert submitted.status_code == 200
    assert submitted.json()["incorrect_answers"] == 3
    assert client.get(f"/attempts/{attempt['id']}").json()["status"] == "completed"


def test_duplicate_email_is_a_conflict(client):
    quiz_id = _create_manual_quiz(client)
    payload = {"email": "ana@example.com", "nij": "N-1"}
    assert client.post(f"/quizzes/{quiz_id}/attempts", json=payload).status_code == 201
    response = client.post(f"/quizzes/{quiz_id}/attempts", json=payload)
    assert response.status_code == 409
    assert response.json()["code"] == "DuplicateEmail"


def test_closed_scheduled_quiz_rejects_attempt(client):
    response = client.post(
        "/quizzes",
        json={
            "title": "Early",
            "start_at": (T0 - timedelta(hours=3)).isoformat(),
            "end_at": (T0 - timedelta(hours=1)).isoformat(),
        },
    )
    assert response.json()["mode"] == "scheduled"
    quiz_id = response.json()["id"]
    attempt = client.post(f"/quizzes/{quiz_id}/attempts", json={"email": "late@example.com", "nij": "N"})
    assert attempt.status_code == 422
    assert attempt.json()["code"] == "InvalidWindow"


def test_mode_change_after_attempt_is_locked(client):
    quiz_id = _create_manual_quiz(client)
    client.post(f"/quizzes/{quiz_id}/attempts", json={"email": "ana@example.com", "nij": "N-1"})
    response = client.patch(f"/quizzes/{quiz_id}", json={"duration_minutes": 90})
    assert response.status_code == 409
    assert response.json()["code"] == "ModeLocked"


def test_invalid_score_input(client):
    quiz_id = _create_manual_quiz(client)
    attempt_id = client.post(
        f"/quizzes/{quiz_id}/attempts", json={"email": "ana@example.com", "nij": "N-1"}
    ).json()["id"]
    response = client.post(
        f"/attempts/{attempt_id}/submit",
        json={"total_questions": 5, "correct_answers": 7},
    )
    assert response.status_code == 422
    assert response.json()["code"] == "InvalidScoreInput"
    assert client.get(f"/attempts/{attempt_id}/status").json()["status"] == "in_progress"


def test_window_and_not_found(client):
    quiz_id = _create_manual_quiz(client, duration=15)
    window = client.get(f"/quizzes/{quiz_id}/window", params={"attempt_start": T0.isoformat()})
    assert window.json() == {
        "start": T0.isoformat(),
        "end": (T0 + timedelta(minutes=15)).isoformat(),
    }
    missing = client.get("/attempts/404/status")
    assert missing.status_code == 404
    assert missing.json()["code"] == "AttemptNotFound"


def test_scoring_rejects_retired_fields(client):
    quiz_id = _create_manual_quiz(client)
    ok = client.put(f"/quizzes/{quiz_id}/scoring", json={"points": 2})
    assert ok.json()["points"] == 2
    retired = client.put(f"/quizzes/{quiz_id}/scoring", json={"time_bonus_per_second": 1.5})
    assert retired.status_code == 422
    assert retired.json()["code"] == "InvalidScoringConfig"


def test_list_and_backfill(client):
    quiz_id = _create_manual_quiz(client)
    client.post(f"/quizzes/{quiz_id}/attempts", json={"email": "a@example.com", "nij": "N"})
    client.post(f"/quizzes/{quiz_id}/attempts", json={"email": "b@example.com", "nij": "N"})
    listed = client.get("/attempts", params={"quiz_id": quiz_id, "status": "in_progress"})
    assert [a["email"] for a in listed.json()] == ["a@example.com", "b@example.com"]
    report = client.post("/attempts/backfill").json()
    assert report == {"updated": [], "unchanged": [1, 2], "rejected": []}


def test_assignment(client):
    quiz_id = _create_manual_quiz(client)
    response = client.post(
        "/assignments",
        json={"user_email": "ana@example.com", "quiz_id": quiz_id, "assigned_by": "admin"},
    )
    assert response.status_code == 201
    assert response.json()["notes"] == ""


def test_patch_cannot_null_required_quiz_fields(client):
    quiz_id = _create_manual_quiz(client)
    response = client.patch(f"/quizzes/{quiz_id}", json={"title": None, "passing_score": None})
    assert response.status_code == 422
    blank = client.patch(f"/quizzes/{quiz_id}", json={"title": "   "})
    assert blank.status_code == 422
    quiz = client.get(f"/quizzes/{quiz_id}").json()
    assert quiz["title"] == "Practice"
    assert quiz["passing_score"] == 70


def test_scoring_rejects_null_points(client):
    quiz_id = _create_manual_quiz(client)
    client.put(f"/quizzes/{quiz_id}/scoring", json={"points": 2})
    response = client.put(f"/quizzes/{quiz_id}/scoring", json={"points": None})
    assert response.status_code == 422
    assert response.json()["code"] == "InvalidScoringConfig"
    assert client.put(f"/quizzes/{quiz_id}/scoring", json={}).json()["points"] == 2
