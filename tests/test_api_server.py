from fastapi.testclient import TestClient
import pytest

from proctor_quiz.core.quiz_manager import QuizManager
from proctor_quiz.server.api_server import create_api_app

from conftest import FakeCamera


@pytest.fixture
def client(manager):
    with TestClient(create_api_app(manager)) as test_client:
        yield test_client


def _create(client, **overrides):
    payload = {"topic": "python", "difficulty": "easy", "count": 3}
    payload.update(overrides)
    response = client.post("/sessions", json=payload)
    assert response.status_code == 201
    return response.json()


def test_student_page_is_served(client):
    response = client.get("/")

    assert response.status_code == 200
    assert "visibilitychange" in response.text


def test_created_session_hides_correct_answers(client):
    body = _create(client)

    assert body["state"] == "created"
    assert body["question_count"] == 3
    assert all(question["correct_option"] is None for question in body["questions"])
    assert body["current_question"]["question_html"].startswith("<p>")
    assert body["current_question"]["options_html"] == ["a0", "b0", "c0", "d0"]


def test_invalid_create_payloads_are_rejected(client):
    assert client.post("/sessions", json={"topic": "python", "count": 0}).status_code == 422
    assert client.post("/sessions", json={"topic": "   "}).status_code == 422


def test_unknown_session_is_404(client):
    assert client.get("/sessions/unknown").status_code == 404
    assert client.post("/sessions/unknown/open").status_code == 404
    assert client.delete("/sessions/unknown").status_code == 404


def test_full_attempt_over_http(client):
    session_id = _create(client)["id"]
    opened = client.post(f"/sessions/{session_id}/open").json()
    assert opened["state"] == "in_progress"
    assert opened["is_open"]

    first = opened["current_question"]["id"]
    answered = client.post(f"/sessions/{session_id}/answer", json={"question_id": first, "value": "a0"}).json()
    assert answered["questions"][0]["user_answer"] == "a0"
    assert client.post(
        f"/sessions/{session_id}/answer", json={"question_id": "nope", "value": "x"}
    ).status_code == 422

    moved = client.post(f"/sessions/{session_id}/navigate", json={"action": "goto", "index": 2}).json()
    assert moved["current_question_index"] == 2
    assert client.post(f"/sessions/{session_id}/navigate", json={"action": "goto"}).status_code == 422

    submitted = client.post(f"/sessions/{session_id}/submit").json()
    assert submitted["termination_reason"] == "completed"
    assert submitted["score"] == 1
    assert submitted["questions"][0]["correct_option"] == "a0"
    assert not submitted["is_open"]

    listed = client.get("/sessions").json()
    assert [item["id"] for item in listed] == [session_id]
    assert client.delete("/sessions/completed").json() == {"removed": [session_id]}


def test_signals_flag_and_terminate(client):
    session_id = _create(client)["id"]
    client.post(f"/sessions/{session_id}/open")

    copy = client.post(f"/sessions/{session_id}/signals", json={"kind": "copy"}).json()
    assert copy["suppress"]
    assert copy["event"] == "clipboard_copy"
    assert copy["flag_count"] == 1

    fullscreen = client.post(f"/sessions/{session_id}/signals", json={"kind": "fullscreen_exit"}).json()
    assert fullscreen["event"] is None
    assert fullscreen["flag_count"] == 1

    notices = client.get(f"/sessions/{session_id}/notices").json()
    warning = notices[0]
    assert warning["level"] == "warning"
    assert client.post(f"/sessions/{session_id}/notices/{warning['id']}/dismiss").json() == {"dismissed": True}

    client.post(f"/sessions/{session_id}/signals", json={"kind": "visibility_hidden"})
    last = client.post(f"/sessions/{session_id}/signals", json={"kind": "context_menu"}).json()

    assert last["completed"]
    assert last["termination_reason"] == "cheating"
    levels = [notice["level"] for notice in client.get(f"/sessions/{session_id}/notices").json()]
    assert levels[-1] == "termination"
    assert client.post(f"/sessions/{session_id}/signals", json={"kind": "bogus"}).status_code == 422


def test_blocking_notice_cannot_be_dismissed(generator, persistence, settings, connectivity, clock):
    manager = QuizManager(
        generator, persistence, FakeCamera(denied=True), settings=settings, connectivity=connectivity, clock=clock
    )
    with TestClient(create_api_app(manager)) as client:
        session_id = _create(client)["id"]
        opened = client.post(f"/sessions/{session_id}/open").json()

        assert opened["state"] == "created"
        notice = opened["notices"][0]
        assert notice["level"] == "blocking"
        assert notice["action"] == "retry"
        assert client.post(f"/sessions/{session_id}/notices/{notice['id']}/dismiss").status_code == 409


def test_connectivity_reports_trigger_sync(client, manager, persistence):
    session_id = _create(client)["id"]
    first = client.get(f"/sessions/{session_id}").json()["questions"][0]["id"]

    assert client.post("/connectivity", json={"online": False}).json() == {"online": False, "sync_scheduled": False}
    client.post(f"/sessions/{session_id}/answer", json={"question_id": first, "value": "b0"})
    assert manager.offline_buffer.has_pending(session_id)

    response = client.post("/connectivity", json={"online": True}).json()

    assert response["sync_scheduled"]
    client.get("/sessions")
    assert persistence.answers[session_id] == {first: "b0"}
