from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

from examprep.app import create_app
from examprep.dependencies import build_services


def lesson_payload() -> dict[str, object]:
    return {
        "lessonId": 7,
        "lessonName": "Birinchi dars",
        "nameOz": "Биринчи дарс",
        "questions": [
            {
                "questionId": question_id,
                "photo": "photos/sign.png" if question_id == 1 else None,
                "questionText": {"uz": f"Savol {question_id}", "oz": f"Савол {question_id}"},
                "answers": {"status": 1, "answerText": {"uz": ["Ha", "Yo'q"], "oz": ["Ҳа", "Йўқ"]}},
            }
            for question_id in (1, 2)
        ],
    }


def random_payload() -> dict[str, object]:
    return {
        "questions": [
            {
                "questionId": 300 + index,
                "questionText": "Savol",
                "variants": [
                    {"variantId": 1, "isCorrect": True, "text": "Ha"},
                    {"variantId": 2, "isCorrect": False, "text": "Yo'q"},
                ],
            }
            for index in range(5)
        ]
    }


@pytest.fixture
def client(tmp_path: Path, scheduler, png_bytes: bytes):
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/api/v1/lesson/7":
            return httpx.Response(200, json=lesson_payload())
        if path == "/api/v1/lesson":
            return httpx.Response(503, text="maintenance")
        if path == "/api/v1/random-quiz":
            return httpx.Response(200, json=random_payload())
        if path == "/api/v1/storage/file":
            return httpx.Response(200, content=png_bytes)
        return httpx.Response(404)

    services = build_services(
        base_url="https://api.example.test",
        token_provider=lambda: "token",
        transport=httpx.MockTransport(handler),
        image_dir=tmp_path / "images",
        scheduler=scheduler,
    )
    with TestClient(create_app(services)) as test_client:
        yield test_client


def test_lesson_session_flow(client: TestClient, scheduler) -> None:
    created = client.post("/api/sessions", json={"kind": "lesson", "lessonId": 7, "language": "cyr"})
    assert created.status_code == 200
    state = created.json()
    assert state["phase"] == "ready"
    assert state["locale"] == "oz"
    assert state["title"] == "Биринчи дарс"
    assert state["question"]["text"] == "Савол 1"
    assert state["question"]["correctOption"] is None
    assert state["timeRemainingText"] == "02:24"
    session_id = state["sessionId"]

    answered = client.post(f"/api/sessions/{session_id}/answer", json={"optionIndex": 0}).json()
    assert answered["recorded"] is True
    assert answered["phase"] == "advancing"
    assert answered["score"] == 1
    assert answered["question"]["correctOption"] == 0

    again = client.post(f"/api/sessions/{session_id}/answer", json={"optionIndex": 1}).json()
    assert again["recorded"] is False
    assert again["score"] == 1

    jumped = client.post(f"/api/sessions/{session_id}/jump", json={"index": 1}).json()
    assert jumped["currentIndex"] == 1
    assert jumped["phase"] == "ready"

    finished = client.post(f"/api/sessions/{session_id}/expire").json()
    assert finished["phase"] == "finished"
    assert finished["results"] == {
        "totalQuestions": 2,
        "correctAnswers": 1,
        "incorrectAnswers": 1,
        "percentage": 50,
        "passed": False,
    }

    retried = client.post(f"/api/sessions/{session_id}/retry").json()
    assert retried["phase"] == "ready"
    assert retried["submission"] == "idle"
    assert retried["answers"] == {}


def test_invalid_requests(client: TestClient) -> None:
    assert client.get("/api/sessions/unknown").status_code == 404
    assert client.post("/api/sessions", json={"kind": "lesson"}).status_code == 400
    assert client.post("/api/sessions", json={"kind": "random", "questionCount": 3}).status_code == 400

    session_id = client.post("/api/sessions", json={"kind": "lesson", "lessonId": 7}).json()["sessionId"]
    assert client.post(f"/api/sessions/{session_id}/jump", json={"index": 9}).status_code == 400
    assert client.post(f"/api/sessions/{session_id}/answer", json={"optionIndex": 5}).status_code == 400
    assert client.post(f"/api/sessions/{session_id}/start", json={"questionCount": 10}).status_code == 409


def test_random_session_chooses_count(client: TestClient) -> None:
    state = client.post("/api/sessions", json={"kind": "random"}).json()
    assert state["phase"] == "choosing-count"
    session_id = state["sessionId"]

    assert client.post(f"/api/sessions/{session_id}/start", json={"questionCount": 4}).status_code == 400

    started = client.post(f"/api/sessions/{session_id}/start", json={"questionCount": 5}).json()
    assert started["phase"] == "ready"
    assert started["totalQuestions"] == 5
    assert started["lessonId"] == 43


def test_locale_change_keeps_answers(client: TestClient) -> None:
    session_id = client.post("/api/sessions", json={"kind": "lesson", "lessonId": 7}).json()["sessionId"]
    client.post(f"/api/sessions/{session_id}/answer", json={"optionIndex": 0})

    changed = client.put(f"/api/sessions/{session_id}/locale", json={"language": "cyr"}).json()

    assert changed["refetched"] is True
    assert changed["locale"] == "oz"
    assert changed["score"] == 1
    assert changed["question"]["text"] == "Савол 1"


def test_question_image_and_teardown(client: TestClient, tmp_path: Path) -> None:
    session_id = client.post("/api/sessions", json={"kind": "lesson", "lessonId": 7}).json()["sessionId"]

    image = client.get(f"/api/sessions/{session_id}/image")
    assert image.status_code == 200
    assert len(list((tmp_path / "images").iterdir())) == 1

    assert client.get(f"/api/sessions/{session_id}/image", params={"index": 1}).status_code == 204

    assert client.delete(f"/api/sessions/{session_id}").status_code == 200
    assert list((tmp_path / "images").iterdir()) == []
    assert client.delete(f"/api/sessions/{session_id}").status_code == 404


def test_lessons_upstream_failure_and_pagination(client: TestClient) -> None:
    assert client.get("/api/lessons").status_code == 502

    window = client.get("/api/pagination", params={"totalPages": 20, "currentPage": 9}).json()
    assert window == {"visible": True, "pages": [0, "ellipsis", 8, 9, 10, "ellipsis", 19]}

    hidden = client.get(
        "/api/pagination", params={"totalPages": 1, "totalElements": 5, "pageSize": 10}
    ).json()
    assert hidden == {"visible": False, "pages": []}

    assert client.get("/api/health").json() == {"status": "ok", "sessions": 0}
