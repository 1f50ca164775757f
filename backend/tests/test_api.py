import pytest
from fastapi.testclient import TestClient

from fakes import FakeEmbeddingProvider, InMemoryStore, MemoryFileStorage, make_llm
from licenseprep.core.config import Settings
from licenseprep.deps import build_services
from licenseprep.main import create_app
from licenseprep.services.throttle import NoThrottle

CRON_SECRET = "nightly-secret"


def question_payload(text, difficulty="easy", license_type="B"):
    return {
        "question_text": text,
        "options": ["A. 1 foot", "B. 2 feet", "C. 3 feet", "D. 4 feet"],
        "correct_answer": "B",
        "explanation": "Spoil piles stay at least 2 feet from the edge.",
        "difficulty": difficulty,
        "license_type": license_type,
        "topic_tags": ["Trenching"],
    }


@pytest.fixture
def services():
    settings = Settings(cron_secret=CRON_SECRET, openai_api_key="", voyage_api_key="")
    return build_services(
        settings,
        InMemoryStore(),
        files=MemoryFileStorage(),
        llm=make_llm("Studs are usually 16 inches on center."),
        embedding_provider=FakeEmbeddingProvider(),
        embed_throttle=NoThrottle(),
        generate_throttle=NoThrottle(),
    )


@pytest.fixture
def client(services):
    with TestClient(create_app(services=services)) as test_client:
        yield test_client


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy", "llm": True, "embeddings": True}


def test_chat_creates_session_for_signed_in_student(client):
    response = client.post(
        "/chat", json={"message": "How far apart are studs?", "student_id": "student-1"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["response"] == "Studs are usually 16 inches on center."
    assert body["sources"] == []
    assert body["session_id"]

    session = client.get(f"/chat/{body['session_id']}").json()
    assert session["title"] == "How far apart are studs?"
    assert [m["role"] for m in session["messages"]] == ["user", "assistant"]


def test_chat_errors(client):
    assert client.post("/chat", json={"message": "  "}).status_code == 400
    assert client.post("/chat", json={"message": "Hi?", "session_id": "nope"}).status_code == 404
    assert client.get("/chat/nope").status_code == 404


def test_daily_trigger_requires_secret(client):
    assert client.post("/challenges/daily").status_code == 401
    assert client.post("/challenges/daily", headers={"Authorization": "Bearer wrong"}).status_code == 401

    response = client.post("/challenges/daily", headers={"Authorization": f"Bearer {CRON_SECRET}"})
    assert response.status_code == 200
    assert response.json() == {"challenges": {"A": None, "B": None}}


def test_challenge_round_trip(client):
    """Admin questions feed the daily challenge that a student then answers."""
    for i, difficulty in enumerate(["easy", "easy", "medium", "medium", "hard"]):
        created = client.post("/questions", json=question_payload(f"Question {i}?", difficulty))
        assert created.status_code == 201
        assert created.json()["is_verified"] is True

    assert client.get("/challenges/today", params={"student_id": "s1"}).status_code == 404

    run = client.post("/challenges/daily", headers={"Authorization": f"Bearer {CRON_SECRET}"})
    assert run.json()["challenges"]["A"] is None
    challenge_id = run.json()["challenges"]["B"]

    today = client.get("/challenges/today", params={"student_id": "s1", "license_type": "B"}).json()
    assert today["challenge_id"] == challenge_id
    assert len(today["questions"]) == 5
    assert today["completed"] is False

    first = today["questions"][0]["id"]
    answer = client.post(
        "/challenges/respond",
        json={"student_id": "s1", "challenge_id": challenge_id, "question_id": first, "selected_answer": "B"},
    )
    assert answer.json() == {
        "is_correct": True,
        "explanation": "Spoil piles stay at least 2 feet from the edge.",
        "completed": False,
    }

    bad = client.post(
        "/challenges/respond",
        json={"student_id": "s1", "challenge_id": challenge_id, "question_id": first, "selected_answer": "Z"},
    )
    assert bad.status_code == 400


def test_question_review(client):
    created = client.post("/questions", json=question_payload("How deep?")).json()
    question_id = created["id"]

    listing = client.get("/questions", params={"status": "verified"}).json()
    assert listing["total"] == 1
    assert listing["has_more"] is False
    assert listing["questions"][0]["topic_tags"] == ["trenching"]

    patched = client.patch(f"/questions/{question_id}", json={"correct_answer": "c"})
    assert patched.json()["correct_answer"] == "C"
    assert client.patch(f"/questions/{question_id}", json={"options": ["A. one"]}).status_code == 400

    assert client.post(f"/questions/{question_id}/verify", json={"verifier": "x"}).status_code == 200
    assert client.post(f"/questions/{question_id}/regenerate").json() is None

    assert client.delete(f"/questions/{question_id}").status_code == 204
    assert client.delete(f"/questions/{question_id}").status_code == 404
    assert client.get("/questions", params={"status": "bogus"}).status_code == 400


def test_handout_processing(client, services):
    handout = services.store.add_handout(title="Trenching", file_path="trench.txt")
    services.files.files["trench.txt"] = b"Trenches over 5 feet need shoring. Keep spoil back."

    response = client.post(f"/handouts/{handout.id}/process", json={"steps": ["extract", "chunk", "embed"]})

    assert response.status_code == 200
    assert response.json()["steps"] == [
        "extract: success",
        "chunk: 1 chunks created",
        "embed: 1 embeddings generated",
    ]
    status = client.get(f"/handouts/{handout.id}/status").json()
    assert status == {
        "extracted": True,
        "chunks": 1,
        "embeddings": 1,
        "questions": 0,
        "is_processed": True,
    }
    assert client.post("/handouts/embed-pending").json() == {"embedded": 0}
    assert client.post("/handouts/missing/process").status_code == 404
    assert client.post(f"/handouts/{handout.id}/process", json={"steps": ["bake"]}).status_code == 400
