# tests/test_server.py

from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from aclio.config import Settings
from aclio.errors import LLMRateLimitedError
from aclio.server.app import create_app

from .fakes import FakeLLMClient


@pytest.fixture()
def client(settings: Settings, llm: FakeLLMClient) -> TestClient:
    return TestClient(create_app(settings, llm=llm))


def _events(body: str) -> list[dict]:
    return [json.loads(line[len("data: "):]) for line in body.splitlines() if line.startswith("data: ")]


def test_health(client: TestClient) -> None:
    resp = client.get("/api/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["timestamp"].endswith("Z")
    assert data["apiKeyConfigured"] is True


def test_missing_api_key(settings: Settings) -> None:
    client = TestClient(create_app(settings))

    assert client.get("/api/health").json()["apiKeyConfigured"] is False
    resp = client.post("/api/generate-steps", json={"goal": "Run a 5k"})
    assert resp.status_code == 500
    assert resp.json() == {"error": "API key not configured on server"}


@pytest.mark.parametrize(
    ("path", "body", "message"),
    [
        ("/api/generate-steps", {}, "Goal is required"),
        ("/api/generate-questions", {"goal": ""}, "Goal is required"),
        ("/api/expand-step", {"goalName": "Run a 5k"}, "Step is required"),
        ("/api/do-it-for-me", {"goal": "Run a 5k"}, "Step is required"),
        ("/api/extend-goal", {"extension": "more"}, "Goal is required"),
        ("/api/extend-goal", {"goalName": "Run a 5k", "extension": "  "}, "Extension is required"),
        ("/api/talk-to-aclio", {"message": "  "}, "Message is required"),
        ("/api/talk-to-aclio-stream", {}, "Message is required"),
    ],
)
def test_required_fields(client: TestClient, path: str, body: dict, message: str) -> None:
    resp = client.post(path, json=body)
    assert resp.status_code == 400
    assert resp.json() == {"error": message}


def test_malformed_body(client: TestClient) -> None:
    resp = client.post("/api/generate-steps", json={"goal": "Run a 5k", "profile": "not an object"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid request body"}


def test_generate_steps(client: TestClient, llm: FakeLLMClient) -> None:
    resp = client.post("/api/generate-steps", json={
        "goal": "Run a 5k",
        "profile": {"name": "Sam", "age": 30},
        "location": {"display": "Lisbon", "country": "Portugal"},
        "additionalContext": "I walk daily",
    })

    assert resp.status_code == 200
    data = resp.json()
    assert data["category"] == "Health & Fitness"
    assert data["steps"][0] == {
        "id": 1,
        "title": "Buy running shoes",
        "description": "Visit a store.",
        "duration": "1 hour",
        "mapSearch": "running shoe store",
    }
    assert "mapSearch" not in data["steps"][1]

    system = llm.calls[0][1]
    assert "Sam" in system
    assert "Lisbon" in system
    assert "I walk daily" in system


def test_generate_questions(client: TestClient) -> None:
    resp = client.post("/api/generate-questions", json={"goal": "Run a 5k"})
    assert resp.status_code == 200
    assert [q["id"] for q in resp.json()["questions"]] == [1, 2, 3]


def test_expand_step(client: TestClient) -> None:
    resp = client.post("/api/expand-step", json={
        "goal": {"name": "Run a 5k"},
        "step": {"id": 1, "title": "Buy running shoes", "description": "Visit a store."},
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["detailedGuide"].startswith("Go to a running store")
    assert data["resources"][0]["cost"] == "Free"
    assert data["searchQuery"] == "running shoe store"


def test_do_it_for_me(settings: Settings) -> None:
    llm = FakeLLMClient(default="Here is the finished email.")
    client = TestClient(create_app(settings, llm=llm))

    resp = client.post("/api/do-it-for-me", json={
        "goalName": "Get a new job",
        "step": {"title": "Write a cover letter"},
    })
    assert resp.status_code == 200
    assert resp.json() == {"result": "Here is the finished email."}
    assert "Write a cover letter" in llm.calls[0][0][-1]["content"]


def test_extend_goal(client: TestClient, llm: FakeLLMClient) -> None:
    resp = client.post("/api/extend-goal", json={
        "goalName": "Run a 5k",
        "steps": [{"id": 1, "title": "Run 1 km"}, {"title": "Run 3 km"}],
        "extension": "Add a race",
    })
    assert resp.status_code == 200
    assert [s["title"] for s in resp.json()["steps"]] == ["Run 5 km", "Sign up for a race"]
    assert "Run 3 km" in llm.calls[0][0][-1]["content"]


def test_talk_to_aclio(settings: Settings) -> None:
    llm = FakeLLMClient(default="You've got this!")
    client = TestClient(create_app(settings, llm=llm))

    resp = client.post("/api/talk-to-aclio", json={
        "message": "I'm tired today",
        "goalName": "Run a 5k",
        "steps": [{"id": 1, "title": "Run 1 km"}],
        "completedSteps": [1],
        "chatHistory": [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello!"}],
    })

    assert resp.status_code == 200
    assert resp.json() == {"response": "You've got this!"}
    messages, system = llm.calls[0]
    assert [m["content"] for m in messages] == ["hi", "hello!", "I'm tired today"]
    assert "[x] Run 1 km" in system


def test_llm_failure_is_reported_as_json(settings: Settings) -> None:
    client = TestClient(create_app(settings, llm=FakeLLMClient(error=LLMRateLimitedError("Rate limited"))))
    resp = client.post("/api/talk-to-aclio", json={"message": "hello"})
    assert resp.status_code == 500
    assert resp.json() == {"error": "Rate limited"}


def test_stream(settings: Settings) -> None:
    client = TestClient(create_app(settings, llm=FakeLLMClient(chunks=["Keep ", "", "going!"])))

    resp = client.post("/api/talk-to-aclio-stream", json={"message": "hello"})

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/event-stream")
    assert _events(resp.text) == [{"text": "Keep "}, {"text": "going!"}, {"done": True}]


def test_stream_error_event(settings: Settings) -> None:
    client = TestClient(create_app(settings, llm=FakeLLMClient(error=LLMRateLimitedError("Rate limited"))))

    resp = client.post("/api/talk-to-aclio-stream", json={"message": "hello"})

    assert resp.status_code == 200
    assert _events(resp.text) == [{"error": "Rate limited"}]


def test_cors_preflight(client: TestClient) -> None:
    resp = client.options("/api/health", headers={
        "Origin": "http://localhost:8080",
        "Access-Control-Request-Method": "GET",
    })
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "http://localhost:8080"


class DroppingStreamLLM(FakeLLMClient):
    """Yields one chunk, then fails with a non-Aclio error."""

    def stream_chat(self, messages, system_prompt):
        self.calls.append((messages, system_prompt))
        yield "Hello "
        raise RuntimeError("connection reset")


def test_stream_unexpected_error_mid_stream(settings: Settings) -> None:
    client = TestClient(create_app(settings, llm=DroppingStreamLLM()))

    resp = client.post("/api/talk-to-aclio-stream", json={"message": "hello"})

    assert resp.status_code == 200
    assert _events(resp.text) == [{"text": "Hello "}, {"error": "connection reset"}]


def test_unexpected_error_is_reported_as_json(settings: Settings) -> None:
    app = create_app(settings, llm=FakeLLMClient(error=RuntimeError("boom")))
    client = TestClient(app, raise_server_exceptions=False)

    resp = client.post("/api/talk-to-aclio", json={"message": "hello"})

    assert resp.status_code == 500
    assert resp.json() == {"error": "boom"}


def test_expand_step_non_string_resource_fields(settings: Settings) -> None:
    reply = json.dumps({
        "detailedGuide": "Take the course.",
        "resources": [{"name": "Course", "cost": 29.99, "url": None, "type": 3}],
        "tips": [],
        "searchQuery": 42,
    })
    llm = FakeLLMClient(replies={"detailedguide": reply})
    client = TestClient(create_app(settings, llm=llm))

    resp = client.post("/api/expand-step", json={
        "goalName": "Learn Spanish",
        "step": {"id": 1, "title": "Pick a course"},
    })

    assert resp.status_code == 200
    data = resp.json()
    assert data["resources"][0]["cost"] == "29.99"
    assert data["resources"][0]["type"] == "3"
    assert data["resources"][0].get("url") is None
    assert data["searchQuery"] == "42"
