import json

import pytest
from fastapi.testclient import TestClient

from holdthread import __version__
from holdthread.digressions.repository import InMemoryDigressionRepository
from holdthread.llm.client import FragmentCategory, ModelFragment, StubModelClient
from holdthread.server import create_app
from holdthread.sessions.repository import InMemorySessionRepository
from holdthread.state import ConversationRuntime
from holdthread.turns.repository import InMemoryTurnRepository


def _runtime(fragments=None, fail_after=None):
    return ConversationRuntime(
        sessions=InMemorySessionRepository(),
        digressions=InMemoryDigressionRepository(),
        turns=InMemoryTurnRepository(),
        reasoning_client=StubModelClient(fragments=fragments, fail_after=fail_after),
        digression_client=StubModelClient(),
    )


@pytest.fixture
def client():
    with TestClient(create_app(runtime=_runtime())) as test_client:
        yield test_client


def _parse_sse(body: str):
    events = []
    for frame in body.split("\n\n"):
        if not frame.strip():
            continue
        lines = dict(line.split(": ", 1) for line in frame.splitlines())
        payload = json.loads(lines["data"])
        assert payload["phase"] == lines["event"]
        events.append(payload)
    return events


def _run_turn(client, user_input, session_id=None):
    started = client.post("/api/chat/main/turn", json={"sessionId": session_id, "userInput": user_input})
    assert started.status_code == 200
    response = client.get(f"/api/chat/main/stream/{started.json()['turnId']}")
    return started.json(), response


def test_turn_then_stream(client):
    started, response = _run_turn(client, "Explain tides")
    assert started["sessionId"] is None
    assert started["initialMessages"] == []

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"

    events = _parse_sse(response.text)
    phases = [e["phase"] for e in events]
    assert phases == ["reasoning", "reasoning", "transition", "answer", "answer", "done"]
    session_id = events[0]["sessionId"]
    answer = "".join(e["text"] for e in events if e["phase"] == "answer")

    session = client.get(f"/api/chat/sessions/{session_id}").json()
    assert session["sessionId"] == session_id
    assert [(m["role"], m["content"]) for m in session["mainChain"]] == [
        ("user", "Explain tides"),
        ("assistant", answer),
    ]


def test_follow_up_turn_returns_initial_messages(client):
    _, first = _run_turn(client, "first question")
    session_id = _parse_sse(first.text)[0]["sessionId"]

    started, second = _run_turn(client, "second question", session_id=session_id)
    assert started["sessionId"] == session_id
    assert [m["role"] for m in started["initialMessages"]] == ["user", "assistant"]
    assert _parse_sse(second.text)[-1]["phase"] == "done"
    assert len(client.get(f"/api/chat/sessions/{session_id}").json()["mainChain"]) == 4


def test_stream_unknown_turn_is_not_found(client):
    response = client.get("/api/chat/main/stream/nope")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "turn.not_found"
    assert response.json()["error"]["resource_kind"] == "turn"


def test_stream_twice_is_not_found(client):
    started, _ = _run_turn(client, "once")
    again = client.get(f"/api/chat/main/stream/{started['turnId']}")
    assert again.status_code == 404


def test_empty_input_is_bad_request(client):
    response = client.post("/api/chat/main/turn", json={"userInput": ""})
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "invalid_input"


def test_turn_on_unknown_session_is_not_found(client):
    response = client.post("/api/chat/main/turn", json={"sessionId": "missing", "userInput": "hi"})
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "session.not_found"


def test_failed_stream_ends_with_error_event():
    fragments = [
        ModelFragment(category=FragmentCategory.reasoning, text="Let me start"),
        ModelFragment(category=FragmentCategory.answer, text="Half an"),
        ModelFragment(category=FragmentCategory.answer, text=" answer"),
    ]
    with TestClient(create_app(runtime=_runtime(fragments=fragments, fail_after=2))) as test_client:
        _, response = _run_turn(test_client, "question")
        events = _parse_sse(response.text)
        assert events[-1]["phase"] == "error"
        session = test_client.get(f"/api/chat/sessions/{events[0]['sessionId']}").json()
        assert [m["role"] for m in session["mainChain"]] == ["user"]


def test_health_and_ready(client):
    assert client.get("/health").json() == {"status": "ok", "version": __version__}
    assert client.get("/ready").json()["status"] == "ok"


def test_ready_reports_starting_before_lifespan():
    app = create_app()
    assert TestClient(app).get("/ready").json()["status"] == "starting"


def test_lifespan_builds_runtime_from_environment(monkeypatch):
    monkeypatch.setenv("LLM_PROVIDER", "stub")
    monkeypatch.setenv("STORE_BACKEND", "memory")
    with TestClient(create_app()) as test_client:
        assert test_client.get("/ready").json()["status"] == "ok"
        _, response = _run_turn(test_client, "hello")
        assert _parse_sse(response.text)[-1]["phase"] == "done"
