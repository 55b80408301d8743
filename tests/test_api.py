"""
Integration tests for the agent HTTP endpoints.

The agent service is swapped via dependency_overrides so tests do not require OpenAI,
Milvus or Google; sessions go to a temporary SQLite file.
"""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from conftest import ScriptedModel, answer, asks_for, make_registry, tool_call
from kb_assistant.agent.prompts import ERROR_MESSAGES
from kb_assistant.core.errors import ModelProviderError
from kb_assistant.core.session_store import SessionStore
from kb_assistant.main import app
from kb_assistant.services.agent_service import AgentService, get_agent_service


class BrokenModel:
    async def complete(self, messages, tools=None):
        raise ModelProviderError("401 invalid api key sk-secret")


class CrashingModel:
    async def complete(self, messages, tools=None):
        raise RuntimeError("milvus collection kb_pages missing")


@pytest.fixture
def session_store(tmp_path: Path) -> SessionStore:
    return SessionStore(db_path=tmp_path / "api_sessions.db")


@pytest.fixture
def make_client(session_store: SessionStore):
    def _make(model) -> TestClient:
        service = AgentService(session_store, model, make_registry())
        app.dependency_overrides[get_agent_service] = lambda: service
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()


def test_health(make_client) -> None:
    client = make_client(ScriptedModel([answer("x")]))
    assert client.get("/health").json() == {"ok": True}


def test_create_session_returns_id(make_client) -> None:
    client = make_client(ScriptedModel([answer("x")]))
    response = client.post("/agent/sessions", json={"user_id": "u1"})
    assert response.status_code == 200
    session_id = response.json()["session_id"]
    assert session_id.startswith("session_")

    detail = client.get(f"/agent/sessions/{session_id}")
    assert detail.status_code == 200
    body = detail.json()
    assert body["user_id"] == "u1"
    assert body["turns"] == []
    assert body["metadata"]["total_queries"] == 0


def test_create_session_without_body(make_client) -> None:
    client = make_client(ScriptedModel([answer("x")]))
    response = client.post("/agent/sessions")
    assert response.status_code == 200
    assert response.json()["session_id"].startswith("session_")


def test_query_returns_answer_and_sources(make_client) -> None:
    model = ScriptedModel([
        asks_for(tool_call("knowledge_base_search", query="What is LibreTexts?")),
        answer("LibreTexts is an open education project [1]."),
    ])
    client = make_client(model)
    session_id = client.post("/agent/sessions", json={}).json()["session_id"]

    response = client.post("/agent/query", json={"query": "What is LibreTexts?", "session_id": session_id})
    assert response.status_code == 200
    data = response.json()
    assert data["answer"] == "LibreTexts is an open education project [1]."
    assert data["query"] == "What is LibreTexts?"
    assert data["session_id"] == session_id
    assert [s["number"] for s in data["sources"]] == [1, 2]
    assert data["sources"][0] == {
        "number": 1,
        "title": "About LibreTexts",
        "url": "/insight/about-libretexts",
        "origin": "kb",
    }
    assert data["tools_used"] == ["knowledge_base_search"]

    turns = client.get(f"/agent/sessions/{session_id}").json()["turns"]
    assert turns == [
        {"role": "user", "content": "What is LibreTexts?"},
        {"role": "assistant", "content": "LibreTexts is an open education project [1]."},
    ]


def test_query_with_profile(make_client) -> None:
    model = ScriptedModel([answer("Short answer.")])
    client = make_client(model)
    response = client.post(
        "/agent/query",
        json={"query": "hi", "profile": {"tone": "detailed", "include_history": True}},
    )
    assert response.status_code == 200
    assert "official LibreTexts AI Assistant" in model.calls[0][0]["content"]


def test_query_invalid_tone_returns_422(make_client) -> None:
    client = make_client(ScriptedModel([answer("x")]))
    response = client.post("/agent/query", json={"query": "hi", "profile": {"tone": "pirate"}})
    assert response.status_code == 422


def test_query_missing_body_returns_422(make_client) -> None:
    client = make_client(ScriptedModel([answer("x")]))
    assert client.post("/agent/query").status_code == 422
    assert client.post("/agent/query", json={"query": ""}).status_code == 422


def test_blank_query_returns_400(make_client) -> None:
    client = make_client(ScriptedModel([answer("x")]))
    response = client.post("/agent/query", json={"query": "   "})
    assert response.status_code == 400


def test_model_failure_returns_generic_message(make_client) -> None:
    client = make_client(BrokenModel())
    response = client.post("/agent/query", json={"query": "What is LibreTexts?"})
    assert response.status_code == 502
    assert response.json() == {"detail": ERROR_MESSAGES["general"]}
    assert "sk-secret" not in response.text


def test_unknown_session_returns_404(make_client) -> None:
    client = make_client(ScriptedModel([answer("x")]))
    assert client.get("/agent/sessions/session_missing").status_code == 404


def test_unexpected_failure_returns_500_with_generic_message(make_client) -> None:
    client = make_client(CrashingModel())
    response = client.post("/agent/query", json={"query": "What is LibreTexts?"})
    assert response.status_code == 500
    assert response.json() == {"detail": ERROR_MESSAGES["general"]}
    assert "kb_pages" not in response.text
