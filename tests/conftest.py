"""
Shared fakes for agent tests: a scripted LLM, canned search backends and a temp session store.

No test here talks to OpenAI, Milvus, Hugging Face or Google.
"""

from pathlib import Path

import pytest

from kb_assistant.agent.llm import ModelReply, ToolCallRequest
from kb_assistant.agent.tools import KnowledgeBaseSearchTool, ToolRegistry, WebSearchTool
from kb_assistant.core.errors import ServiceUnavailableError
from kb_assistant.core.session_store import SessionStore


class ScriptedModel:
    """Returns the scripted replies in order, then keeps repeating the last one."""

    def __init__(self, replies: list[ModelReply]) -> None:
        assert replies
        self.replies = list(replies)
        self.calls: list[list[dict]] = []

    async def complete(self, messages, tools=None) -> ModelReply:
        self.calls.append([dict(m) for m in messages])
        index = min(len(self.calls) - 1, len(self.replies) - 1)
        return self.replies[index]


def tool_call(name: str, call_id: str = "call_1", **arguments) -> ToolCallRequest:
    return ToolCallRequest(id=call_id, name=name, arguments=arguments)


def answer(text: str) -> ModelReply:
    return ModelReply(content=text)


def asks_for(*calls: ToolCallRequest, content: str = "") -> ModelReply:
    return ModelReply(content=content, tool_calls=list(calls))


KB_HITS = [
    {"title": "About LibreTexts", "url": "/insight/about-libretexts", "snippet": "LibreTexts is an open education project.", "score": 0.91},
    {"title": "LibreTexts Mission", "url": "/insight/mission", "snippet": "Our mission is to unite students and faculty.", "score": 0.77},
]

WEB_HITS = [
    {"title": "LibreTexts - Wikipedia", "url": "https://en.wikipedia.org/wiki/LibreTexts", "snippet": "LibreTexts is an online OER platform."},
]


def fake_kb_search(hits: list[dict]):
    calls: list[tuple[str, int]] = []

    async def search(query: str, limit: int) -> list[dict]:
        calls.append((query, limit))
        return list(hits)

    search.calls = calls
    return search


def fake_web_search(hits: list[dict]):
    async def search(query: str) -> list[dict]:
        return list(hits)

    return search


async def failing_search(*args, **kwargs):
    raise ConnectionError("connection refused by vector store")


async def unconfigured_web_search(query: str):
    raise ServiceUnavailableError("GOOGLE_API_KEY and GOOGLE_CSE_ID must be set for web search")


def make_registry(kb_search=None, web_search=None) -> ToolRegistry:
    return ToolRegistry([
        KnowledgeBaseSearchTool(search=kb_search or fake_kb_search(KB_HITS)),
        WebSearchTool(search=web_search or fake_web_search(WEB_HITS)),
    ])


@pytest.fixture
def store(tmp_path: Path) -> SessionStore:
    return SessionStore(db_path=tmp_path / "sessions.db")
