"""
Agent: orchestrate history, the tool-calling loop, citations and persistence per query.

Responsibility: Load session history, run the agent loop, extract sources from the tool
output, append the exchange to the session and return an AgentResponse. Called by the API;
no HTTP here.

Failure policy: history load errors degrade to an empty history, append errors are logged
and the answer is still returned. ModelProviderError propagates to the caller.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from kb_assistant.agent.llm import ChatModel
from kb_assistant.agent.loop import AgentLoop
from kb_assistant.agent.prompts import ERROR_MESSAGES, build_system_prompt
from kb_assistant.agent.sources import extract_sources
from kb_assistant.agent.tools import ToolRegistry, default_tools
from kb_assistant.core.config import MAX_AGENT_ROUNDS
from kb_assistant.core.errors import SessionStoreError
from kb_assistant.core.session_store import SessionStore, get_session_store, new_session_id
from kb_assistant.schemas.query import AgentResponse, PromptProfile
from kb_assistant.schemas.session import Turn

logger = logging.getLogger(__name__)


def build_messages(system_prompt: str, history: list[Turn], query: str) -> list[dict[str, Any]]:
    """[system, ...history, user] in OpenAI chat format; empty history turns are dropped."""
    messages: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}]
    for turn in history:
        content = (turn.content or "").strip()
        if content:
            messages.append({"role": turn.role, "content": content})
    messages.append({"role": "user", "content": query})
    return messages


class AgentService:
    def __init__(
        self,
        store: SessionStore,
        model: ChatModel,
        tools: ToolRegistry,
        max_rounds: int = MAX_AGENT_ROUNDS,
    ) -> None:
        self.store = store
        self.loop = AgentLoop(model, tools, max_rounds=max_rounds)

    async def create_session(self, user_id: str | None = None) -> str:
        return await self.store.create_session(user_id)

    async def _load_history(self, session_id: str) -> list[Turn]:
        try:
            return await self.store.load_history(session_id)
        except SessionStoreError:
            logger.exception("[agent_service:query] history load failed for session=%s; continuing without history", session_id)
            return []

    async def query(self, session_id: str | None, text: str, profile: PromptProfile | None = None) -> AgentResponse:
        """Answer `text` within the session, creating the session when session_id is empty."""
        if not text or not str(text).strip():
            raise ValueError("query is required")
        q = str(text).strip()
        profile = profile or PromptProfile()

        if not session_id or not session_id.strip():
            try:
                session_id = await self.store.create_session()
            except SessionStoreError:
                # append_turn upserts, so the exchange is still recorded under this id
                logger.exception("[agent_service:query] session creation failed; using an unsaved id")
                session_id = new_session_id()
        session_id = session_id.strip()
        logger.info("[agent_service:query] START session=%s query=%r tone=%s", session_id, q, profile.tone)

        history = await self._load_history(session_id)
        sent_history = history if profile.include_history else []
        messages = build_messages(build_system_prompt(profile), sent_history, q)

        run = await self.loop.run(messages)
        answer = (run.answer or "").strip() or ERROR_MESSAGES["general"]
        sources = extract_sources(run.tool_messages)

        try:
            await self.store.append_turn(session_id, q, answer)
        except SessionStoreError:
            logger.exception("[agent_service:query] failed to persist turn for session=%s", session_id)

        logger.info(
            "[agent_service:query] END session=%s rounds=%d sources=%d answer_len=%d",
            session_id, run.rounds, len(sources), len(answer),
        )
        return AgentResponse(
            answer=answer,
            sources=sources,
            query=q,
            timestamp=datetime.now(timezone.utc),
            session_id=session_id,
            tools_used=run.tools_used,
            rounds=run.rounds,
        )


_default_service: AgentService | None = None


def get_agent_service() -> AgentService:
    """Process-wide service with the default model client, tools and session store."""
    global _default_service
    if _default_service is None:
        _default_service = AgentService(get_session_store(), ChatModel(), default_tools())
    return _default_service
