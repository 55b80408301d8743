"""
Agent loop: tool-calling state machine between the LLM and the tool registry.

    AWAITING_MODEL --(tool calls)--> EXECUTING_TOOLS --> AWAITING_MODEL
    AWAITING_MODEL --(plain text)--> DONE

The number of model calls per run is capped at max_rounds. If the model is still asking
for tools when the cap is reached, the run stops with the last non-empty text the model
produced, or the general fallback message when it never produced any.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from kb_assistant.agent.llm import ChatModel, ModelReply, ToolCallRequest
from kb_assistant.agent.prompts import ERROR_MESSAGES
from kb_assistant.agent.tools import ToolRegistry
from kb_assistant.core.config import MAX_AGENT_ROUNDS

logger = logging.getLogger(__name__)


class LoopState(str, Enum):
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"


@dataclass
class AgentRun:
    """Outcome of one run: the answer plus the tool messages that sources are derived from."""

    answer: str
    tool_messages: list[dict[str, Any]] = field(default_factory=list)
    tools_used: list[str] = field(default_factory=list)
    rounds: int = 0
    forced_stop: bool = False


class AgentLoop:
    def __init__(self, model: ChatModel, tools: ToolRegistry, max_rounds: int = MAX_AGENT_ROUNDS) -> None:
        if max_rounds < 1:
            raise ValueError("max_rounds must be at least 1")
        self.model = model
        self.tools = tools
        self.max_rounds = max_rounds

    async def _execute_tools(self, calls: list[ToolCallRequest]) -> list[dict[str, Any]]:
        # Independent reads run concurrently; gather keeps the model's request order
        results = await asyncio.gather(*(self.tools.dispatch(call) for call in calls))
        return [r.to_message() for r in results]

    async def run(self, messages: list[dict[str, Any]]) -> AgentRun:
        """
        Drive the model to a final answer. `messages` is the full prompt
        (system, history, user query) and is not mutated.
        ModelProviderError from the model propagates to the caller.
        """
        convo = list(messages)
        schemas = self.tools.schemas()
        run = AgentRun(answer="")
        last_text = ""
        pending: ModelReply = ModelReply(content="")
        state = LoopState.AWAITING_MODEL

        while state is not LoopState.DONE:
            if state is LoopState.AWAITING_MODEL:
                run.rounds += 1
                logger.info("[loop:run] round=%d/%d messages=%d", run.rounds, self.max_rounds, len(convo))
                reply = await self.model.complete(convo, schemas)
                if reply.content:
                    last_text = reply.content
                if not reply.wants_tools:
                    run.answer = reply.content
                    state = LoopState.DONE
                elif run.rounds >= self.max_rounds:
                    logger.warning(
                        "[loop:run] round limit %d reached with pending tool calls %s; stopping",
                        self.max_rounds, [c.name for c in reply.tool_calls],
                    )
                    run.answer = last_text or ERROR_MESSAGES["general"]
                    run.forced_stop = True
                    state = LoopState.DONE
                else:
                    pending = reply
                    state = LoopState.EXECUTING_TOOLS

            elif state is LoopState.EXECUTING_TOOLS:
                convo.append({
                    "role": "assistant",
                    "content": pending.content or "",
                    "tool_calls": [c.to_openai() for c in pending.tool_calls],
                })
                tool_messages = await self._execute_tools(pending.tool_calls)
                convo.extend(tool_messages)
                run.tool_messages.extend(tool_messages)
                run.tools_used.extend(m["name"] for m in tool_messages)
                state = LoopState.AWAITING_MODEL

        logger.info(
            "[loop:run] END rounds=%d tools_used=%s forced_stop=%s answer_len=%d",
            run.rounds, run.tools_used, run.forced_stop, len(run.answer),
        )
        return run
