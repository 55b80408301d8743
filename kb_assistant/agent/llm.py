"""
Agent LLM: OpenAI chat completions with tool calling.

The client is stateless per run (only connection config is held), so one ChatModel
is shared by all concurrent agent runs. Any provider failure surfaces as
ModelProviderError; it is never retried or swallowed here.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any

import openai
from openai import AsyncOpenAI

from kb_assistant.core.config import (
    AGENT_MAX_TOKENS,
    AGENT_TEMPERATURE,
    LLM_API_TIMEOUT,
    OPENAI_API_KEY,
    OPENAI_LLM_MODEL,
)
from kb_assistant.core.errors import ModelProviderError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolCallRequest:
    """
    A tool invocation requested by the model. argument_error is set when the JSON could not
    be parsed; raw_arguments keeps the string the model sent so the transcript replays it as is.
    """

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    argument_error: str | None = None
    raw_arguments: str | None = None

    def to_openai(self) -> dict[str, Any]:
        raw = self.raw_arguments if self.raw_arguments is not None else json.dumps(self.arguments)
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": raw},
        }


@dataclass(frozen=True)
class ModelReply:
    content: str
    tool_calls: list[ToolCallRequest] = field(default_factory=list)

    @property
    def wants_tools(self) -> bool:
        return bool(self.tool_calls)


def parse_tool_calls(raw_tool_calls: Any) -> list[ToolCallRequest]:
    """Convert OpenAI tool_call objects to ToolCallRequest, keeping the model's order."""
    tool_calls: list[ToolCallRequest] = []
    for tc in raw_tool_calls or []:
        fid = getattr(tc, "id", None) or ""
        fn = getattr(tc, "function", None)
        if not fn:
            continue
        fname = getattr(fn, "name", None) or ""
        fargs = getattr(fn, "arguments", None) or "{}"
        raw = fargs if isinstance(fargs, str) else None
        try:
            args = json.loads(fargs) if isinstance(fargs, str) else fargs
        except json.JSONDecodeError as e:
            tool_calls.append(ToolCallRequest(
                id=fid, name=fname, argument_error=f"arguments are not valid JSON ({e.msg})", raw_arguments=raw,
            ))
            continue
        if not isinstance(args, dict):
            tool_calls.append(ToolCallRequest(
                id=fid, name=fname, argument_error="arguments must be a JSON object", raw_arguments=raw,
            ))
            continue
        tool_calls.append(ToolCallRequest(id=fid, name=fname, arguments=args, raw_arguments=raw))
    return tool_calls


class ChatModel:
    """Thin async wrapper over OpenAI chat completions used by the agent loop."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = OPENAI_LLM_MODEL,
        timeout: float = LLM_API_TIMEOUT,
        max_tokens: int = AGENT_MAX_TOKENS,
        temperature: float = AGENT_TEMPERATURE,
    ) -> None:
        self.api_key = api_key if api_key is not None else OPENAI_API_KEY
        self.model = model
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._client: AsyncOpenAI | None = None

    def _get_client(self) -> AsyncOpenAI:
        if not self.api_key:
            raise ModelProviderError("OPENAI_API_KEY is not set")
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=1)
        return self._client

    async def complete(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> ModelReply:
        """
        Call OpenAI chat with tools. Returns a ModelReply; if tool_calls is non-empty the caller
        should execute them and call again with tool results, otherwise content is the final answer.
        """
        client = self._get_client()
        logger.info("[llm:complete] IN  messages=%d tools=%d", len(messages), len(tools or []))
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"
        try:
            response = await asyncio.wait_for(client.chat.completions.create(**kwargs), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise ModelProviderError(f"LLM call timed out after {self.timeout}s") from e
        except openai.APIError as e:
            raise ModelProviderError(f"LLM call failed: {e}") from e

        msg = response.choices[0].message if response.choices else None
        if not msg:
            logger.warning("[llm:complete] OUT no choices in response")
            return ModelReply(content="")
        content = (getattr(msg, "content", None) or "").strip()
        tool_calls = parse_tool_calls(getattr(msg, "tool_calls", None))
        if tool_calls:
            logger.info("[llm:complete] OUT tool_calls=%s", [t.name for t in tool_calls])
        else:
            logger.info("[llm:complete] OUT content_len=%d", len(content))
        return ModelReply(content=content, tool_calls=tool_calls)
