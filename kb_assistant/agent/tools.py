"""
Agent tools: definitions and execution for tool-calling (agentic) mode.

Tools: knowledge_base_search (Milvus semantic search), web_search (Google Programmable Search).

Each tool declares its arguments as a pydantic model; the same model produces the OpenAI
function schema and validates what the model sends back. Tools never raise: backend
failures, timeouts and bad arguments all come back as text in a ToolResult.

Successful output is a tagged numbered list, which the source extractor relies on:

    [knowledge_base_results]
    1. Title: <title>
    URL: <url>
    Summary: <snippet>
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from kb_assistant.agent.llm import ToolCallRequest
from kb_assistant.agent.prompts import (
    ERROR_MESSAGES,
    PARAMETER_DESCRIPTIONS,
    TOOL_DESCRIPTIONS,
    search_error,
)
from kb_assistant.core.config import KB_DEFAULT_LIMIT, KB_MAX_LIMIT, KB_SCORE_THRESHOLD, TOOL_TIMEOUT
from kb_assistant.core.errors import ServiceUnavailableError, ToolArgumentError
from kb_assistant.services.retrieval_service import search_kb_pages
from kb_assistant.services.web_search import search_web

logger = logging.getLogger(__name__)

KB_RESULTS_TAG = "[knowledge_base_results]"
WEB_RESULTS_TAG = "[web_search_results]"

SearchFn = Callable[..., Awaitable[list[dict]]]


@dataclass(frozen=True)
class ToolResult:
    """Text outcome of one tool call. content is always text, failures included."""

    tool_call_id: str
    tool_name: str
    content: str
    is_error: bool = False

    def to_message(self) -> dict[str, Any]:
        return {"role": "tool", "tool_call_id": self.tool_call_id, "name": self.tool_name, "content": self.content}


def _one_line(text: str) -> str:
    return " ".join((text or "").split())


def format_results(tag: str, entries: list[dict], summary_label: str) -> str:
    """Render {title, url, snippet} entries as the tagged numbered list."""
    blocks = []
    for i, entry in enumerate(entries, 1):
        lines = [f"{i}. Title: {_one_line(entry.get('title', ''))}", f"URL: {_one_line(entry.get('url', ''))}"]
        snippet = _one_line(entry.get("snippet", ""))
        if snippet:
            lines.append(f"{summary_label}: {snippet}")
        blocks.append("\n".join(lines))
    return tag + "\n" + "\n\n".join(blocks)


def _describe_validation_error(e: ValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(x) for x in err.get("loc", ())) or "arguments"
        parts.append(f"{loc}: {err.get('msg', 'invalid')}")
    return "; ".join(parts)


class Tool:
    """Base class: name, description, pydantic argument model and an async body."""

    name: str = ""
    description: str = ""
    args_model: type[BaseModel] = BaseModel

    def __init__(self, timeout: float = TOOL_TIMEOUT) -> None:
        self.timeout = timeout

    def openai_schema(self) -> dict[str, Any]:
        """OpenAI function-calling definition derived from args_model."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description.strip(),
                "parameters": self.args_model.model_json_schema(),
            },
        }

    def validate(self, arguments: dict[str, Any] | None) -> BaseModel:
        try:
            return self.args_model.model_validate(arguments or {})
        except ValidationError as e:
            raise ToolArgumentError(self.name, _describe_validation_error(e)) from e

    async def run(self, args: Any) -> str:
        raise NotImplementedError

    async def invoke(self, args: BaseModel, tool_call_id: str = "") -> ToolResult:
        """Run the tool body on already-validated arguments under the tool timeout."""
        try:
            content = await asyncio.wait_for(self.run(args), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("[tools:%s] timed out after %.1fs", self.name, self.timeout)
            return ToolResult(tool_call_id, self.name, search_error(self.name, "timed out"), is_error=True)
        except Exception as e:
            logger.warning("[tools:%s] failed: %s", self.name, e)
            return ToolResult(tool_call_id, self.name, search_error(self.name, str(e)), is_error=True)
        return ToolResult(tool_call_id, self.name, content)


class KnowledgeBaseSearchArgs(BaseModel):
    model_config = ConfigDict(strict=True)

    query: str = Field(..., min_length=1, description=PARAMETER_DESCRIPTIONS["knowledge_base_search"]["query"])
    limit: int = Field(KB_DEFAULT_LIMIT, description=PARAMETER_DESCRIPTIONS["knowledge_base_search"]["limit"])


class KnowledgeBaseSearchTool(Tool):
    name = "knowledge_base_search"
    description = TOOL_DESCRIPTIONS["knowledge_base_search"]
    args_model = KnowledgeBaseSearchArgs

    def __init__(
        self,
        search: SearchFn = search_kb_pages,
        score_threshold: float = KB_SCORE_THRESHOLD,
        timeout: float = TOOL_TIMEOUT,
    ) -> None:
        super().__init__(timeout=timeout)
        self.search = search
        self.score_threshold = score_threshold

    async def run(self, args: KnowledgeBaseSearchArgs) -> str:
        limit = max(1, min(args.limit, KB_MAX_LIMIT))
        try:
            hits = await self.search(args.query.strip(), limit)
        except ServiceUnavailableError as e:
            logger.info("[tools:knowledge_base_search] unavailable: %s", e)
            return ERROR_MESSAGES["kb_unavailable"]
        relevant = [
            h for h in hits
            if float(h.get("score", 0.0)) >= self.score_threshold and h.get("title") and h.get("url")
        ][:limit]
        logger.info(
            "[tools:knowledge_base_search] hits=%d relevant=%d threshold=%.2f",
            len(hits), len(relevant), self.score_threshold,
        )
        if not relevant:
            return ERROR_MESSAGES["no_kb_results"]
        return format_results(KB_RESULTS_TAG, relevant, "Summary")


class WebSearchArgs(BaseModel):
    model_config = ConfigDict(strict=True)

    query: str = Field(..., min_length=1, description=PARAMETER_DESCRIPTIONS["web_search"]["query"])


class WebSearchTool(Tool):
    name = "web_search"
    description = TOOL_DESCRIPTIONS["web_search"]
    args_model = WebSearchArgs

    def __init__(self, search: SearchFn = search_web, timeout: float = TOOL_TIMEOUT) -> None:
        super().__init__(timeout=timeout)
        self.search = search

    async def run(self, args: WebSearchArgs) -> str:
        try:
            results = await self.search(args.query.strip())
        except ServiceUnavailableError as e:
            logger.info("[tools:web_search] unavailable: %s", e)
            return ERROR_MESSAGES["web_unavailable"]
        results = [r for r in results if r.get("title") and r.get("url")]
        if not results:
            return ERROR_MESSAGES["no_web_results"]
        return format_results(WEB_RESULTS_TAG, results, "Snippet")


class ToolRegistry:
    """Tools available to one agent, looked up by name. Holds no per-run state."""

    def __init__(self, tools: list[Tool]) -> None:
        self._tools = {t.name: t for t in tools}

    def names(self) -> list[str]:
        return list(self._tools)

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def schemas(self) -> list[dict[str, Any]]:
        return [t.openai_schema() for t in self._tools.values()]

    async def dispatch(self, call: ToolCallRequest) -> ToolResult:
        """
        Validate and execute one model tool call. Unknown tools, unparseable JSON and
        schema mismatches are reported as error text without running the tool.
        """
        logger.info("[tools:dispatch] name=%r arguments=%r", call.name, call.arguments)
        tool = self._tools.get(call.name)
        if tool is None:
            return ToolResult(call.id, call.name, f"Error: Unknown tool: {call.name}", is_error=True)
        if call.argument_error:
            return ToolResult(call.id, call.name, f"Error: Invalid arguments for {call.name}: {call.argument_error}", is_error=True)
        try:
            args = tool.validate(call.arguments)
        except ToolArgumentError as e:
            logger.warning("[tools:dispatch] %s", e)
            return ToolResult(call.id, call.name, f"Error: {e}", is_error=True)
        return await tool.invoke(args, tool_call_id=call.id)


def default_tools() -> ToolRegistry:
    return ToolRegistry([KnowledgeBaseSearchTool(), WebSearchTool()])
