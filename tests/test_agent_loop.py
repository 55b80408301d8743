"""
Tests for the agent loop state machine: termination, round limit, tool result ordering.
"""

import asyncio

import pytest

from conftest import ScriptedModel, answer, asks_for, make_registry, tool_call
from kb_assistant.agent.llm import ModelReply, ToolCallRequest
from kb_assistant.agent.loop import AgentLoop
from kb_assistant.agent.prompts import ERROR_MESSAGES
from kb_assistant.agent.tools import KnowledgeBaseSearchTool, ToolRegistry, WebSearchTool
from kb_assistant.core.errors import ModelProviderError

PROMPT = [{"role": "system", "content": "sys"}, {"role": "user", "content": "What is LibreTexts?"}]


@pytest.mark.asyncio
async def test_plain_answer_terminates_in_one_round() -> None:
    model = ScriptedModel([answer("LibreTexts is an OER platform.")])
    run = await AgentLoop(model, make_registry()).run(PROMPT)
    assert run.answer == "LibreTexts is an OER platform."
    assert run.rounds == 1
    assert len(model.calls) == 1
    assert run.tool_messages == []
    assert not run.forced_stop


@pytest.mark.asyncio
async def test_tool_round_then_answer() -> None:
    model = ScriptedModel([
        asks_for(tool_call("knowledge_base_search", query="LibreTexts")),
        answer("It is an open textbook project [1]."),
    ])
    run = await AgentLoop(model, make_registry()).run(PROMPT)
    assert run.rounds == 2
    assert run.tools_used == ["knowledge_base_search"]
    assert run.answer == "It is an open textbook project [1]."

    second_call = model.calls[1]
    assert second_call[-2]["role"] == "assistant"
    assert second_call[-2]["tool_calls"][0]["function"]["name"] == "knowledge_base_search"
    assert second_call[-1]["role"] == "tool"
    assert second_call[-1]["tool_call_id"] == "call_1"


@pytest.mark.asyncio
async def test_input_messages_not_mutated() -> None:
    prompt = list(PROMPT)
    model = ScriptedModel([asks_for(tool_call("web_search", query="x")), answer("done")])
    await AgentLoop(model, make_registry()).run(prompt)
    assert prompt == PROMPT


@pytest.mark.asyncio
async def test_never_converging_model_stops_at_round_limit_with_last_text() -> None:
    model = ScriptedModel([asks_for(tool_call("web_search", query="again"), content="Still looking...")])
    run = await AgentLoop(model, make_registry(), max_rounds=4).run(PROMPT)
    assert run.forced_stop
    assert run.rounds == 4
    assert len(model.calls) == 4
    assert run.answer == "Still looking..."
    # Tools of the final round are not executed since nothing would read their output
    assert len(run.tool_messages) == 3


@pytest.mark.asyncio
async def test_never_converging_silent_model_falls_back_to_general_message() -> None:
    model = ScriptedModel([asks_for(tool_call("web_search", query="again"))])
    run = await AgentLoop(model, make_registry(), max_rounds=3).run(PROMPT)
    assert run.forced_stop
    assert run.answer == ERROR_MESSAGES["general"]
    assert run.answer


@pytest.mark.asyncio
async def test_empty_reply_is_final_answer_with_empty_text() -> None:
    run = await AgentLoop(ScriptedModel([ModelReply(content="")]), make_registry()).run(PROMPT)
    assert run.answer == ""
    assert run.rounds == 1
    assert not run.forced_stop


@pytest.mark.asyncio
async def test_parallel_tool_results_keep_request_order() -> None:
    async def slow_kb(query, limit):
        await asyncio.sleep(0.05)
        return [{"title": "Slow KB", "url": "/insight/slow", "snippet": "", "score": 0.9}]

    async def fast_web(query):
        return [{"title": "Fast Web", "url": "https://example.org/fast", "snippet": ""}]

    registry = ToolRegistry([KnowledgeBaseSearchTool(search=slow_kb), WebSearchTool(search=fast_web)])
    model = ScriptedModel([
        asks_for(
            tool_call("knowledge_base_search", call_id="first", query="a"),
            tool_call("web_search", call_id="second", query="b"),
        ),
        answer("ok"),
    ])
    run = await AgentLoop(model, registry).run(PROMPT)
    assert [m["tool_call_id"] for m in run.tool_messages] == ["first", "second"]
    assert run.tools_used == ["knowledge_base_search", "web_search"]


@pytest.mark.asyncio
async def test_invalid_arguments_fed_back_to_model() -> None:
    model = ScriptedModel([
        asks_for(tool_call("knowledge_base_search", limit=2)),
        answer("Sorry, let me answer directly."),
    ])
    run = await AgentLoop(model, make_registry()).run(PROMPT)
    assert run.answer == "Sorry, let me answer directly."
    assert "Invalid arguments for knowledge_base_search" in model.calls[1][-1]["content"]


@pytest.mark.asyncio
async def test_unparseable_call_replayed_as_sent_then_answered() -> None:
    bad_call = ToolCallRequest(
        id="bad",
        name="web_search",
        argument_error="arguments are not valid JSON (Expecting value)",
        raw_arguments="{query: news",
    )
    model = ScriptedModel([asks_for(bad_call), answer("Here is what I know.")])
    run = await AgentLoop(model, make_registry()).run(PROMPT)

    assert run.answer == "Here is what I know."
    assert run.rounds == 2
    assistant_msg, tool_msg = model.calls[1][-2:]
    assert assistant_msg["tool_calls"][0]["function"]["arguments"] == "{query: news"
    assert tool_msg["tool_call_id"] == "bad"
    assert "not valid JSON" in tool_msg["content"]


@pytest.mark.asyncio
async def test_model_failure_propagates() -> None:
    class BrokenModel:
        async def complete(self, messages, tools=None):
            raise ModelProviderError("rate limited")

    with pytest.raises(ModelProviderError):
        await AgentLoop(BrokenModel(), make_registry()).run(PROMPT)


def test_max_rounds_must_be_positive() -> None:
    with pytest.raises(ValueError):
        AgentLoop(ScriptedModel([answer("x")]), make_registry(), max_rounds=0)
