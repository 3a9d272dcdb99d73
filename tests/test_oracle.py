"""
Unit tests for the oracle step: prompt rendering, tool offering, decision parsing.
"""

import asyncio

import pytest

from explore.agent.config_resolver import resolve_agent_config
from explore.agent.constants import ExecutionType
from explore.agent.llm import LLMResponse
from explore.agent.oracle import (
    OracleStep,
    available_tools,
    build_messages,
    format_chat_history,
    render_scratchpad,
)
from explore.agent.registry import default_registry
from explore.agent.state import (
    AgentAction,
    ExecutionStep,
    FinalAnswer,
    ProposedCalls,
    new_conversation_state,
)
from explore.core.errors import AgentGraphError

from fakes import ScriptedProvider, call, make_raw_config, tool_calls


@pytest.fixture
def state(agent_config):
    return new_conversation_state("ml courses", "", "chat-1", agent_config)


def decide(config, response: LLMResponse, state):
    provider = ScriptedProvider(response)
    oracle = OracleStep(config, default_registry(), provider)
    decision, tokens = asyncio.run(oracle.decide(state, available_tools(state, config, default_registry())))
    return decision, tokens, provider


class TestPromptRendering:
    def test_chat_history_keeps_last_four(self) -> None:
        history = [
            {"type": "human" if i % 2 == 0 else "ai", "content": f"m{i}", "timestamp": f"t{i}"} for i in range(6)
        ]
        assert format_chat_history(history) == "[t2] human: m2\n[t3] ai: m3\n[t4] human: m4\n[t5] ai: m5"

    def test_chat_history_without_timestamp(self) -> None:
        assert format_chat_history([{"type": "human", "content": "hi"}]) == "human: hi"

    def test_empty_history(self) -> None:
        assert format_chat_history([]) == ""

    def test_scratchpad(self) -> None:
        steps = [
            ExecutionStep((AgentAction("search", {"query": "ml"}),), ("found ML 101",), ExecutionType.SEQUENTIAL),
            ExecutionStep(
                (AgentAction("a", {}), AgentAction("b", {}, success=False)),
                ("ok", "Tool b failed: boom"),
                ExecutionType.PARALLEL,
            ),
        ]
        assert render_scratchpad(steps) == (
            'sequential Execution:\nTool: search, input: {"query": "ml"}\nOutput: found ML 101'
            "\n---\n"
            "parallel Execution:\nTool: a, input: {}\nOutput: ok\nTool: b, input: {}\nOutput: Tool b failed: boom"
        )

    def test_messages_layout(self, agent_config) -> None:
        state = new_conversation_state("ml courses", "human: hi", "chat-1", agent_config)
        state["intermediate_steps"] = [
            ExecutionStep((AgentAction("search", {}),), ("r",), ExecutionType.SEQUENTIAL)
        ]
        messages = build_messages(state, agent_config)
        assert [m["role"] for m in messages] == ["system", "system", "user", "assistant"]
        assert messages[0]["content"] == "You are a course advisor."
        assert messages[1]["content"] == "Chat history:\nhuman: hi"
        assert messages[2]["content"] == "ml courses"
        assert messages[3]["content"].startswith("scratchpad: sequential Execution:")

    def test_no_scratchpad_on_first_iteration(self, state, agent_config) -> None:
        assert [m["role"] for m in build_messages(state, agent_config)] == ["system", "user"]


class TestAvailableTools:
    def test_first_iteration_offers_initial_tools(self, agent_config) -> None:
        raw = make_raw_config(
            tools=[
                {"name": "mock_rag_graph_search", "description": "Mock"},
                {"name": "rag_graph_search", "description": "Search"},
            ],
            initialTools=[{"name": "rag_graph_search", "description": "Search"}],
        )
        config = resolve_agent_config(raw)
        state = new_conversation_state("q", "", "c", config)
        assert [t.name for t in available_tools(state, config, default_registry())] == [
            "rag_graph_search",
            "final_answer",
        ]
        state["iteration"] = 1
        assert [t.name for t in available_tools(state, config, default_registry())] == [
            "mock_rag_graph_search",
            "rag_graph_search",
            "final_answer",
        ]

    def test_used_tools_are_not_offered_again(self, state, agent_config) -> None:
        state["iteration"] = 1
        state["tools_used"] = ["mock_rag_graph_search"]
        assert [t.name for t in available_tools(state, agent_config, default_registry())] == ["final_answer"]


class TestDecide:
    def test_final_answer_call(self, agent_config, state) -> None:
        decision, _, _ = decide(agent_config, tool_calls(call("final_answer", answer="ML 101")), state)
        assert decision == FinalAnswer({"answer": "ML 101"}, "default")

    def test_final_answer_wins_over_other_calls(self, agent_config, state) -> None:
        response = tool_calls(call("mock_rag_graph_search", query="ml"), call("final_answer", answer="done"))
        decision, _, _ = decide(agent_config, response, state)
        assert isinstance(decision, FinalAnswer)
        assert decision.payload == {"answer": "done"}

    def test_single_call_is_sequential(self, agent_config, state) -> None:
        decision, _, _ = decide(agent_config, tool_calls(call("mock_rag_graph_search", query="ml")), state)
        assert isinstance(decision, ProposedCalls)
        assert decision.execution_type is ExecutionType.SEQUENTIAL
        assert [(c.name, c.arguments) for c in decision.calls] == [("mock_rag_graph_search", {"query": "ml"})]

    def test_several_calls_run_in_parallel(self, agent_config, state) -> None:
        response = tool_calls(call("mock_rag_graph_search", query="ml"), call("mock_rag_graph_search", query="ai"))
        decision, _, _ = decide(agent_config, response, state)
        assert decision.execution_type is ExecutionType.PARALLEL
        assert [c.arguments["query"] for c in decision.calls] == ["ml", "ai"]

    def test_duplicate_calls_are_collapsed(self, agent_config, state) -> None:
        response = tool_calls(call("mock_rag_graph_search", query="ml"), call("mock_rag_graph_search", query="ml"))
        decision, _, _ = decide(agent_config, response, state)
        assert len(decision.calls) == 1
        assert decision.execution_type is ExecutionType.SEQUENTIAL

    def test_plain_text_is_a_final_answer(self, agent_config, state) -> None:
        decision, tokens, _ = decide(agent_config, LLMResponse(text="ML 101", total_tokens=7), state)
        assert decision == FinalAnswer({"answer": "ML 101"}, "default")
        assert tokens == 7

    def test_empty_reply_is_a_domain_error(self, agent_config, state) -> None:
        with pytest.raises(AgentGraphError):
            decide(agent_config, LLMResponse(text=None), state)

    def test_final_answer_always_offered(self, agent_config, state) -> None:
        _, _, provider = decide(agent_config, tool_calls(call("final_answer", answer="x")), state)
        assert provider.offered == [["mock_rag_graph_search", "final_answer"]]
        assert provider.tool_choices == [None]

    def test_force_tool_use(self, state) -> None:
        config = resolve_agent_config(make_raw_config(forceToolUse=True))
        _, _, provider = decide(config, tool_calls(call("final_answer", answer="x")), state)
        assert provider.tool_choices == ["any"]
