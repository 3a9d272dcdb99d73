"""
Test doubles: a small agent definition and a scripted chat provider.

The scripted provider replaces the "mock" LLM in a registry copy, so tests can
count oracle calls and inspect the prompts without any network access.
"""

from typing import Any

from explore.agent.llm import LLMResponse, LLMToolCall
from explore.agent.registry import AgentRegistry, default_registry


def make_raw_config(**overrides: Any) -> dict[str, Any]:
    raw: dict[str, Any] = {
        "systemPrompt": "You are a course advisor.",
        "llms": [{"provider": "mock", "providerArgs": {"temperature": 0, "delay": 0}}],
        "tools": [
            {"name": "mock_rag_graph_search", "description": "Search the catalog"},
            {"name": "final_answer", "description": "Answer the user", "config": {"jsonSpace": 2}},
        ],
        "initialTools": [{"name": "mock_rag_graph_search", "description": "Search the catalog"}],
        "maxIntermediateSteps": 3,
        "answerFormatters": [{"name": "default"}],
        "defaultErrorMessage": "Sorry, something went wrong.",
        "embeddingModelName": "text-embedding-3-small",
        "vectorResultsTopK": 5,
        "indexName": "courses",
    }
    raw.update(overrides)
    return raw


def call(name: str, **arguments: Any) -> LLMToolCall:
    return LLMToolCall(id=f"call_{name}", name=name, arguments=arguments)


def tool_calls(*calls: LLMToolCall, total_tokens: int = 0) -> LLMResponse:
    return LLMResponse(text=None, tool_calls=tuple(calls), total_tokens=total_tokens)


def final(answer: str = "Try Intro to ML.", **extra: Any) -> LLMResponse:
    return tool_calls(call("final_answer", answer=answer, **extra))


class ScriptedProvider:
    """Returns queued responses in order, repeating the last one. Records every call."""

    def __init__(self, *responses: LLMResponse) -> None:
        self.responses = list(responses) or [final()]
        self.invocations = 0
        self.messages: list[list[dict[str, Any]]] = []
        self.offered: list[list[str]] = []
        self.tool_choices: list[str | None] = []

    async def invoke(self, messages, tools, tool_choice=None) -> LLMResponse:
        self.invocations += 1
        self.messages.append(messages)
        self.offered.append([t["function"]["name"] for t in tools])
        self.tool_choices.append(tool_choice)
        return self.responses[min(self.invocations, len(self.responses)) - 1]


def scripted_registry(provider: ScriptedProvider, tools=None) -> AgentRegistry:
    return default_registry().with_overrides(tools=tools, llms={"mock": lambda **_: provider})
