"""
Unit tests for LLM providers: temperature bounds, OpenAI response parsing, mock script.
"""

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from explore.agent.llm import MockChatProvider, OpenAIChatProvider, validate_temperature
from explore.core.errors import AgentGraphError, ConfigError, ServiceUnavailableError

PROVIDERS = [MockChatProvider, OpenAIChatProvider]


class TestTemperature:
    @pytest.mark.parametrize("provider", PROVIDERS)
    @pytest.mark.parametrize("temperature", [-0.01, 1.01])
    def test_out_of_range_rejected(self, provider, temperature: float) -> None:
        with patch("explore.agent.llm.OPENAI_API_KEY", "sk-test"):
            with pytest.raises(AgentGraphError, match="Temperature must be between 0 and 1"):
                provider(temperature=temperature)

    @pytest.mark.parametrize("provider", PROVIDERS)
    @pytest.mark.parametrize("temperature", [0, 1, 0.5, None])
    def test_in_range_accepted(self, provider, temperature) -> None:
        with patch("explore.agent.llm.OPENAI_API_KEY", "sk-test"):
            assert provider(temperature=temperature) is not None

    def test_checked_before_client_needs_a_key(self) -> None:
        with patch("explore.agent.llm.OPENAI_API_KEY", ""):
            with pytest.raises(AgentGraphError, match="Temperature must be between 0 and 1"):
                OpenAIChatProvider(temperature=2)

    def test_validate_temperature_bounds_inclusive(self) -> None:
        validate_temperature(0.0)
        validate_temperature(1.0)


class TestOpenAIChatProvider:
    def test_missing_key(self) -> None:
        with patch("explore.agent.llm.OPENAI_API_KEY", ""):
            with pytest.raises(ServiceUnavailableError):
                OpenAIChatProvider()

    def _provider_with_reply(self, message) -> tuple[OpenAIChatProvider, AsyncMock]:
        with patch("explore.agent.llm.OPENAI_API_KEY", "sk-test"):
            provider = OpenAIChatProvider(model="gpt-4o-mini", temperature=0.2)
        create = AsyncMock(
            return_value=SimpleNamespace(
                choices=[SimpleNamespace(message=message)],
                usage=SimpleNamespace(total_tokens=42),
            )
        )
        provider._client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
        return provider, create

    def test_parses_tool_calls(self) -> None:
        tool_call = SimpleNamespace(
            id="call_1",
            function=SimpleNamespace(name="rag_graph_search", arguments=json.dumps({"query": "ml"})),
        )
        provider, create = self._provider_with_reply(SimpleNamespace(content=None, tool_calls=[tool_call]))
        tools = [{"type": "function", "function": {"name": "rag_graph_search", "parameters": {}}}]
        response = asyncio.run(provider.invoke([{"role": "user", "content": "ml"}], tools, tool_choice="any"))
        assert response.text is None
        assert [(c.name, c.arguments) for c in response.tool_calls] == [("rag_graph_search", {"query": "ml"})]
        assert response.total_tokens == 42
        kwargs = create.call_args.kwargs
        assert kwargs["tool_choice"] == "required"
        assert kwargs["temperature"] == 0.2
        assert kwargs["model"] == "gpt-4o-mini"

    def test_malformed_arguments_become_empty(self) -> None:
        tool_call = SimpleNamespace(id="c", function=SimpleNamespace(name="final_answer", arguments="{oops"))
        provider, _ = self._provider_with_reply(SimpleNamespace(content="", tool_calls=[tool_call]))
        response = asyncio.run(provider.invoke([], []))
        assert response.tool_calls[0].arguments == {}

    def test_text_reply(self) -> None:
        provider, create = self._provider_with_reply(SimpleNamespace(content=" Hello ", tool_calls=None))
        response = asyncio.run(provider.invoke([], []))
        assert response.text == "Hello"
        assert response.tool_calls == ()
        assert "tools" not in create.call_args.kwargs


class TestMockChatProvider:
    def test_default_reply_is_final_answer(self) -> None:
        provider = MockChatProvider(delay=0)
        messages = [{"role": "system", "content": "sys"}, {"role": "user", "content": "hi"}]
        response = asyncio.run(provider.invoke(messages, []))
        (tool_call,) = response.tool_calls
        assert tool_call.name == "final_answer"
        assert tool_call.arguments["answer"] == "mock answer"
        assert tool_call.arguments["researchSteps"] == "system: sys\nuser: hi"
        assert provider.invocations == 1

    def test_scripted_reply(self) -> None:
        script = json.dumps({"name": "mock_rag_graph_search", "arguments": {"query": "ml"}})
        provider = MockChatProvider(response=script, delay=0)
        response = asyncio.run(provider.invoke([{"role": "user", "content": "hi"}], []))
        (tool_call,) = response.tool_calls
        assert tool_call.name == "mock_rag_graph_search"
        assert tool_call.arguments == {"query": "ml"}

    def test_invalid_script(self) -> None:
        with pytest.raises(ConfigError):
            MockChatProvider(response="{not json")
