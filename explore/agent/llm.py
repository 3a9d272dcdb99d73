"""
Agent LLM providers: OpenAI chat completions with tool calling, and a scripted mock.

Providers are built per turn from AgentConfig.llms[0] via the LLM registry. Temperature
is validated before any client is constructed, the same way for every provider.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from openai import AsyncOpenAI

from explore.agent.constants import OracleValues
from explore.core.config import MOCK_LLM_DELAY, OPENAI_API_KEY
from explore.core.errors import AgentGraphError, ConfigError, ServiceUnavailableError

logger = logging.getLogger(__name__)

OPENAI_PROVIDER = "openai"
MOCK_PROVIDER = "mock"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"


@dataclass(frozen=True)
class LLMToolCall:
    id: str
    name: str
    arguments: dict[str, Any]


@dataclass(frozen=True)
class LLMResponse:
    text: str | None
    tool_calls: tuple[LLMToolCall, ...] = ()
    total_tokens: int = 0


class ChatProvider(Protocol):
    async def invoke(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
        tool_choice: str | None = None,
    ) -> LLMResponse: ...


def validate_temperature(temperature: float | None) -> None:
    if temperature is not None and not 0 <= temperature <= 1:
        raise AgentGraphError("Temperature must be between 0 and 1")


class OpenAIChatProvider:
    """OpenAI chat completions with function tools."""

    def __init__(self, model: str | None = None, temperature: float | None = None, **_: Any) -> None:
        validate_temperature(temperature)
        if not OPENAI_API_KEY:
            raise ServiceUnavailableError("OPENAI_API_KEY environment variable required")
        self.model = model or DEFAULT_OPENAI_MODEL
        self.temperature = temperature
        self._client = AsyncOpenAI(api_key=OPENAI_API_KEY)

    async def invoke(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
        tool_choice: str | None = None,
    ) -> LLMResponse:
        logger.info("[llm:openai] IN  model=%s messages=%d tools=%s tool_choice=%s",
                    self.model, len(messages), [t["function"]["name"] for t in tools], tool_choice)
        kwargs: dict[str, Any] = {"model": self.model, "messages": messages}
        if tools:
            kwargs["tools"] = tools
            if tool_choice == OracleValues.CHOICE_TO_FORCE_TOOL_USE.value:
                kwargs["tool_choice"] = "required"
            elif tool_choice:
                kwargs["tool_choice"] = tool_choice
        if self.temperature is not None:
            kwargs["temperature"] = self.temperature
        response = await self._client.chat.completions.create(**kwargs)
        msg = response.choices[0].message if response.choices else None
        total_tokens = response.usage.total_tokens if getattr(response, "usage", None) else 0
        if not msg:
            return LLMResponse(text=None, total_tokens=total_tokens)
        content = (getattr(msg, "content", None) or "").strip() or None
        tool_calls = []
        for tc in getattr(msg, "tool_calls", None) or []:
            fn = getattr(tc, "function", None)
            if not fn:
                continue
            fargs = getattr(fn, "arguments", None) or "{}"
            try:
                args = json.loads(fargs) if isinstance(fargs, str) else fargs
            except json.JSONDecodeError:
                args = {}
            tool_calls.append(LLMToolCall(id=getattr(tc, "id", None) or "", name=fn.name or "", arguments=args))
        logger.info("[llm:openai] OUT tool_calls=%s content_len=%d tokens=%d",
                    [t.name for t in tool_calls], len(content or ""), total_tokens)
        return LLMResponse(text=content, tool_calls=tuple(tool_calls), total_tokens=total_tokens)


class MockChatProvider:
    """
    Deterministic provider for tests and demos.

    Replies after `delay` seconds with the tool call scripted in `response`
    ({"name": ..., "arguments": {...}} or a list of them), or with a canned
    final_answer call. final_answer calls get the received messages in researchSteps.
    """

    def __init__(
        self,
        response: str | None = None,
        temperature: float | None = None,
        delay: float = MOCK_LLM_DELAY,
        **_: Any,
    ) -> None:
        validate_temperature(temperature)
        self.delay = delay
        self.invocations = 0
        self._script = self._parse_script(response)

    @staticmethod
    def _parse_script(response: str | None) -> list[dict[str, Any]]:
        if not response:
            return [{"name": OracleValues.FINAL_ANSWER.value, "arguments": {"answer": "mock answer"}}]
        try:
            script = json.loads(response)
        except json.JSONDecodeError as e:
            raise ConfigError(f"mock response is not valid JSON: {e}", field_path="llms.providerArgs.response") from e
        return script if isinstance(script, list) else [script]

    async def invoke(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
        tool_choice: str | None = None,
    ) -> LLMResponse:
        self.invocations += 1
        await asyncio.sleep(self.delay)
        calls = []
        for i, item in enumerate(self._script):
            name = item.get("name", "")
            arguments = dict(item.get("arguments") or {})
            if name == OracleValues.FINAL_ANSWER.value:
                arguments["researchSteps"] = "\n".join(f"{m['role']}: {m['content']}" for m in messages)
            calls.append(LLMToolCall(id=f"mock_{self.invocations}_{i}", name=name, arguments=arguments))
        return LLMResponse(text=None, tool_calls=tuple(calls))


DEFAULT_LLMS = {
    OPENAI_PROVIDER: OpenAIChatProvider,
    MOCK_PROVIDER: MockChatProvider,
}
