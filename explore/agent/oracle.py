"""
Oracle step: one LLM call that either proposes tool calls or produces the final answer.

Prompt: system prompt, recent chat history, the user's input, then a scratchpad of
the tool calls already executed this turn. The final_answer tool is always offered.
"""

import json
import logging
from typing import Any, Iterable, Mapping, Sequence

from explore.agent.constants import ExecutionType, OracleValues
from explore.agent.llm import ChatProvider, LLMResponse
from explore.agent.registry import AgentRegistry
from explore.agent.schema import AgentConfig, ChatMessage
from explore.agent.state import (
    ExecutionStep,
    FinalAnswer,
    OracleDecision,
    ProposedCalls,
    ToolCallProposal,
)
from explore.agent.tools import FINAL_ANSWER_TOOL, ToolDescriptor
from explore.core.config import CHAT_HISTORY_WINDOW
from explore.core.errors import AgentGraphError

logger = logging.getLogger(__name__)


def format_chat_history(
    history: Iterable[ChatMessage | Mapping[str, Any]], window: int = CHAT_HISTORY_WINDOW
) -> str:
    """Last `window` messages as `[timestamp] type: content` lines."""
    messages = [m if isinstance(m, ChatMessage) else ChatMessage.model_validate(m) for m in history]
    lines = []
    for m in messages[-window:] if window > 0 else []:
        prefix = f"[{m.timestamp}] " if m.timestamp else ""
        lines.append(f"{prefix}{m.type.value}: {m.content or ''}")
    return "\n".join(lines)


def render_scratchpad(steps: Sequence[ExecutionStep]) -> str:
    blocks = []
    for step in steps:
        calls = "\n".join(
            f"Tool: {action.tool}, input: {json.dumps(action.tool_input, ensure_ascii=False)}\nOutput: {result}"
            for action, result in zip(step.actions, step.results)
        )
        blocks.append(f"{step.execution_type.value} Execution:\n{calls}")
    return "\n---\n".join(blocks)


def build_messages(state: Mapping[str, Any], config: AgentConfig) -> list[dict[str, Any]]:
    messages: list[dict[str, Any]] = [{"role": "system", "content": config.system_prompt}]
    if state.get("chat_history"):
        messages.append({"role": "system", "content": f"Chat history:\n{state['chat_history']}"})
    messages.append({"role": "user", "content": state["input"]})
    scratchpad = render_scratchpad(state.get("intermediate_steps") or [])
    if scratchpad:
        messages.append({"role": "assistant", "content": f"scratchpad: {scratchpad}"})
    return messages


def available_tools(
    state: Mapping[str, Any], config: AgentConfig, registry: AgentRegistry
) -> list[ToolDescriptor]:
    """Tools offered this iteration: initialTools first, then unused tools; final_answer always."""
    group = config.initial_tools if state.get("iteration", 0) == 0 else config.tools
    used = set(state.get("tools_used") or [])
    offered = [
        registry.tools.resolve(tool.name)
        for tool in group
        if tool.name != FINAL_ANSWER_TOOL and tool.name not in used
    ]
    offered.append(registry.tools.resolve(FINAL_ANSWER_TOOL))
    return offered


class OracleStep:
    def __init__(self, config: AgentConfig, registry: AgentRegistry, llm: ChatProvider) -> None:
        self.config = config
        self.registry = registry
        self.llm = llm

    def _descriptions(self) -> dict[str, str]:
        return {tool.name: tool.description for tool in self.config.tools}

    async def decide(
        self, state: Mapping[str, Any], tools: Sequence[ToolDescriptor]
    ) -> tuple[OracleDecision, int]:
        """Ask the LLM for the next move. Returns the decision and the tokens it cost."""
        descriptions = self._descriptions()
        schemas = [tool.function_schema(descriptions.get(tool.name)) for tool in tools]
        tool_choice = OracleValues.CHOICE_TO_FORCE_TOOL_USE.value if self.config.force_tool_use else None
        messages = build_messages(state, self.config)
        logger.info("[oracle:decide] IN  iteration=%s tools=%s", state.get("iteration"), [t.name for t in tools])
        response = await self.llm.invoke(messages, schemas, tool_choice=tool_choice)
        decision = self._to_decision(response)
        logger.info("[oracle:decide] OUT decision=%s", type(decision).__name__)
        return decision, response.total_tokens

    def _to_decision(self, response: LLMResponse) -> OracleDecision:
        if response.tool_calls:
            for call in response.tool_calls:
                if call.name == FINAL_ANSWER_TOOL:
                    return FinalAnswer(dict(call.arguments), self.config.formatter_name)
            proposals: list[ToolCallProposal] = []
            seen: set[tuple[str, str]] = set()
            for call in response.tool_calls:
                key = (call.name, json.dumps(call.arguments, sort_keys=True, default=str))
                if key in seen:
                    continue
                seen.add(key)
                proposals.append(ToolCallProposal(call.name, dict(call.arguments)))
            return ProposedCalls(tuple(proposals), self._execution_type(proposals))
        if response.text:
            return FinalAnswer({"answer": response.text}, self.config.formatter_name)
        raise AgentGraphError("LLM returned neither a tool call nor an answer")

    def _execution_type(self, proposals: Sequence[ToolCallProposal]) -> ExecutionType:
        if len(proposals) < 2:
            return ExecutionType.SEQUENTIAL
        # unknown names fail fast at execution, they never block parallelism
        for p in proposals:
            if p.name in self.registry.tools and not self.registry.tools.resolve(p.name).parallel_safe:
                return ExecutionType.SEQUENTIAL
        return ExecutionType.PARALLEL
