"""
Deterministic overrides: a pending trigger on the state replaces the oracle's LLM call.

ABORT ends the turn with whatever the last tool step produced, or the configured
default message when it produced nothing. RAG_GRAPH_SEARCH forces the retrieval
tool on the user's input, unless retrieval already ran this turn or this agent
does not list it.
"""

import logging
from typing import Any, Mapping, Sequence

from explore.agent.constants import DeterministicAgentTrigger, ExecutionType
from explore.agent.registry import AgentRegistry
from explore.agent.schema import AgentConfig
from explore.agent.state import ExecutionStep, FinalAnswer, OracleDecision, ProposedCalls, ToolCallProposal

logger = logging.getLogger(__name__)


def detect_trigger(result: str) -> DeterministicAgentTrigger | None:
    """First trigger token found in a tool result, if any."""
    for trigger in DeterministicAgentTrigger:
        if trigger.value in result:
            return trigger
    return None


def strip_triggers(text: str) -> str:
    for trigger in DeterministicAgentTrigger:
        text = text.replace(trigger.value, "")
    return text.strip()


def fallback_answer(config: AgentConfig) -> FinalAnswer:
    return FinalAnswer({"answer": config.default_error_message}, config.formatter_name)


def abort_answer(config: AgentConfig, steps: Sequence[ExecutionStep]) -> FinalAnswer:
    """Final answer built from the successful outputs of the last step."""
    if not steps:
        return fallback_answer(config)
    last = steps[-1]
    outputs = [strip_triggers(r) for a, r in zip(last.actions, last.results) if a.success]
    content = "\n".join(o for o in outputs if o)
    if not content:
        return fallback_answer(config)
    return FinalAnswer({"answer": content}, config.formatter_name)


class DeterministicOverride:
    def __init__(self, config: AgentConfig, registry: AgentRegistry) -> None:
        self.config = config
        self.registry = registry

    def check(self, state: Mapping[str, Any]) -> OracleDecision | None:
        trigger = state.get("pending_trigger")
        if trigger is None:
            return None
        tool = self.registry.tools.resolve_trigger(trigger)
        if trigger is DeterministicAgentTrigger.ABORT:
            logger.info("[override:check] %s -> %s", trigger.value, tool.name)
            return abort_answer(self.config, state.get("intermediate_steps") or [])
        if tool.name not in self.config.tool_names:
            logger.warning("[override:check] %s ignored, %s is not configured", trigger.value, tool.name)
            return None
        if tool.name in (state.get("tools_used") or []):
            logger.info("[override:check] %s ignored, %s already ran", trigger.value, tool.name)
            return None
        logger.info("[override:check] %s -> %s", trigger.value, tool.name)
        return ProposedCalls(
            (ToolCallProposal(tool.name, {"query": state["input"]}),),
            ExecutionType.SEQUENTIAL,
        )
