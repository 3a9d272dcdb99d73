"""
Per-turn conversation state and the values that flow between graph nodes.

ConversationState is the LangGraph state schema: one instance per turn, never
shared. List fields use additive reducers so nodes only return what they add.
"""

import operator
import time
from dataclasses import dataclass, field
from typing import Annotated, Any, TypedDict, Union

from explore.agent.constants import DeterministicAgentTrigger, ExecutionType
from explore.agent.schema import AgentConfig


@dataclass(frozen=True)
class ToolCallProposal:
    """A tool call proposed by the oracle or the override layer. Arguments are untrusted."""

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ProposedCalls:
    calls: tuple[ToolCallProposal, ...]
    execution_type: ExecutionType


@dataclass(frozen=True)
class FinalAnswer:
    """Arguments for the final answer tool, plus the formatter to render them with."""

    payload: dict[str, Any]
    formatter_name: str | None = None


OracleDecision = Union[FinalAnswer, ProposedCalls]


@dataclass(frozen=True)
class AgentAction:
    tool: str
    tool_input: dict[str, Any]
    success: bool = True


@dataclass(frozen=True)
class ExecutionStep:
    """One batch of executed tool calls. results[i] belongs to actions[i]."""

    actions: tuple[AgentAction, ...]
    results: tuple[str, ...]
    execution_type: ExecutionType
    timestamp: float = field(default_factory=time.time)


class ConversationState(TypedDict):
    input: str
    chat_history: str
    intermediate_steps: Annotated[list[ExecutionStep], operator.add]
    iteration: int
    chat_id: str
    top_k: int
    embedding_model_name: str
    index_name: str
    tools_used: Annotated[list[str], operator.add]
    pending_trigger: DeterministicAgentTrigger | None
    decision: OracleDecision | None
    answer: dict[str, Any] | None
    total_tokens: Annotated[int, operator.add]


def new_conversation_state(
    message: str,
    chat_history: str,
    chat_id: str,
    config: AgentConfig,
    trigger: DeterministicAgentTrigger | None = None,
) -> ConversationState:
    """Fresh state for one turn, seeded with the session bindings from config."""
    return {
        "input": message,
        "chat_history": chat_history,
        "intermediate_steps": [],
        "iteration": 0,
        "chat_id": chat_id,
        "top_k": config.vector_results_top_k,
        "embedding_model_name": config.embedding_model_name,
        "index_name": config.index_name,
        "tools_used": [],
        "pending_trigger": trigger,
        "decision": None,
        "answer": None,
        "total_tokens": 0,
    }
