"""
Agent tools: a final-answer builder, vector-index retrieval, and a no-op retrieval double.

Each tool is a ToolDescriptor: a pydantic args schema plus an async execute(args, tool_config).
Arguments named in state_bindings are filled by the State Binder and hidden from the LLM.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping

from pydantic import BaseModel, ValidationError

from explore.agent.constants import (
    MOCK_RAG_SEARCH_TOOL,
    RAG_SEARCH_TOOL,
    DeterministicAgentTrigger,
    OracleValues,
    ToolBindingKeys,
)
from explore.agent.schema import (
    FinalAnswerArgs,
    FinalAnswerToolConfig,
    RagSearchArgs,
    RagSearchToolConfig,
)
from explore.core.errors import AgentGraphError, ConfigError
from explore.services.retrieval_service import retrieve_context

logger = logging.getLogger(__name__)

ToolExecute = Callable[[Any, Mapping[str, Any]], Awaitable[str]]

FINAL_ANSWER_TOOL = OracleValues.FINAL_ANSWER.value

SEARCH_BINDINGS = (
    ToolBindingKeys.CHAT_ID,
    ToolBindingKeys.TOP_K,
    ToolBindingKeys.EMBEDDING_MODEL_NAME,
    ToolBindingKeys.INDEX_NAME,
)


@dataclass(frozen=True)
class ToolDescriptor:
    name: str
    description: str
    args_schema: type[BaseModel]
    execute: ToolExecute
    state_bindings: tuple[ToolBindingKeys, ...] = ()
    parallel_safe: bool = True

    def function_schema(self, description: str | None = None) -> dict[str, Any]:
        """OpenAI function-calling schema, without the state-bound arguments."""
        schema = self.args_schema.model_json_schema(by_alias=True)
        hidden = {key.value for key in self.state_bindings}
        properties = {k: v for k, v in schema.get("properties", {}).items() if k not in hidden}
        required = [k for k in schema.get("required", []) if k not in hidden]
        parameters: dict[str, Any] = {"type": "object", "properties": properties}
        if required:
            parameters["required"] = required
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": description or self.description,
                "parameters": parameters,
            },
        }


def _tool_settings(model: type[BaseModel], tool_name: str, raw: Mapping[str, Any] | None) -> Any:
    try:
        return model.model_validate(dict(raw or {}))
    except ValidationError as e:
        error = e.errors()[0]
        path = ".".join(str(p) for p in error["loc"])
        raise ConfigError(error["msg"], field_path=f"tools.{tool_name}.config.{path}") from e


async def final_answer(args: FinalAnswerArgs, tool_config: Mapping[str, Any]) -> str:
    """Build the JSON answer payload returned to the caller."""
    settings = _tool_settings(FinalAnswerToolConfig, FINAL_ANSWER_TOOL, tool_config)
    payload = {
        "answer": args.answer,
        "researchSteps": args.research_steps,
        "suggestedQuestions": [
            args.suggest_question_one,
            args.suggest_question_two,
            args.suggest_question_three,
        ],
    }
    try:
        return json.dumps(payload, indent=settings.json_space or None, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        logger.error("[tools:final_answer] serialization failed: %s", e)
        raise AgentGraphError(f"{settings.error_msg} {e}") from e


async def rag_graph_search(args: RagSearchArgs, tool_config: Mapping[str, Any]) -> str:
    """Search the session's vector index. Blocking I/O runs in a worker thread."""
    settings = _tool_settings(RagSearchToolConfig, RAG_SEARCH_TOOL, tool_config)
    logger.info("[tools:rag_graph_search] IN  chat_id=%s query=%r index=%s",
                args.chat_id, args.query, args.index_name)
    chunks = await asyncio.to_thread(
        retrieve_context,
        args.query,
        index_name=args.index_name,
        embedding_model_name=args.embedding_model_name,
        top_k=args.top_k,
        rerank=settings.rerank,
    )
    if not chunks:
        return "No matching results found."
    parts = []
    for c in chunks:
        meta = c.get("metadata") or {}
        text = (c.get("text") or "")[: settings.sub_string_length]
        parts.append(f"[id={c.get('id')} source={meta.get('source', '')}]\n{text}")
    logger.info("[tools:rag_graph_search] OUT chunks=%d", len(parts))
    return "\n\n---\n\n".join(parts)


async def mock_rag_graph_search(args: RagSearchArgs, tool_config: Mapping[str, Any]) -> str:
    return "mock rag graph search"


FINAL_ANSWER = ToolDescriptor(
    name=FINAL_ANSWER_TOOL,
    description="Returns a natural language response to the user in `answer`",
    args_schema=FinalAnswerArgs,
    execute=final_answer,
)

RAG_GRAPH_SEARCH = ToolDescriptor(
    name=RAG_SEARCH_TOOL,
    description="Search the knowledge base for passages relevant to a natural language query",
    args_schema=RagSearchArgs,
    execute=rag_graph_search,
    state_bindings=SEARCH_BINDINGS,
)

MOCK_RAG_GRAPH_SEARCH = ToolDescriptor(
    name=MOCK_RAG_SEARCH_TOOL,
    description="Mock knowledge base search used in tests",
    args_schema=RagSearchArgs,
    execute=mock_rag_graph_search,
    state_bindings=SEARCH_BINDINGS,
)

DEFAULT_TOOLS: tuple[ToolDescriptor, ...] = (FINAL_ANSWER, RAG_GRAPH_SEARCH, MOCK_RAG_GRAPH_SEARCH)

DEFAULT_TRIGGERS: dict[DeterministicAgentTrigger, str] = {
    DeterministicAgentTrigger.ABORT: FINAL_ANSWER_TOOL,
    DeterministicAgentTrigger.RAG_GRAPH_SEARCH: RAG_SEARCH_TOOL,
}
