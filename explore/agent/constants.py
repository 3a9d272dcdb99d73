"""Enumerations shared by the agent graph."""

from enum import Enum


class DeterministicAgentTrigger(str, Enum):
    ABORT = "__ABORT__"
    RAG_GRAPH_SEARCH = "__RAG_GRAPH_SEARCH__"


class ExecutionType(str, Enum):
    PARALLEL = "parallel"
    SEQUENTIAL = "sequential"


class InterlocutorType(str, Enum):
    HUMAN = "human"
    AI = "ai"


class OracleValues(str, Enum):
    ORACLE = "oracle"
    TOOLS = "tools"
    FINAL_ANSWER = "final_answer"
    CHOICE_TO_FORCE_TOOL_USE = "any"


class ToolBindingKeys(str, Enum):
    """Tool argument names that are always filled from the conversation state."""

    CHAT_ID = "chatId"
    TOP_K = "topK"
    EMBEDDING_MODEL_NAME = "embeddingModelName"
    INDEX_NAME = "indexName"


# ToolBindingKeys -> ConversationState key
BINDING_STATE_KEYS: dict[ToolBindingKeys, str] = {
    ToolBindingKeys.CHAT_ID: "chat_id",
    ToolBindingKeys.TOP_K: "top_k",
    ToolBindingKeys.EMBEDDING_MODEL_NAME: "embedding_model_name",
    ToolBindingKeys.INDEX_NAME: "index_name",
}

RAG_SEARCH_TOOL = "rag_graph_search"
MOCK_RAG_SEARCH_TOOL = "mock_rag_graph_search"
