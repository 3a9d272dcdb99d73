"""Schemas for the query endpoint and the agent turn result."""

from pydantic import BaseModel, Field

from explore.agent.constants import DeterministicAgentTrigger


class QueryRequest(BaseModel):
    """Request body for POST /query. History is stored server-side by session_id."""

    question: str = Field(..., min_length=1, description="User question for the agent.")
    session_id: str = Field(..., min_length=1, description="Session ID; chat history is stored on the server for this session.")
    trigger: DeterministicAgentTrigger | None = Field(
        None, description="Optional deterministic trigger applied before the first oracle call."
    )


class AgentResponse(BaseModel):
    """Result of one agent turn."""

    answer: str = Field(..., description="Final answer from the agent.")
    research_steps: str | None = Field(None, description="Reasoning notes; absent when the formatter strips them.")
    suggested_questions: list[str] = Field(default_factory=list)
    tools_used: list[str] = Field(default_factory=list, description="Tools executed during the turn, in first-use order.")
    iterations: int = Field(0, description="Completed oracle/tool iterations.")
    total_tokens: int = Field(0, description="Tokens reported by the LLM provider across the turn.")
    trace_id: str = ""
    graph_mermaid: str = Field("", description="Mermaid rendering of the compiled execution graph.")


class QueryResponse(BaseModel):
    """Response for POST /query."""

    answer: str = Field(..., description="Final answer from the agent.")
    suggested_questions: list[str] = Field(default_factory=list)
    tools_used: list[str] = Field(default_factory=list)
    iterations: int = 0
    total_tokens: int = 0
