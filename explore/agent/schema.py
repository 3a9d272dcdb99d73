"""
Schemas for the agent definition file and for tool arguments.

The agent definition is camelCase JSON; models accept either the camelCase alias
or the snake_case field name.
"""

from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeInt,
    PositiveInt,
    ValidationInfo,
    field_validator,
)

from explore.agent.constants import InterlocutorType


class ProviderArgs(BaseModel):
    """Provider-specific arguments. Unknown keys are passed through to the provider factory."""

    model_config = ConfigDict(extra="allow", frozen=True)

    model: str | None = None
    temperature: float | None = None
    response: str | None = Field(None, description="Scripted tool call (JSON) for the mock provider.")


class LLMConfig(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    provider: str
    provider_args: ProviderArgs = Field(default_factory=ProviderArgs, alias="providerArgs")


class ToolConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    config: dict[str, Any] | None = None


class AnswerFormatterConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str


class AgentConfig(BaseModel):
    """
    Validated agent definition. Loaded once and shared read-only by every turn.
    Unknown keys are ignored.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    system_prompt: str = Field(..., alias="systemPrompt")
    llms: tuple[LLMConfig, ...] = Field(..., min_length=1)
    tools: tuple[ToolConfig, ...]
    initial_tools: tuple[ToolConfig, ...] = Field(..., alias="initialTools", min_length=1)
    max_intermediate_steps: PositiveInt = Field(..., alias="maxIntermediateSteps")
    answer_formatters: tuple[AnswerFormatterConfig, ...] = Field((), alias="answerFormatters")
    default_error_message: str = Field(..., alias="defaultErrorMessage")
    embedding_model_name: str = Field(..., alias="embeddingModelName")
    vector_results_top_k: PositiveInt = Field(..., alias="vectorResultsTopK")
    index_name: str = Field(..., alias="indexName")
    force_tool_use: bool = Field(False, alias="forceToolUse")

    @field_validator("initial_tools")
    @classmethod
    def _initial_tools_in_tool_group(
        cls, value: tuple[ToolConfig, ...], info: ValidationInfo
    ) -> tuple[ToolConfig, ...]:
        names = {tool.name for tool in info.data.get("tools", ())}
        for tool in value:
            if tool.name not in names:
                raise ValueError(
                    f"Initial tool: {tool.name} must be one of the tool group: {', '.join(sorted(names))}"
                )
        return value

    @property
    def tool_names(self) -> frozenset[str]:
        """Names this agent may run. The registry may hold more."""
        return frozenset(tool.name for tool in self.tools)

    @property
    def formatter_name(self) -> str | None:
        return self.answer_formatters[0].name if self.answer_formatters else None

    def tool_config(self, name: str) -> dict[str, Any]:
        for tool in self.tools:
            if tool.name == name:
                return dict(tool.config or {})
        return {}


class ChatMessage(BaseModel):
    """One prior turn supplied by the caller."""

    type: InterlocutorType
    content: str | None = None
    timestamp: str | None = None


# --- tool arguments ---


class FinalAnswerArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    answer: str = Field(
        ..., description="The final answer to the user's question. Should be comprehensive and well-written."
    )
    research_steps: str = Field(
        "",
        alias="researchSteps",
        description="A bullet point list explaining the steps that were taken to research and arrive at this answer",
    )
    suggest_question_one: str = Field("", alias="suggestQuestionOne", description="A suggested first next question, must be unique")
    suggest_question_two: str = Field("", alias="suggestQuestionTwo", description="A suggested second next question, must be unique")
    suggest_question_three: str = Field("", alias="suggestQuestionThree", description="A suggested third next question, must be unique")


class RagSearchArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    chat_id: str = Field(..., alias="chatId", description="Key identifying the chat session")
    query: str = Field(
        ...,
        min_length=1,
        description='Natural language query to search for courses (e.g., "machine learning courses", "online business degrees")',
    )
    embedding_model_name: str = Field(
        ..., alias="embeddingModelName", description="Embeddings model name used for generating query embeddings"
    )
    top_k: PositiveInt = Field(..., alias="topK", description="Number of top results to return")
    index_name: str = Field(..., alias="indexName", description='Name of the vector index to search (e.g., "courses")')


# --- tool configs (AgentConfig.tools[].config) ---


class FinalAnswerToolConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    json_space: NonNegativeInt = Field(2, alias="jsonSpace")
    error_msg: str = Field("Failed to build the final answer.", alias="errorMsg")


class RagSearchToolConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sub_string_length: PositiveInt = Field(800, alias="subStringLength")
    rerank: bool = True
