"""
Agent errors.

Three tiers: AgentGraphError for expected, named failure conditions (bad config,
bad arguments, unsupported strategy); UnexpectedAgentGraphError for anything
else caught at a node boundary; TracedAgentGraphError for a failure that crossed
the execution loop and carries the turn's trace. Only tool-execution domain
errors are recovered; see explore.agent.graph.
"""

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class TraceEntry:
    """One instrumentation event: which node, what happened, when (epoch seconds)."""

    node: str
    event: str
    timestamp: float


class AgentGraphError(Exception):
    """Base domain error for the agent graph."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {"error_type": self.__class__.__name__, "message": self.message}


class ConfigError(AgentGraphError):
    """Agent configuration failed validation or references something unknown."""

    def __init__(self, message: str, field_path: str = "") -> None:
        self.field_path = field_path
        super().__init__(f"{field_path}: {message}" if field_path else message)


class UnknownToolError(AgentGraphError):
    def __init__(self, tool_name: str, known: list[str]) -> None:
        self.tool_name = tool_name
        super().__init__(f"Tool not found: {tool_name}. The tool must be one of: {', '.join(known)}")


class UnknownFormatterError(AgentGraphError):
    def __init__(self, formatter_name: str, known: list[str]) -> None:
        self.formatter_name = formatter_name
        super().__init__(
            f"Answer formatter not found: {formatter_name}. The answer formatter must be one of: {', '.join(known)}"
        )


class ToolArgumentError(AgentGraphError):
    """Bound tool arguments failed schema validation."""

    def __init__(self, tool_name: str, field: str, reason: str) -> None:
        self.tool_name = tool_name
        self.field = field
        super().__init__(f"Invalid arguments for tool {tool_name}: {field}: {reason}")


class ServiceUnavailableError(AgentGraphError):
    """Raised when a required service (e.g. vector store, embeddings API) is unavailable or misconfigured."""


class UnexpectedAgentGraphError(AgentGraphError):
    def __init__(
        self,
        message: str,
        trace_id: str | None = None,
        step: str | None = None,
        original_error: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.trace_id = trace_id
        self.step = step
        self.original_error = original_error

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result.update({"trace_id": self.trace_id, "step": self.step})
        return result


class TracedAgentGraphError(AgentGraphError):
    def __init__(
        self,
        message: str,
        trace_id: str | None = None,
        step: str | None = None,
        original_error: BaseException | None = None,
        trace: list[TraceEntry] | None = None,
        user_message: str = "",
    ) -> None:
        super().__init__(message)
        self.trace_id = trace_id
        self.step = step
        self.original_error = original_error
        self.trace = list(trace or [])
        self.user_message = user_message or message

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result.update(
            {
                "trace_id": self.trace_id,
                "step": self.step,
                "user_message": self.user_message,
                "original_error": self.original_error.__class__.__name__ if self.original_error else None,
                "trace": [asdict(entry) for entry in self.trace],
            }
        )
        return result


class AgentCancelledError(TracedAgentGraphError):
    """The caller cancelled the turn (e.g. disconnected) while it was in flight."""
