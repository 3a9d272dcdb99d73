"""
Registries for tools, LLM providers and answer formatters.

Built once per process (default_registry) and passed into the execution loop.
Every lookup by name happens here; unknown names raise domain errors.
"""

import logging
from dataclasses import dataclass, field, replace
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping

from explore.agent.constants import DeterministicAgentTrigger
from explore.agent.formatters import DEFAULT_FORMATTERS, AnswerFormatter
from explore.agent.llm import DEFAULT_LLMS, ChatProvider
from explore.agent.schema import AgentConfig
from explore.agent.tools import DEFAULT_TOOLS, DEFAULT_TRIGGERS, FINAL_ANSWER_TOOL, ToolDescriptor
from explore.core.errors import ConfigError, UnknownFormatterError, UnknownToolError

logger = logging.getLogger(__name__)

LLMFactory = Callable[..., ChatProvider]


class ToolRegistry:
    """Read-only name -> tool and trigger -> tool lookups."""

    def __init__(
        self,
        tools: Iterable[ToolDescriptor],
        triggers: Mapping[DeterministicAgentTrigger, str],
    ) -> None:
        self._tools = MappingProxyType({tool.name: tool for tool in tools})
        for trigger, name in triggers.items():
            if name not in self._tools:
                raise ConfigError(f"trigger {trigger.value} points at unknown tool {name}", field_path="triggers")
        self._triggers = MappingProxyType(dict(triggers))

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    @property
    def triggers(self) -> Mapping[DeterministicAgentTrigger, str]:
        return self._triggers

    def names(self) -> list[str]:
        return sorted(self._tools)

    def resolve(self, name: str) -> ToolDescriptor:
        tool = self._tools.get(name)
        if tool is None:
            raise UnknownToolError(name, self.names())
        return tool

    def resolve_trigger(self, trigger: DeterministicAgentTrigger) -> ToolDescriptor:
        return self.resolve(self._triggers[trigger])


@dataclass(frozen=True)
class AgentRegistry:
    tools: ToolRegistry
    llms: Mapping[str, LLMFactory] = field(default_factory=dict)
    formatters: Mapping[str, AnswerFormatter] = field(default_factory=dict)

    def llm(self, provider: str, **provider_args: Any) -> ChatProvider:
        factory = self.llms.get(provider)
        if factory is None:
            raise ConfigError(
                f"LLM not found: {provider}. The LLM must be one of: {', '.join(sorted(self.llms))}",
                field_path="llms.provider",
            )
        return factory(**provider_args)

    def with_overrides(
        self,
        tools: Iterable[ToolDescriptor] | None = None,
        llms: Mapping[str, LLMFactory] | None = None,
        formatters: Mapping[str, AnswerFormatter] | None = None,
    ) -> "AgentRegistry":
        """Copy with some entries replaced (tests inject fakes this way)."""
        changes: dict[str, Any] = {}
        if tools is not None:
            merged = {name: self.tools.resolve(name) for name in self.tools.names()}
            merged.update({tool.name: tool for tool in tools})
            changes["tools"] = ToolRegistry(merged.values(), self.tools.triggers)
        if llms is not None:
            changes["llms"] = MappingProxyType({**self.llms, **llms})
        if formatters is not None:
            changes["formatters"] = MappingProxyType({**self.formatters, **formatters})
        return replace(self, **changes)

    def validate(self, config: AgentConfig) -> None:
        """Check every name the config references. Raises ConfigError naming the field."""
        if FINAL_ANSWER_TOOL not in self.tools:
            raise ConfigError(f"registry has no {FINAL_ANSWER_TOOL} tool", field_path="tools")
        for group, tools in (("tools", config.tools), ("initialTools", config.initial_tools)):
            for i, tool in enumerate(tools):
                if tool.name not in self.tools:
                    raise ConfigError(UnknownToolError(tool.name, self.tools.names()).message,
                                      field_path=f"{group}.{i}.name")
        for i, llm in enumerate(config.llms):
            if llm.provider not in self.llms:
                raise ConfigError(
                    f"LLM not found: {llm.provider}. The LLM must be one of: {', '.join(sorted(self.llms))}",
                    field_path=f"llms.{i}.provider",
                )
        for i, formatter in enumerate(config.answer_formatters):
            if formatter.name not in self.formatters:
                raise ConfigError(UnknownFormatterError(formatter.name, sorted(self.formatters)).message,
                                  field_path=f"answerFormatters.{i}.name")


@lru_cache(maxsize=1)
def default_registry() -> AgentRegistry:
    registry = AgentRegistry(
        tools=ToolRegistry(DEFAULT_TOOLS, DEFAULT_TRIGGERS),
        llms=MappingProxyType(dict(DEFAULT_LLMS)),
        formatters=MappingProxyType(dict(DEFAULT_FORMATTERS)),
    )
    logger.info("[registry] tools=%s llms=%s formatters=%s",
                registry.tools.names(), sorted(registry.llms), sorted(registry.formatters))
    return registry
