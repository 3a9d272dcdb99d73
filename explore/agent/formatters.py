"""Answer formatters: named post-processing applied to the final answer payload."""

import logging
from typing import Any, Callable, Mapping

from explore.core.errors import UnknownFormatterError

logger = logging.getLogger(__name__)

AnswerFormatter = Callable[[Mapping[str, Any]], dict[str, Any]]

DEFAULT_FORMATTER = "default"
THOUGHTLESS_FORMATTER = "thoughtless"

# Fields that describe how the answer was reached rather than the answer itself
REASONING_FIELDS = frozenset({"researchSteps", "research_steps"})


def default_formatter(payload: Mapping[str, Any]) -> dict[str, Any]:
    return dict(payload)


def thoughtless_formatter(payload: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in payload.items() if k not in REASONING_FIELDS}


DEFAULT_FORMATTERS: dict[str, AnswerFormatter] = {
    DEFAULT_FORMATTER: default_formatter,
    THOUGHTLESS_FORMATTER: thoughtless_formatter,
}


def format_answer(
    payload: Mapping[str, Any],
    formatter_name: str | None,
    formatters: Mapping[str, AnswerFormatter] = DEFAULT_FORMATTERS,
) -> dict[str, Any]:
    """Apply the named formatter; the default formatter when no name is given."""
    name = formatter_name or DEFAULT_FORMATTER
    formatter = formatters.get(name)
    if formatter is None:
        raise UnknownFormatterError(name, sorted(formatters))
    logger.debug("[formatters:format_answer] formatter=%s fields=%s", name, sorted(payload))
    return formatter(payload)
