"""
State Binder: fill session-scoped tool arguments from the conversation state.

Bound keys always overwrite whatever the model proposed, then the arguments are
validated against the tool's schema.
"""

import logging
from typing import Any, Mapping

from pydantic import BaseModel, ValidationError

from explore.agent.constants import BINDING_STATE_KEYS
from explore.agent.state import ToolCallProposal
from explore.agent.tools import ToolDescriptor
from explore.core.errors import ToolArgumentError

logger = logging.getLogger(__name__)


def bind_arguments(
    proposal: ToolCallProposal, tool: ToolDescriptor, state: Mapping[str, Any]
) -> dict[str, Any]:
    """Raw proposal arguments with every state binding of `tool` overwritten."""
    arguments = dict(proposal.arguments)
    for key in tool.state_bindings:
        state_key = BINDING_STATE_KEYS[key]
        # the model may have spelled the field either way; neither survives
        arguments.pop(state_key, None)
        arguments[key.value] = state[state_key]
    return arguments


def bind(proposal: ToolCallProposal, tool: ToolDescriptor, state: Mapping[str, Any]) -> BaseModel:
    arguments = bind_arguments(proposal, tool, state)
    try:
        return tool.args_schema.model_validate(arguments)
    except ValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(p) for p in error["loc"]) or "<root>"
        logger.info("[binder:bind] tool=%s invalid field=%s: %s", tool.name, field, error["msg"])
        raise ToolArgumentError(tool.name, field, error["msg"]) from e
