"""
Execution tracing and error classification for agent nodes.

A node method decorated with @traced records Enter/Success events on the
owner's ExecutionTrace. Failures are wrapped exactly once where they are first
caught: domain errors are re-raised untouched, anything else becomes an
UnexpectedAgentGraphError. The execution loop calls ExecutionTrace.wrap() at
its own boundary to attach the accumulated trace.
"""

import asyncio
import functools
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar

from explore.core.config import VERBOSE_LOGGING
from explore.core.errors import (
    AgentGraphError,
    TraceEntry,
    TracedAgentGraphError,
    UnexpectedAgentGraphError,
)

logger = logging.getLogger(__name__)

_MISSING = object()

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


class TraceEvent(str, Enum):
    ENTER = "Enter"
    SUCCESS = "Success"
    ERROR = "Error"
    RE_RAISING = "Re-raising"


def classify(error: BaseException, trace_id: str | None = None, step: str | None = None) -> AgentGraphError:
    """Return error unchanged if it is already an agent error, else wrap it as unexpected."""
    if isinstance(error, AgentGraphError):
        return error
    message = f"Error in {step}: {error}" if step else str(error)
    return UnexpectedAgentGraphError(message, trace_id=trace_id, step=step, original_error=error)


class ExecutionTrace:
    """Ordered {node, event, timestamp} log for one turn, mirrored to the logger."""

    def __init__(self, trace_id: str, owner: str, verbose: bool = VERBOSE_LOGGING) -> None:
        self.trace_id = trace_id
        self.owner = owner
        self.verbose = verbose
        self.entries: list[TraceEntry] = []

    def record(self, node: str, event: TraceEvent, data: Any = _MISSING) -> None:
        self.entries.append(TraceEntry(node=node, event=event.value, timestamp=time.time()))
        if self.verbose and data is not _MISSING:
            logger.debug("[%s] %s.%s - %s: %r", self.trace_id, self.owner, node, event.value, data)
        else:
            logger.debug("[%s] %s.%s - %s", self.trace_id, self.owner, node, event.value)

    def record_error(self, node: str, error: BaseException) -> None:
        self.entries.append(TraceEntry(node=node, event=TraceEvent.ERROR.value, timestamp=time.time()))
        logger.error(
            "[%s] %s.%s - %s: %s",
            self.trace_id,
            self.owner,
            node,
            TraceEvent.ERROR.value,
            error,
            exc_info=error,
        )

    def wrap(self, error: BaseException, step: str, user_message: str = "") -> TracedAgentGraphError:
        """Re-wrap a failure leaving the loop as a traced error. Instrumentation only."""
        if isinstance(error, TracedAgentGraphError):
            return error
        classified = classify(error, trace_id=self.trace_id, step=step)
        self.record(step, TraceEvent.RE_RAISING)
        return TracedAgentGraphError(
            f"Error in {step}: {classified.message}",
            trace_id=self.trace_id,
            step=step,
            original_error=classified,
            trace=self.entries,
            user_message=user_message,
        )


def traced(node: str) -> Callable[[F], F]:
    """Instrument an async method of an object exposing a `trace: ExecutionTrace` attribute."""

    def decorator(method: F) -> F:
        @functools.wraps(method)
        async def wrapper(self, *args, **kwargs):
            trace: ExecutionTrace = self.trace
            trace.record(node, TraceEvent.ENTER, args)
            try:
                result = await method(self, *args, **kwargs)
            except asyncio.CancelledError:
                raise
            except AgentGraphError:
                trace.record(node, TraceEvent.RE_RAISING)
                raise
            except Exception as exc:
                trace.record_error(node, exc)
                raise classify(exc, trace_id=trace.trace_id, step=node) from exc
            trace.record(node, TraceEvent.SUCCESS, result)
            return result

        return wrapper  # type: ignore[return-value]

    return decorator
