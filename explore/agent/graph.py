"""
LangGraph execution loop: oracle → (tools → oracle)* → final_answer → END.

One AgentOrchestrator per user turn; it owns the turn's ConversationState and trace.
The oracle node checks the iteration ceiling and pending triggers before calling the
LLM. Tool-execution domain errors are recorded in the scratchpad and the loop goes on;
anything else ends the turn as a TracedAgentGraphError.
"""

import asyncio
import json
import logging
import uuid
from typing import Any, Iterable, Literal, Mapping

from langgraph.graph import END, StateGraph

from explore.agent.binder import bind
from explore.agent.constants import DeterministicAgentTrigger, ExecutionType, OracleValues
from explore.agent.formatters import format_answer
from explore.agent.llm import ChatProvider
from explore.agent.oracle import OracleStep, available_tools, format_chat_history
from explore.agent.override import DeterministicOverride, detect_trigger, fallback_answer
from explore.agent.registry import AgentRegistry, default_registry
from explore.agent.schema import AgentConfig, ChatMessage
from explore.agent.state import (
    AgentAction,
    ConversationState,
    ExecutionStep,
    FinalAnswer,
    ProposedCalls,
    ToolCallProposal,
    new_conversation_state,
)
from explore.agent.tools import FINAL_ANSWER_TOOL
from explore.core.errors import (
    AgentCancelledError,
    AgentGraphError,
    TracedAgentGraphError,
    UnexpectedAgentGraphError,
    UnknownToolError,
)
from explore.core.tracing import ExecutionTrace, TraceEvent, classify, traced
from explore.schemas.query import AgentResponse

logger = logging.getLogger(__name__)

ORACLE = OracleValues.ORACLE.value
TOOLS = OracleValues.TOOLS.value
FINAL = OracleValues.FINAL_ANSWER.value


class AgentOrchestrator:
    def __init__(
        self,
        config: AgentConfig,
        registry: AgentRegistry | None = None,
        trace_id: str | None = None,
    ) -> None:
        self.config = config
        self.registry = registry or default_registry()
        self.trace = ExecutionTrace(trace_id or uuid.uuid4().hex, owner=type(self).__name__)
        self.override = DeterministicOverride(config, self.registry)
        self.llm: ChatProvider | None = None
        self.oracle: OracleStep | None = None
        self.graph = self.build_graph()

    def _build_llm(self) -> ChatProvider:
        llm_config = self.config.llms[0]
        return self.registry.llm(llm_config.provider, **llm_config.provider_args.model_dump(exclude_none=True))

    # --- nodes ---

    @traced(ORACLE)
    async def oracle_node(self, state: ConversationState) -> dict:
        iteration = state["iteration"]
        if iteration >= self.config.max_intermediate_steps:
            logger.warning("[graph:oracle] iteration ceiling %d reached, synthesizing final answer",
                           self.config.max_intermediate_steps)
            return {"decision": fallback_answer(self.config), "pending_trigger": None}
        forced = self.override.check(state)
        if forced is not None:
            return {"decision": forced, "pending_trigger": None}
        decision, tokens = await self.oracle.decide(state, available_tools(state, self.config, self.registry))
        return {"decision": decision, "pending_trigger": None, "total_tokens": tokens}

    @traced(TOOLS)
    async def tools_node(self, state: ConversationState) -> dict:
        decision: ProposedCalls = state["decision"]
        logger.info("[graph:tools] IN  iteration=%d type=%s calls=%s", state["iteration"],
                    decision.execution_type.value, [c.name for c in decision.calls])
        if decision.execution_type is ExecutionType.PARALLEL:
            steps = [await self._run_parallel(decision.calls, state)]
        else:
            steps = []
            for call in decision.calls:
                action, result = await self._run_call(call, state)
                steps.append(ExecutionStep((action,), (result,), ExecutionType.SEQUENTIAL))
        actions = [a for step in steps for a in step.actions]
        results = [r for step in steps for r in step.results]
        trigger = next((t for t in map(detect_trigger, results) if t is not None), None)
        logger.info("[graph:tools] OUT ok=%s trigger=%s",
                    [a.success for a in actions], trigger.value if trigger else None)
        return {
            "intermediate_steps": steps,
            "tools_used": [a.tool for a in actions if a.tool in self.config.tool_names],
            "iteration": state["iteration"] + 1,
            "pending_trigger": trigger,
        }

    @traced(FINAL)
    async def final_answer_node(self, state: ConversationState) -> dict:
        decision: FinalAnswer = state["decision"]
        tool = self.registry.tools.resolve(FINAL_ANSWER_TOOL)
        args = bind(ToolCallProposal(tool.name, decision.payload), tool, state)
        raw = await tool.execute(args, self.config.tool_config(tool.name))
        answer = format_answer(json.loads(raw), decision.formatter_name, self.registry.formatters)
        return {"answer": answer}

    def _route_after_oracle(self, state: ConversationState) -> Literal["tools", "final_answer"]:
        return FINAL if isinstance(state["decision"], FinalAnswer) else TOOLS

    # --- tool execution ---

    async def _run_call(self, proposal: ToolCallProposal, state: Mapping[str, Any]) -> tuple[AgentAction, str]:
        """Resolve, bind and execute one call. Domain errors become a failed action."""
        node = f"tool:{proposal.name}"
        try:
            if proposal.name not in self.config.tool_names:
                raise UnknownToolError(proposal.name, sorted(self.config.tool_names))
            tool = self.registry.tools.resolve(proposal.name)
            args = bind(proposal, tool, state)
            result = await tool.execute(args, self.config.tool_config(tool.name))
        except asyncio.CancelledError:
            raise
        except (UnexpectedAgentGraphError, TracedAgentGraphError):
            raise
        except AgentGraphError as e:
            self.trace.record(node, TraceEvent.ERROR, e.to_dict())
            logger.warning("[graph:tools] %s failed: %s", proposal.name, e.message)
            return AgentAction(proposal.name, dict(proposal.arguments), success=False), f"Tool {proposal.name} failed: {e.message}"
        except Exception as e:
            self.trace.record_error(node, e)
            raise classify(e, trace_id=self.trace.trace_id, step=node) from e
        self.trace.record(node, TraceEvent.SUCCESS, result)
        return AgentAction(tool.name, args.model_dump(by_alias=True)), result

    async def _run_parallel(self, calls: Iterable[ToolCallProposal], state: Mapping[str, Any]) -> ExecutionStep:
        outcomes = await asyncio.gather(*(self._run_call(c, state) for c in calls), return_exceptions=True)
        # siblings always finish; the first fatal error in declared order ends the turn
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        return ExecutionStep(
            tuple(action for action, _ in outcomes),
            tuple(result for _, result in outcomes),
            ExecutionType.PARALLEL,
        )

    # --- graph ---

    def build_graph(self):
        graph = StateGraph(ConversationState)

        graph.add_node(ORACLE, self.oracle_node)
        graph.add_node(TOOLS, self.tools_node)
        graph.add_node(FINAL, self.final_answer_node)

        graph.set_entry_point(ORACLE)
        graph.add_conditional_edges(ORACLE, self._route_after_oracle)
        graph.add_edge(TOOLS, ORACLE)
        graph.add_edge(FINAL, END)

        return graph.compile()

    def mermaid(self) -> str:
        return self.graph.get_graph().draw_mermaid()

    async def execute(
        self, state: ConversationState, cancel_event: asyncio.Event | None = None
    ) -> ConversationState:
        """Run the turn to completion, or until cancel_event is set."""
        # oracle + tools per iteration, plus the final oracle and final_answer
        run_config = {"recursion_limit": 2 * self.config.max_intermediate_steps + 5}
        try:
            self.llm = self._build_llm()
            self.oracle = OracleStep(self.config, self.registry, self.llm)
            run = asyncio.ensure_future(self.graph.ainvoke(state, config=run_config))
            if cancel_event is None:
                return await run
            waiter = asyncio.ensure_future(cancel_event.wait())
            try:
                done, _ = await asyncio.wait({run, waiter}, return_when=asyncio.FIRST_COMPLETED)
            except asyncio.CancelledError:
                run.cancel()
                raise
            finally:
                waiter.cancel()
            if run in done:
                return run.result()
            run.cancel()
            await asyncio.gather(run, return_exceptions=True)
            self.trace.record("execute", TraceEvent.ERROR)
            logger.info("[graph:execute] trace=%s cancelled by caller", self.trace.trace_id)
            raise AgentCancelledError(
                "Turn cancelled by caller",
                trace_id=self.trace.trace_id,
                step="execute",
                trace=self.trace.entries,
                user_message=self.config.default_error_message,
            )
        except TracedAgentGraphError:
            raise
        except asyncio.CancelledError:
            raise
        except Exception as e:
            step = self.trace.entries[-1].node if self.trace.entries else "execute"
            raise self.trace.wrap(e, step, user_message=self.config.default_error_message) from e


def _to_response(final: Mapping[str, Any], orchestrator: AgentOrchestrator) -> AgentResponse:
    answer = final.get("answer") or {}
    tools_used = list(dict.fromkeys(final.get("tools_used") or []))
    return AgentResponse(
        answer=answer.get("answer", ""),
        research_steps=answer.get("researchSteps"),
        suggested_questions=[q for q in answer.get("suggestedQuestions") or [] if q],
        tools_used=tools_used,
        iterations=final.get("iteration", 0),
        total_tokens=final.get("total_tokens", 0),
        trace_id=orchestrator.trace.trace_id,
        graph_mermaid=orchestrator.mermaid(),
    )


async def run_agent(
    message: str,
    config: AgentConfig,
    chat_history: Iterable[ChatMessage | Mapping[str, Any]] = (),
    chat_id: str | None = None,
    *,
    registry: AgentRegistry | None = None,
    trigger: DeterministicAgentTrigger | None = None,
    cancel_event: asyncio.Event | None = None,
) -> AgentResponse:
    """
    Run one agent turn. Raises TracedAgentGraphError (AgentCancelledError when
    cancel_event fires) carrying the turn's trace and the configured default message.
    """
    if not message or not message.strip():
        raise AgentGraphError("message is required")
    chat_id = chat_id or uuid.uuid4().hex
    orchestrator = AgentOrchestrator(config, registry)
    logger.info("[run_agent] START trace=%s chat_id=%s trigger=%s",
                orchestrator.trace.trace_id, chat_id, trigger.value if trigger else None)
    state = new_conversation_state(message.strip(), format_chat_history(chat_history), chat_id, config, trigger)
    final = await orchestrator.execute(state, cancel_event)
    response = _to_response(final, orchestrator)
    logger.info("[run_agent] END iterations=%d tools_used=%s tokens=%d",
                response.iterations, response.tools_used, response.total_tokens)
    return response
