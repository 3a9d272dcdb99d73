"""
API routes: register endpoints; no agent logic, only delegate to run_agent.
"""

import asyncio
import logging

from fastapi import APIRouter, HTTPException, Request

from explore.agent.config_resolver import load_agent_config
from explore.agent.constants import InterlocutorType
from explore.agent.graph import run_agent
from explore.core.errors import AgentCancelledError, AgentGraphError, ConfigError, TracedAgentGraphError
from explore.core.session_store import append_message, get_history
from explore.schemas.query import QueryRequest, QueryResponse

logger = logging.getLogger(__name__)
router = APIRouter()

CLIENT_CLOSED_REQUEST = 499
DISCONNECT_POLL_INTERVAL = 0.5


# --- System ---

@router.get("/", tags=["system"])
def root():
    return {"status": "Explore agent backend running"}


@router.get("/health", tags=["system"])
def health():
    return {"ok": True}


# --- Query ---

async def _watch_disconnect(request: Request, cancel_event: asyncio.Event) -> None:
    while not cancel_event.is_set():
        if await request.is_disconnected():
            cancel_event.set()
            return
        await asyncio.sleep(DISCONNECT_POLL_INTERVAL)


@router.post(
    "/query",
    response_model=QueryResponse,
    tags=["query"],
    summary="Ask the agent (sync)",
    description="Send a question; receive answer, suggested questions, tools used. 499 if the client disconnects, 500 on agent failure.",
)
async def post_query(body: QueryRequest, request: Request) -> QueryResponse:
    logger.info("[api:post_query] IN  question=%r session_id=%s", body.question, body.session_id)
    try:
        config = load_agent_config()
    except ConfigError as e:
        logger.error("Agent config unavailable: %s", e.message)
        raise HTTPException(status_code=500, detail=e.message) from e
    history = get_history(body.session_id)
    logger.info("[api:post_query] history_len=%d for session", len(history))

    cancel_event = asyncio.Event()
    watcher = asyncio.create_task(_watch_disconnect(request, cancel_event))
    try:
        response = await run_agent(
            body.question,
            config,
            history,
            body.session_id,
            trigger=body.trigger,
            cancel_event=cancel_event,
        )
    except AgentCancelledError as e:
        logger.info("[api:post_query] cancelled trace=%s", e.trace_id)
        raise HTTPException(status_code=CLIENT_CLOSED_REQUEST, detail=e.user_message) from e
    except TracedAgentGraphError as e:
        logger.error("Agent failed: %s", e.to_dict())
        raise HTTPException(status_code=500, detail=e.user_message) from e
    except AgentGraphError as e:
        raise HTTPException(status_code=400, detail=e.message) from e
    finally:
        watcher.cancel()

    append_message(body.session_id, InterlocutorType.HUMAN.value, body.question)
    append_message(body.session_id, InterlocutorType.AI.value, response.answer)
    logger.info("[api:post_query] OUT tools_used=%s answer_len=%d", response.tools_used, len(response.answer))
    return QueryResponse(
        answer=response.answer,
        suggested_questions=response.suggested_questions,
        tools_used=response.tools_used,
        iterations=response.iterations,
        total_tokens=response.total_tokens,
    )
