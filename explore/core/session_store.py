"""
In-memory chat session store used by the HTTP layer. Keyed by chat id.

The agent itself never reads this store: the caller passes the history in for
each turn and appends the new exchange afterwards.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)

# chat_id -> list of {"type": "human"|"ai", "content": str, "timestamp": iso str}
_sessions: dict[str, list[dict[str, Any]]] = {}
_lock = threading.Lock()


def get_history(chat_id: str) -> list[dict[str, Any]]:
    """Return chat history for the session (copy so caller cannot mutate store)."""
    if not chat_id or not isinstance(chat_id, str):
        logger.info("[session_store:get_history] IN  chat_id=%r -> empty", chat_id)
        return []
    with _lock:
        out = [dict(m) for m in _sessions.get(chat_id) or []]
    logger.info("[session_store:get_history] IN  chat_id=%s OUT messages=%d", chat_id[:16], len(out))
    return out


def append_message(chat_id: str, message_type: str, content: str) -> None:
    """Append one message to the session's history."""
    if not chat_id or not isinstance(chat_id, str):
        logger.info("[session_store:append_message] skip invalid chat_id=%r", chat_id)
        return
    entry = {
        "type": message_type,
        "content": content or "",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    with _lock:
        _sessions.setdefault(chat_id, []).append(entry)
    logger.info("[session_store:append_message] chat_id=%s type=%s content_len=%d", chat_id[:16], message_type, len(content or ""))


def clear() -> None:
    """Drop every session."""
    with _lock:
        _sessions.clear()
