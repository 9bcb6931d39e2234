"""Domain event constants and publisher.

Defines event type constants and a simple publish() callable used by the
submission, completion and status flows. The default completion workflow
trigger publishes `session.completed` for downstream analytics and reports.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

ANSWER_SAVED = "answer.saved"
ANSWERS_INVALIDATED = "answers.invalidated"
SESSION_COMPLETED = "session.completed"
SESSION_PAUSED = "session.paused"
SESSION_RESUMED = "session.resumed"
SESSION_ABANDONED = "session.abandoned"

# In-memory buffer for domain events (test-only visibility)
EVENT_BUFFER: List[Dict[str, Any]] = []
_BUFFER_LOCK = threading.Lock()


def publish(event_type: str, payload: Dict[str, Any]) -> None:
    """Publish a domain event.

    In this minimal implementation, we log the event for observability and
    buffer it for test observation.
    """
    logger.info("event_publish type=%s payload=%s", event_type, payload)
    with _BUFFER_LOCK:
        EVENT_BUFFER.append({"type": event_type, "payload": payload})


def get_buffered_events(clear: bool = True) -> List[Dict[str, Any]]:
    """Return buffered domain events; optionally clear the buffer."""
    with _BUFFER_LOCK:
        events = list(EVENT_BUFFER)
        if clear:
            EVENT_BUFFER.clear()
    return events


def publish_completion(session_id: str) -> None:
    """Default completion workflow trigger."""
    publish(SESSION_COMPLETED, {"session_id": session_id})


__all__ = [
    "ANSWER_SAVED",
    "ANSWERS_INVALIDATED",
    "SESSION_COMPLETED",
    "SESSION_PAUSED",
    "SESSION_RESUMED",
    "SESSION_ABANDONED",
    "publish",
    "publish_completion",
    "get_buffered_events",
    "EVENT_BUFFER",
]
