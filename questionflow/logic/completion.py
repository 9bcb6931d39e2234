"""Completion checks, progress and the session status machine.

A session may complete once traversal is exhausted and every visible required
question holds a real (non-skipped) answer. Visibility is re-resolved over
the final answer set, so a required question hidden by a later change does
not block completion.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional

from questionflow.errors import SessionStateError
from questionflow.logic.dependency_graph import DependencyGraph
from questionflow.logic.traversal import next_question, pending_question
from questionflow.logic.visibility import should_show
from questionflow.models.api import Progress
from questionflow.models.session import ResponseSession, SessionStatus, utcnow

logger = logging.getLogger(__name__)

# Allowed status transitions; completed and abandoned are terminal
TRANSITIONS: Dict[SessionStatus, FrozenSet[SessionStatus]] = {
    SessionStatus.IN_PROGRESS: frozenset(
        {SessionStatus.COMPLETED, SessionStatus.PAUSED, SessionStatus.ABANDONED}
    ),
    SessionStatus.PAUSED: frozenset({SessionStatus.IN_PROGRESS}),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.ABANDONED: frozenset(),
}


def _has_real_answer(session: ResponseSession, question_id: str) -> bool:
    record = session.answers.get(question_id)
    return record is not None and not record.skipped


def missing_required(session: ResponseSession, graph: DependencyGraph) -> List[str]:
    """Visible required questions that still lack a real answer."""
    return [
        q.id
        for q in graph.questions
        if q.required
        and should_show(q, session.answers)
        and not _has_real_answer(session, q.id)
    ]


def can_complete(
    session: ResponseSession,
    graph: DependencyGraph,
    now: datetime | None = None,
) -> bool:
    if next_question(session, graph, now=now) is not None:
        return False
    missing = missing_required(session, graph)
    if missing:
        logger.info("completion_blocked session_id=%s missing_required=%s", session.id, missing)
        return False
    return True


def progress(session: ResponseSession, graph: DependencyGraph) -> Progress:
    visible = [q for q in graph.questions if should_show(q, session.answers)]
    answered = [q for q in visible if _has_real_answer(session, q.id)]
    percentage = round(len(answered) / len(visible) * 100, 2) if visible else 0.0
    missing = missing_required(session, graph)
    return Progress(
        session_id=session.id,
        visible_count=len(visible),
        answered_count=len(answered),
        completion_percentage=percentage,
        missing_required=missing,
        can_complete=not missing and pending_question(session, graph)[0] is None,
    )


def transition(
    session: ResponseSession,
    target: SessionStatus,
    *,
    reason: Optional[str] = None,
    now: datetime | None = None,
) -> None:
    """Move `session` to `target`, raising SessionStateError when not allowed."""
    if target not in TRANSITIONS[session.status]:
        raise SessionStateError(
            f"session {session.id} cannot move from {session.status.value} to {target.value}",
            code=f"SESSION_{session.status.value.upper()}",
        )
    stamp = now or utcnow()
    previous = session.status
    session.status = target
    session.updated_at = stamp
    if target == SessionStatus.COMPLETED:
        session.completed_at = stamp
    if target in (SessionStatus.PAUSED, SessionStatus.ABANDONED):
        session.abandon_reason = reason
    if target == SessionStatus.IN_PROGRESS:
        session.abandon_reason = None
    logger.info(
        "session_transition session_id=%s from=%s to=%s reason=%s",
        session.id,
        previous.value,
        target.value,
        reason,
    )


__all__ = ["TRANSITIONS", "missing_required", "can_complete", "progress", "transition"]
