"""Answer submission pipeline.

Runs validation, the answer write, the invalidation cascade, traversal and the
completion check against an in-memory working copy of a session. Nothing is
persisted here: the caller holds the per-session lock and commits the working
copy in one store transaction, so the write, the cascade and the resulting
traversal decision land together or not at all.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from questionflow.errors import SessionStateError
from questionflow.logic.cascade import invalidate_dependents
from questionflow.logic.completion import can_complete, transition
from questionflow.logic.dependency_graph import DependencyGraph
from questionflow.logic.question_types import HandlerFactory, handler_for
from questionflow.logic.traversal import pending_question, next_question
from questionflow.logic.visibility import should_show
from questionflow.models.api import SubmitResult
from questionflow.models.question import Question
from questionflow.models.session import AnswerRecord, ResponseSession, SessionStatus, utcnow

logger = logging.getLogger(__name__)


@dataclass
class SubmitOutcome:
    result: SubmitResult
    # Record written by this submission; None when nothing was written
    written: Optional[AnswerRecord] = None
    completed_now: bool = False


def accepts_answer(session: ResponseSession, graph: DependencyGraph, question: Question) -> bool:
    """Whether a submission for `question` is current for this session.

    A question is current when it is the next question traversal would return,
    or when it already holds a record and is still visible (a revision of an
    earlier answer).
    """
    if question.id in session.answers:
        return should_show(question, session.answers)
    pending, _hidden = pending_question(session, graph)
    return pending is not None and pending.id == question.id


def _finish(
    session: ResponseSession,
    graph: DependencyGraph,
    now: datetime,
    *,
    invalidated: list[str] | None = None,
    stale: bool = False,
) -> tuple[SubmitResult, bool]:
    upcoming = next_question(session, graph, now=now)
    completed_now = False
    if upcoming is None and can_complete(session, graph, now=now):
        transition(session, SessionStatus.COMPLETED, now=now)
        completed_now = True
    result = SubmitResult(
        next_question=upcoming,
        completed=session.status == SessionStatus.COMPLETED,
        invalidated=list(invalidated or []),
        stale=stale,
        status=session.status,
    )
    return result, completed_now


def submit(
    session: ResponseSession,
    graph: DependencyGraph,
    question_id: str,
    raw_value: Any,
    *,
    handler_factory: HandlerFactory = handler_for,
    now: datetime | None = None,
) -> SubmitOutcome:
    """Apply one answer submission to `session` in place."""
    stamp = now or utcnow()
    question = graph.question(question_id)

    if session.status == SessionStatus.COMPLETED:
        logger.info("submit_ignored_completed session_id=%s question_id=%s", session.id, question_id)
        return SubmitOutcome(
            result=SubmitResult(next_question=None, completed=True, status=session.status)
        )
    if session.status != SessionStatus.IN_PROGRESS:
        raise SessionStateError(
            f"session {session.id} is {session.status.value}; resume it before answering",
            code=f"SESSION_{session.status.value.upper()}",
        )

    if not accepts_answer(session, graph, question):
        logger.info(
            "submit_stale session_id=%s question_id=%s; returning recomputed next question",
            session.id,
            question_id,
        )
        result, completed_now = _finish(session, graph, stamp, stale=True)
        return SubmitOutcome(result=result, completed_now=completed_now)

    handler = handler_factory(question)
    errors = list(handler.validate(raw_value))
    if errors:
        logger.info("submit_invalid session_id=%s question_id=%s errors=%s", session.id, question_id, errors)
        return SubmitOutcome(
            result=SubmitResult(next_question=question, errors=errors, status=session.status)
        )
    value = handler.process(raw_value)

    existing = session.answers.get(question_id)
    if existing is not None and not existing.skipped and existing.value == value:
        # Same value already stored: first write wins, no cascade to run
        logger.info("submit_duplicate session_id=%s question_id=%s", session.id, question_id)
        result, completed_now = _finish(session, graph, stamp)
        return SubmitOutcome(result=result, completed_now=completed_now)

    if existing is None:
        record = AnswerRecord(
            session_id=session.id,
            question_id=question_id,
            value=value,
            skipped=False,
            answered_at=stamp,
            revision_count=1,
        )
    else:
        record = existing.model_copy(
            update={
                "value": value,
                "skipped": False,
                "answered_at": stamp,
                "revision_count": existing.revision_count + 1,
                "metadata": None,
            }
        )
    session.answers[question_id] = record
    session.updated_at = stamp
    logger.info(
        "answer_written session_id=%s question_id=%s revision=%s",
        session.id,
        question_id,
        record.revision_count,
    )

    invalidated = invalidate_dependents(session, graph, question_id)
    result, completed_now = _finish(session, graph, stamp, invalidated=invalidated)
    return SubmitOutcome(result=result, written=record, completed_now=completed_now)


__all__ = ["SubmitOutcome", "accepts_answer", "submit"]
