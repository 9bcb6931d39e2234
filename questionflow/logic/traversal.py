"""Forward traversal over a session's form.

The frontier is the highest position already processed (answered or skipped).
Traversal scans forward from the frontier, recording a skip record for each
hidden question it passes, and stops at the first visible one. Skip records
are durable, so a processed position is never evaluated again unless the
invalidation cascade removes its record and the frontier falls back below it.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from questionflow.logic.dependency_graph import DependencyGraph
from questionflow.logic.visibility import should_show
from questionflow.models.question import Question
from questionflow.models.session import AnswerRecord, ResponseSession, utcnow

logger = logging.getLogger(__name__)


def frontier(session: ResponseSession, graph: DependencyGraph) -> int:
    positions = [graph.position_of(qid) for qid in session.answers]
    return max((p for p in positions if p is not None), default=0)


def pending_question(
    session: ResponseSession,
    graph: DependencyGraph,
) -> Tuple[Optional[Question], List[Question]]:
    """Return (next visible question, hidden questions before it) without writing.

    Hidden questions are evaluated against the answers as they would stand
    once the earlier ones in the list have been skipped.
    """
    answers = dict(session.answers)
    hidden: List[Question] = []
    for question in graph.after(frontier(session, graph)):
        if should_show(question, answers):
            return question, hidden
        hidden.append(question)
        answers[question.id] = AnswerRecord(session_id=session.id, question_id=question.id, skipped=True)
    return None, hidden


def next_question(
    session: ResponseSession,
    graph: DependencyGraph,
    now: datetime | None = None,
) -> Optional[Question]:
    """Find the next visible question, durably skipping hidden ones on the way.

    Mutates `session.answers`; callers persist the session afterwards.
    Returns None once every remaining position has been processed.
    """
    stamp = now or utcnow()
    start = frontier(session, graph)
    for question in graph.after(start):
        if should_show(question, session.answers):
            logger.info(
                "traversal_next session_id=%s question_id=%s position=%s frontier=%s",
                session.id,
                question.id,
                question.position,
                start,
            )
            return question
        session.answers[question.id] = AnswerRecord(
            session_id=session.id,
            question_id=question.id,
            value=None,
            skipped=True,
            answered_at=stamp,
        )
        logger.info(
            "traversal_skip session_id=%s question_id=%s position=%s",
            session.id,
            question.id,
            question.position,
        )
    logger.info("traversal_exhausted session_id=%s frontier=%s", session.id, start)
    return None


__all__ = ["frontier", "pending_question", "next_question"]
