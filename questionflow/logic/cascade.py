"""Invalidation cascade for answer changes.

After a real answer is written for a question, its direct dependents are
re-resolved against the updated answers. A dependent that is no longer
visible loses its record, and every transitive dependent of a removed record
loses its record too, since the value its rules examine no longer exists.

The cascade is an explicit worklist over the dependents index. It mutates
only the in-memory session; the caller commits the triggering write and the
whole cascade in one store transaction.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, List, Tuple

from questionflow.logic.dependency_graph import DependencyGraph
from questionflow.logic.visibility import should_show
from questionflow.models.session import ResponseSession

logger = logging.getLogger(__name__)


def invalidate_dependents(
    session: ResponseSession,
    graph: DependencyGraph,
    trigger_question_id: str,
) -> List[str]:
    """Remove stale dependent records; return the removed question ids in order."""
    removed: List[str] = []
    # (question_id, recheck): recheck=False means the source record was removed
    worklist: Deque[Tuple[str, bool]] = deque(
        (dep.id, True) for dep in graph.dependents_of(trigger_question_id)
    )
    while worklist:
        question_id, recheck = worklist.popleft()
        if question_id not in session.answers:
            continue
        if recheck and should_show(graph.question(question_id), session.answers):
            continue
        del session.answers[question_id]
        removed.append(question_id)
        logger.info(
            "cascade_invalidate session_id=%s question_id=%s trigger=%s reason=%s",
            session.id,
            question_id,
            trigger_question_id,
            "hidden" if recheck else "source_removed",
        )
        worklist.extend((dep.id, False) for dep in graph.dependents_of(question_id))
    if removed:
        logger.info(
            "cascade_complete session_id=%s trigger=%s removed=%s",
            session.id,
            trigger_question_id,
            removed,
        )
    return removed


__all__ = ["invalidate_dependents"]
