"""Visibility resolution for conditional questions.

Combines a question's rule set into a show/hide decision and computes the
visible subset of a form for a given answer set.

Rules whose source question was skipped are set aside before combining: the
remaining rules decide on their own, and a question whose every source was
skipped is hidden as well, so a skipped branch carries its dependents with it.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping

from questionflow.logic.rule_evaluator import evaluate
from questionflow.models.question import Question
from questionflow.models.session import AnswerRecord

logger = logging.getLogger(__name__)


def _skipped_sources(question: Question, answers: Mapping[str, AnswerRecord]) -> set[str]:
    skipped = set()
    for rule in question.rules.items:
        record = answers.get(rule.source_question_id)
        if record is not None and record.skipped:
            skipped.add(rule.source_question_id)
    return skipped


def should_show(question: Question, answers: Mapping[str, AnswerRecord]) -> bool:
    """Return True if `question` is currently eligible to be shown.

    Questions without conditional logic (disabled, or no rules) are always
    visible. Otherwise every rule on a non-skipped source is evaluated and
    combined with AND (all true) or OR (any true).
    """
    if not question.conditional_enabled or not question.rules.items:
        return True
    skipped = _skipped_sources(question, answers)
    rules = [r for r in question.rules.items if r.source_question_id not in skipped]
    if not rules:
        logger.debug(
            "visibility_sources_skipped question_id=%s skipped=%s",
            question.id,
            sorted(skipped),
        )
        return False
    results = [evaluate(rule, answers) for rule in rules]
    visible = all(results) if question.rules.combinator == "AND" else any(results)
    logger.debug(
        "visibility_resolved question_id=%s combinator=%s results=%s skipped=%s visible=%s",
        question.id,
        question.rules.combinator,
        results,
        sorted(skipped),
        visible,
    )
    return visible


def visible_question_ids(
    questions: Iterable[Question],
    answers: Mapping[str, AnswerRecord],
) -> list[str]:
    """Ids of the visible questions, in the order given."""
    return [q.id for q in questions if should_show(q, answers)]


__all__ = ["should_show", "visible_question_ids"]
