"""Single-rule evaluation against a session's answer records.

A missing record (never answered, or removed by invalidation) makes every
operator false except `is_empty`. A present record is compared through its
canonical text, numeric or list view depending on the operator family. A skip
record reads as empty: it matches `is_empty`, and it equals only a value that
names the skip itself ("skipped", "skip", "empty" or the empty string).
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from questionflow.models.answer_canonical import canonicalize_answer_value, is_blank, to_number
from questionflow.models.rules import (
    EmptinessRule,
    ListRule,
    NumericRule,
    PatternRule,
    Rule,
    StringRule,
)
from questionflow.models.session import AnswerRecord

logger = logging.getLogger(__name__)


def _text(value: Any) -> str:
    return canonicalize_answer_value(value) or ""


def _items(value: Any) -> list[str]:
    if isinstance(value, (list, tuple)):
        return [_text(v) for v in value]
    return [_text(value)]


def _evaluate_string(rule: StringRule, value: Any) -> bool:
    op = rule.operator
    expected = rule.value
    if op in ("contains", "not_contains") and isinstance(value, (list, tuple)):
        found = expected in _items(value)
        return found if op == "contains" else not found
    actual = _text(value)
    if op == "equals":
        return actual == expected
    if op == "not_equals":
        return actual != expected
    if op == "contains":
        return expected in actual
    if op == "not_contains":
        return expected not in actual
    if op == "starts_with":
        return actual.startswith(expected)
    return actual.endswith(expected)


def _evaluate_numeric(rule: NumericRule, value: Any) -> bool:
    actual = to_number(value)
    if actual is None:
        return False
    op = rule.operator
    if op == "greater_than":
        return actual > rule.value
    if op == "less_than":
        return actual < rule.value
    if op == "greater_than_or_equal":
        return actual >= rule.value
    return actual <= rule.value


def _evaluate_list(rule: ListRule, value: Any) -> bool:
    listed = set(rule.value)
    hit = any(item in listed for item in _items(value))
    return hit if rule.operator == "in_list" else not hit


_SKIP_TOKENS = frozenset({"skipped", "skip", "empty", ""})


def _evaluate_skipped(rule: Rule) -> bool:
    op = rule.operator
    if op in ("is_empty", "is_not_empty"):
        return op == "is_empty"
    if op in ("equals", "not_equals"):
        names_skip = rule.value.strip().lower() in _SKIP_TOKENS
        return names_skip if op == "equals" else not names_skip
    if op in ("in_list", "not_in_list"):
        names_skip = any(item.strip().lower() in _SKIP_TOKENS for item in rule.value)
        return names_skip if op == "in_list" else not names_skip
    # Nothing to contain, match or compare numerically
    return False


def evaluate(rule: Rule, answers: Mapping[str, AnswerRecord]) -> bool:
    """Return True when `rule` holds for the current answers."""
    record = answers.get(rule.source_question_id)
    if record is None:
        return rule.operator == "is_empty"

    if record.skipped:
        return _evaluate_skipped(rule)
    value = record.value
    if isinstance(rule, EmptinessRule):
        blank = is_blank(value)
        return blank if rule.operator == "is_empty" else not blank
    if isinstance(rule, StringRule):
        return _evaluate_string(rule, value)
    if isinstance(rule, NumericRule):
        return _evaluate_numeric(rule, value)
    if isinstance(rule, ListRule):
        return _evaluate_list(rule, value)
    if isinstance(rule, PatternRule):
        return rule.pattern.search(_text(value)) is not None
    logger.warning("rule_operator_unknown operator=%s", getattr(rule, "operator", None))
    return False


__all__ = ["evaluate"]
