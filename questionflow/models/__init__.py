"""Domain and API models for the flow engine."""

from questionflow.models.question import Form, Question
from questionflow.models.rules import Rule, RuleSet
from questionflow.models.session import AnswerRecord, ResponseSession, SessionStatus

__all__ = [
    "Form",
    "Question",
    "Rule",
    "RuleSet",
    "AnswerRecord",
    "ResponseSession",
    "SessionStatus",
]
