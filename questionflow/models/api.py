"""Pydantic models for request and response bodies."""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, Field

from questionflow.models.question import Question
from questionflow.models.session import SessionStatus


class SubmitAnswerRequest(BaseModel):
    value: Any = None


class AbandonRequest(BaseModel):
    reason: str = Field(default="user_abandoned", min_length=1)
    # False records a terminal abandonment instead of a resumable pause
    resumable: bool = True


class SubmitResult(BaseModel):
    next_question: Optional[Question] = None
    completed: bool = False
    errors: List[str] = Field(default_factory=list)
    invalidated: List[str] = Field(default_factory=list)
    stale: bool = False
    status: SessionStatus = SessionStatus.IN_PROGRESS


class CurrentQuestion(BaseModel):
    session_id: str
    status: SessionStatus
    question: Optional[Question] = None


class Progress(BaseModel):
    session_id: str
    visible_count: int
    answered_count: int
    completion_percentage: float
    missing_required: List[str] = Field(default_factory=list)
    can_complete: bool = False


class AnswerView(BaseModel):
    question_id: str
    value: Any = None
    skipped: bool = False
    answered_at: str
    revision_count: int = 0
    metadata: Optional[dict] = None


class SessionView(BaseModel):
    session_id: str
    form_id: str
    status: SessionStatus
    abandon_reason: Optional[str] = None
    answers: List[AnswerView] = Field(default_factory=list)


__all__ = [
    "SubmitAnswerRequest",
    "AbandonRequest",
    "SubmitResult",
    "CurrentQuestion",
    "Progress",
    "AnswerView",
    "SessionView",
]
