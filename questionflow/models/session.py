"""Response session and answer record types."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    PAUSED = "paused"
    ABANDONED = "abandoned"


class AnswerRecord(BaseModel):
    session_id: str
    question_id: str
    value: Any = None
    skipped: bool = False
    answered_at: datetime = Field(default_factory=utcnow)
    # Number of real writes that changed the value; skip records stay at 0
    revision_count: int = 0
    # Enrichment output; never consulted by visibility or traversal
    metadata: Optional[Dict[str, Any]] = None


class ResponseSession(BaseModel):
    id: str
    form_id: str
    status: SessionStatus = SessionStatus.IN_PROGRESS
    answers: Dict[str, AnswerRecord] = Field(default_factory=dict)
    abandon_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (SessionStatus.COMPLETED, SessionStatus.ABANDONED)


__all__ = ["SessionStatus", "AnswerRecord", "ResponseSession", "utcnow"]
