"""Response session endpoints.

Implements:
- GET /sessions/{session_id}
- GET /sessions/{session_id}/current-question
- PUT /sessions/{session_id}/answers/{question_id}
  - Runs the submission pipeline; validation errors come back in the body
- POST /sessions/{session_id}/abandon
- POST /sessions/{session_id}/resume
  - Returns the question the session was waiting on
- GET /sessions/{session_id}/progress
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from questionflow.logic.flow_service import FlowService
from questionflow.models.api import (
    AbandonRequest,
    AnswerView,
    CurrentQuestion,
    Progress,
    SessionView,
    SubmitAnswerRequest,
    SubmitResult,
)
from questionflow.models.session import ResponseSession
from questionflow.routes.deps import get_flow_service

router = APIRouter()


def session_view(session: ResponseSession) -> SessionView:
    answers = sorted(session.answers.values(), key=lambda a: a.answered_at)
    return SessionView(
        session_id=session.id,
        form_id=session.form_id,
        status=session.status,
        abandon_reason=session.abandon_reason,
        answers=[
            AnswerView(
                question_id=a.question_id,
                value=a.value,
                skipped=a.skipped,
                answered_at=a.answered_at.isoformat(),
                revision_count=a.revision_count,
                metadata=a.metadata,
            )
            for a in answers
        ],
    )


@router.get("/sessions/{session_id}", summary="Get a response session")
def get_session(session_id: str, service: FlowService = Depends(get_flow_service)) -> SessionView:
    return session_view(service.get_session(session_id))


@router.get("/sessions/{session_id}/current-question", summary="Get the question to show now")
def current_question(session_id: str, service: FlowService = Depends(get_flow_service)) -> CurrentQuestion:
    return service.get_current_question(session_id)


@router.put("/sessions/{session_id}/answers/{question_id}", summary="Submit an answer")
def submit_answer(
    session_id: str,
    question_id: str,
    payload: SubmitAnswerRequest,
    service: FlowService = Depends(get_flow_service),
) -> SubmitResult:
    return service.submit_answer(session_id, question_id, payload.value)


@router.post("/sessions/{session_id}/abandon", summary="Pause or abandon a session")
def abandon_session(
    session_id: str,
    payload: AbandonRequest,
    service: FlowService = Depends(get_flow_service),
) -> SessionView:
    return session_view(service.abandon(session_id, payload.reason, resumable=payload.resumable))


@router.post("/sessions/{session_id}/resume", summary="Resume a paused session")
def resume_session(session_id: str, service: FlowService = Depends(get_flow_service)) -> CurrentQuestion:
    return service.resume(session_id)


@router.get("/sessions/{session_id}/progress", summary="Get completion progress")
def session_progress(session_id: str, service: FlowService = Depends(get_flow_service)) -> Progress:
    return service.progress(session_id)


__all__ = ["router", "session_view"]
