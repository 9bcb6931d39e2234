"""Form registration and lookup endpoints.

Implements:
- POST /forms
  - Validates construction invariants and stores the form (201)
- GET /forms/{form_id}
- POST /forms/{form_id}/sessions
  - Starts a response session for the form (201)
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from questionflow.logic.flow_service import FlowService
from questionflow.models.question import Form
from questionflow.routes.deps import get_flow_service
from questionflow.routes.sessions import session_view

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/forms", summary="Register a form")
def create_form(form: Form, service: FlowService = Depends(get_flow_service)):
    graph = service.register_form(form)
    body = Form(id=form.id, title=form.title, questions=list(graph.questions))
    return JSONResponse(body.model_dump(mode="json"), status_code=201)


@router.get("/forms/{form_id}", summary="Get a form")
def get_form(form_id: str, service: FlowService = Depends(get_flow_service)) -> Form:
    return service.get_form(form_id)


@router.post("/forms/{form_id}/sessions", summary="Start a response session")
def start_session(form_id: str, service: FlowService = Depends(get_flow_service)):
    session = service.start_session(form_id)
    logger.info("session_started session_id=%s form_id=%s", session.id, form_id)
    return JSONResponse(session_view(session).model_dump(mode="json"), status_code=201)


__all__ = ["router"]
