"""APIRouter registration for the flow engine service."""

from __future__ import annotations

from fastapi import APIRouter

from questionflow.routes.forms import router as forms_router
from questionflow.routes.sessions import router as sessions_router

api_router = APIRouter()
api_router.include_router(forms_router, tags=["Forms"])
api_router.include_router(sessions_router, tags=["Sessions"])

__all__ = ["api_router"]
