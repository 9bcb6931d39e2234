"""Route dependencies."""

from __future__ import annotations

from fastapi import Request

from questionflow.logic.flow_service import FlowService


def get_flow_service(request: Request) -> FlowService:
    return request.app.state.flow_service


__all__ = ["get_flow_service"]
