"""Central error mapping for flow engine exceptions.

Single source of truth for mapping domain error codes to HTTP statuses.
Handlers look up the exception's `code` first, then fall back to the status
registered for its class.
"""

from __future__ import annotations

from typing import Dict, Type

from questionflow.errors import (
    FlowError,
    FormDefinitionError,
    NotFoundError,
    SessionStateError,
)

STATUS_BY_CODE: Dict[str, int] = {
    "FORM_NOT_FOUND": 404,
    "SESSION_NOT_FOUND": 404,
    "QUESTION_NOT_FOUND": 404,
    "FORM_DEFINITION_INVALID": 422,
    "SESSION_STATE_CONFLICT": 409,
}

# Ordered most specific first
STATUS_BY_CLASS: Dict[Type[FlowError], int] = {
    NotFoundError: 404,
    FormDefinitionError: 422,
    SessionStateError: 409,
}

TITLES: Dict[int, str] = {
    404: "Not Found",
    409: "Conflict",
    422: "Unprocessable Entity",
    500: "Internal Server Error",
}


def status_for(exc: FlowError) -> int:
    status = STATUS_BY_CODE.get(exc.code)
    if status is not None:
        return status
    for cls, mapped in STATUS_BY_CLASS.items():
        if isinstance(exc, cls):
            return mapped
    return 500


__all__ = ["STATUS_BY_CODE", "STATUS_BY_CLASS", "TITLES", "status_for"]
