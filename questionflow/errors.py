"""Domain exceptions raised by the flow engine.

Each exception carries a stable `code` token; the HTTP layer maps codes to
problem+json statuses via `questionflow.http.error_mapping`.
"""

from __future__ import annotations


class FlowError(Exception):
    code = "FLOW_ERROR"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class NotFoundError(FlowError):
    code = "NOT_FOUND"


class FormNotFoundError(NotFoundError):
    code = "FORM_NOT_FOUND"


class SessionNotFoundError(NotFoundError):
    code = "SESSION_NOT_FOUND"


class QuestionNotFoundError(NotFoundError):
    code = "QUESTION_NOT_FOUND"


class FormDefinitionError(FlowError):
    """A form violates a construction invariant (ordering, backward-only rules)."""

    code = "FORM_DEFINITION_INVALID"


class SessionStateError(FlowError):
    """The requested transition or mutation is not allowed in the current status."""

    code = "SESSION_STATE_CONFLICT"


__all__ = [
    "FlowError",
    "NotFoundError",
    "FormNotFoundError",
    "SessionNotFoundError",
    "QuestionNotFoundError",
    "FormDefinitionError",
    "SessionStateError",
]
