"""Problem+JSON utilities and global exception handlers.

Defines the RFC7807 media type and handler callables that turn domain,
HTTP and validation errors into application/problem+json responses.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from questionflow.errors import FlowError
from questionflow.http.error_mapping import TITLES, status_for

PROBLEM_MEDIA_TYPE = "application/problem+json"

logger = logging.getLogger(__name__)


async def handle_flow_error(request: Request, exc: FlowError) -> JSONResponse:  # noqa: D401
    status = status_for(exc)
    logger.info(
        "flow_error code=%s status=%s path=%s detail=%s",
        exc.code,
        status,
        request.url.path,
        exc.message,
    )
    problem = {
        "title": TITLES.get(status, "Error"),
        "status": status,
        "detail": exc.message,
        "code": exc.code,
    }
    return JSONResponse(problem, status_code=status, media_type=PROBLEM_MEDIA_TYPE)


async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:  # noqa: D401
    status = int(exc.status_code or 500)
    if isinstance(exc.detail, dict):
        detail = exc.detail
    else:
        detail = {"title": TITLES.get(status, "Error"), "status": status, "detail": str(exc.detail or "")}
    return JSONResponse(
        detail,
        status_code=status,
        media_type=PROBLEM_MEDIA_TYPE,
        headers=dict(exc.headers) if exc.headers else None,
    )


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:  # noqa: D401
    problem = {
        "title": "Invalid Request",
        "status": 422,
        "detail": "Request validation failed",
        "errors": [
            {"loc": list(err.get("loc", ())), "msg": str(err.get("msg", "")), "type": str(err.get("type", ""))}
            for err in exc.errors()
        ],
    }
    return JSONResponse(problem, status_code=422, media_type=PROBLEM_MEDIA_TYPE)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:  # noqa: D401
    logger.error("unexpected_error path=%s", request.url.path, exc_info=exc)
    return JSONResponse(
        {"title": "Internal Server Error", "status": 500},
        status_code=500,
        media_type=PROBLEM_MEDIA_TYPE,
    )


__all__ = [
    "PROBLEM_MEDIA_TYPE",
    "handle_flow_error",
    "handle_http_exception",
    "handle_request_validation_error",
    "handle_unexpected_error",
]
