"""FastAPI application package init for the conditional question flow engine.

This package exposes the application factory. It wires cross-cutting concerns
(problem+json handlers, request ids, configuration) and mounts the API
routers. Flow logic lives in `questionflow/logic/` and route handlers in
`questionflow/routes/`.
"""

from __future__ import annotations

from questionflow.main import create_app

__all__ = ["create_app"]
