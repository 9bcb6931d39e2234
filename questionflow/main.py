"""Application factory and service wiring.

`create_app` builds the flow service from configuration (in-memory stores, or
SQL stores with migrations applied), registers the problem+json exception
handlers and the request-id middleware, and mounts the API under `/api/v1`
next to a `/health` check. Nothing is instantiated at import time.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from sqlalchemy import text as sql_text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from questionflow.config import AppConfig, load_config
from questionflow.db.base import get_engine
from questionflow.db.migrations_runner import apply_migrations
from questionflow.errors import FlowError
from questionflow.http.problem import (
    handle_flow_error,
    handle_http_exception,
    handle_request_validation_error,
    handle_unexpected_error,
)
from questionflow.http.request_id import RequestIdMiddleware
from questionflow.logging_setup import configure_logging
from questionflow.logic.enrichment import Enricher, EnrichmentDispatcher
from questionflow.logic.flow_service import FlowService
from questionflow.logic.repository_sql import SqlFormRepository, SqlSessionStore
from questionflow.logic.session_store import InMemoryFormRepository, InMemorySessionStore
from questionflow.routes import api_router

logger = logging.getLogger(__name__)


def build_service(config: AppConfig, enricher: Optional[Enricher] = None) -> tuple[FlowService, Optional[Engine]]:
    """Wire stores, enrichment and the flow service from configuration."""
    dispatcher = None
    if config.enrichment.enabled and enricher is not None:
        dispatcher = EnrichmentDispatcher(
            enricher,
            timeout_seconds=config.enrichment.timeout_seconds,
            max_workers=config.enrichment.max_workers,
        )
    elif config.enrichment.enabled:
        logger.warning("enrichment_enabled_without_enricher; enrichment disabled")

    if config.store.backend == "sql":
        engine = get_engine(config.database.dsn)
        applied = apply_migrations(engine)
        logger.info("store_ready backend=sql migrations_applied=%s", applied)
        service = FlowService(SqlFormRepository(engine), SqlSessionStore(engine), enrichment=dispatcher)
        return service, engine
    logger.info("store_ready backend=memory")
    return FlowService(InMemoryFormRepository(), InMemorySessionStore(), enrichment=dispatcher), None


def _health_check(engine: Optional[Engine]) -> Callable[[], dict]:
    def check() -> dict:
        if engine is None:
            return {"status": "ok", "db": False}
        try:
            with engine.connect() as conn:
                conn.execute(sql_text("SELECT 1"))
            return {"status": "ok", "db": True}
        except SQLAlchemyError as e:
            logger.error("Health DB check failed", exc_info=True)
            return {"status": "degraded", "db": False, "reason": str(e)}

    return check


def create_app(
    service: Optional[FlowService] = None,
    config: Optional[AppConfig] = None,
    enricher: Optional[Enricher] = None,
) -> FastAPI:
    cfg = config or load_config()
    # Configure global logging before app instantiation so all modules emit
    configure_logging(cfg.log_level)

    engine: Optional[Engine] = None
    if service is None:
        service, engine = build_service(cfg, enricher)
    flow_service = service

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        flow_service.shutdown()

    app = FastAPI(title="questionflow", lifespan=lifespan)
    app.state.flow_service = flow_service

    app.add_exception_handler(FlowError, handle_flow_error)
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(api_router, prefix="/api/v1")

    health_check = _health_check(engine)

    @app.get("/health")
    def health():  # pragma: no cover - trivial
        return health_check()

    return app


# Intentionally do not instantiate the app at import time to prevent side effects.
