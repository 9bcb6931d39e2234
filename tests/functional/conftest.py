"""Functional test bootstrap for the flow engine.

Pins configuration to the in-memory store before any app import so tests never
pick up a developer's DATABASE_URL, and resets the shared engine and the
domain event buffer around each test.
"""

from __future__ import annotations

import os

import pytest

os.environ["QUESTIONFLOW_STORE"] = "memory"
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ.pop("TEST_DATABASE_URL", None)
os.environ["ENRICHMENT_ENABLED"] = "false"


@pytest.fixture(autouse=True)
def _clean_events():
    from questionflow.logic.events import get_buffered_events

    get_buffered_events(clear=True)
    yield
    get_buffered_events(clear=True)


@pytest.fixture
def memory_service():
    from questionflow.logic.flow_service import FlowService
    from questionflow.logic.session_store import InMemoryFormRepository, InMemorySessionStore

    service = FlowService(InMemoryFormRepository(), InMemorySessionStore())
    yield service
    service.shutdown()


@pytest.fixture
def sqlite_engine():
    """Fresh private in-memory SQLite engine with the schema applied."""
    from sqlalchemy import create_engine
    from sqlalchemy.pool import StaticPool

    from questionflow.db.migrations_runner import apply_migrations

    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    apply_migrations(engine)
    yield engine
    engine.dispose()
