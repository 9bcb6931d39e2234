"""Database bootstrap utilities for the SQL-backed session store.

Exposes engine construction and the migrations runner that applies SQL files
from the package's migrations/ directory.
"""

from questionflow.db.base import dispose_engine, get_engine
from questionflow.db.migrations_runner import apply_migrations

__all__ = [
    "get_engine",
    "dispose_engine",
    "apply_migrations",
]
