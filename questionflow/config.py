"""Configuration utilities for the flow engine service.

This module loads application configuration with the following rules:
- Primary source: `questionflow_config.json` at the project root.
- Overrides: environment variables, then optional text files under `config/`.
- Validation: Pydantic models enforce required fields and value constraints.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator


CONFIG_DIR = Path("config")
ROOT_CONFIG = Path("questionflow_config.json")
logger = logging.getLogger(__name__)


def _read_config_file(rel_path: str) -> Optional[str]:
    path = CONFIG_DIR / rel_path
    try:
        if path.exists():
            return path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Failed to read override %s: %s", path, e)
        return None
    return None


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(key, default)


class DatabaseConfig(BaseModel):
    dsn: str

    @field_validator("dsn")
    @classmethod
    def dsn_must_be_non_empty(cls, v: str) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("database.dsn must be a non-empty string")
        return v


class StoreConfig(BaseModel):
    backend: str  # one of: memory, sql

    @field_validator("backend")
    @classmethod
    def backend_must_be_allowed(cls, v: str) -> str:
        allowed = {"memory", "sql"}
        if v not in allowed:
            raise ValueError(f"store.backend must be one of {sorted(allowed)}")
        return v


class EnrichmentConfig(BaseModel):
    enabled: bool = Field(default=False)
    timeout_seconds: float = Field(default=10.0, gt=0)
    max_workers: int = Field(default=2, gt=0)


class AppConfig(BaseModel):
    database: DatabaseConfig
    store: StoreConfig
    enrichment: EnrichmentConfig
    log_level: str = Field(default="INFO")


def _read_json_file(path: Path) -> dict:
    try:
        if path.exists():
            return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error("Failed to read JSON config %s: %s", path, e)
    return {}


def load_config() -> AppConfig:
    """Load configuration with validation.

    Precedence (highest first):
    1) Environment variables
    2) Text files in `config/` (optional)
    3) questionflow_config.json at project root
    4) Safe defaults for development
    """

    base = _read_json_file(ROOT_CONFIG)

    def _base(path: str, default: Optional[str] = None) -> Optional[str]:
        cur: object = base
        for key in path.split("."):
            if not isinstance(cur, dict) or key not in cur:
                return default
            cur = cur[key]
        return str(cur) if cur is not None else default

    dsn = (
        _env("DATABASE_URL")
        or _read_config_file("database.url")
        or _base("database.dsn")
        or "sqlite+pysqlite:///:memory:"
    )
    backend = (_env("QUESTIONFLOW_STORE") or _read_config_file("store.backend") or _base("store.backend", "memory")).strip()

    enabled_text = _env("ENRICHMENT_ENABLED") or _read_config_file("enrichment.enabled") or _base("enrichment.enabled", "false")
    timeout_text = _env("ENRICHMENT_TIMEOUT_SECONDS") or _read_config_file("enrichment.timeout_seconds") or _base("enrichment.timeout_seconds", "10")
    workers_text = _env("ENRICHMENT_MAX_WORKERS") or _read_config_file("enrichment.max_workers") or _base("enrichment.max_workers", "2")
    log_level = (_env("LOG_LEVEL") or _base("log_level", "INFO")).strip().upper()

    try:
        cfg = AppConfig(
            database=DatabaseConfig(dsn=dsn),
            store=StoreConfig(backend=backend),
            enrichment=EnrichmentConfig(
                enabled=str(enabled_text).strip().lower() == "true",
                timeout_seconds=float(str(timeout_text).strip()),
                max_workers=int(str(workers_text).strip()),
            ),
            log_level=log_level,
        )
        return cfg
    except (PydanticValidationError, ValueError) as e:
        logger.error("Invalid application configuration: %s", e)
        raise


__all__ = [
    "AppConfig",
    "DatabaseConfig",
    "StoreConfig",
    "EnrichmentConfig",
    "load_config",
]
