"""Central logging configuration for the flow engine service.

One stdout handler on the root logger; every module logs through
`logging.getLogger(__name__)` and inherits it. Uvicorn's loggers share the
same handler so request lines and engine events interleave in one stream.
"""
from __future__ import annotations

import logging
from logging.config import dictConfig

LOG_FORMAT = "%(asctime)s %(levelname)s:%(name)s:%(message)s"


def _logging_config(level: str) -> dict:
    uvicorn_logger = {"level": level, "handlers": ["stdout"], "propagate": False}
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"plain": {"format": LOG_FORMAT}},
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "formatter": "plain",
                "stream": "ext://sys.stdout",
            }
        },
        "root": {"level": level, "handlers": ["stdout"]},
        "loggers": {
            "questionflow": {"level": level},
            "uvicorn": uvicorn_logger,
            "uvicorn.error": dict(uvicorn_logger),
            "uvicorn.access": dict(uvicorn_logger),
        },
    }


def configure_logging(level: str | None = None) -> None:
    """Install the stdout handler once; later calls only change the level.

    Repeated app construction (tests, reloaders) must not stack handlers.
    """
    resolved = (level or "INFO").upper()
    root = logging.getLogger()
    if root.handlers:
        if level:
            root.setLevel(resolved)
            logging.getLogger("questionflow").setLevel(resolved)
        return
    dictConfig(_logging_config(resolved))
