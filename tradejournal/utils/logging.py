"""Structured logging setup using structlog.

Journal events go through structlog directly. Library loggers (aiohttp,
aiosqlite) still use stdlib logging; they are routed through the same
renderer so the output stays one format.
"""

from __future__ import annotations

import logging
import os
import sys

import structlog

# Library loggers and the level below which they are dropped
_LIBRARY_LEVELS = {
    "aiohttp.access": logging.WARNING,
    "aiohttp.server": logging.INFO,
    "aiosqlite": logging.WARNING,
}


def _json_enabled() -> bool:
    return os.environ.get("JSON_LOGS", "").strip().lower() in ("1", "true", "yes")


def setup_logging(log_level: str = "INFO", json_logs: bool | None = None) -> None:
    """Configure structlog and the stdlib bridge.

    `json_logs` defaults to the JSON_LOGS environment variable; console
    rendering otherwise.
    """
    if json_logs is None:
        json_logs = _json_enabled()
    level = getattr(logging, log_level.upper(), logging.INFO)

    shared = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=shared + [
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    ))
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    for name, floor in _LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(max(level, floor))
