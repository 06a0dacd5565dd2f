"""Structured logging configuration using structlog.

Module loggers are created with ``structlog.get_logger(component=...)`` and
stay lazy, so they pick up whatever ``setup_logging`` configured as long as it
runs before the first event is logged.
"""

from __future__ import annotations

import structlog

from .config import AppConfig

_LEVELS = {"debug": 10, "info": 20, "warning": 30, "warn": 30, "error": 40, "critical": 50}


def _renderer(fmt: str) -> structlog.types.Processor:
    if fmt == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=True)


def setup_logging(cfg: AppConfig) -> None:
    """Configure structlog from ``cfg.log_level`` / ``cfg.log_format``.

    Unknown levels fall back to info, unknown formats to the console renderer.
    """
    level = _LEVELS.get(cfg.log_level.lower(), 20)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _renderer(cfg.log_format),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
