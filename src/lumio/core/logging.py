"""structlog setup shared by the CLI and the webhook receiver."""

from __future__ import annotations

import logging

import structlog


def configure_logging(level: str = "info", json_output: bool = False) -> None:
    """Configure structlog with a level filter and console or JSON rendering.

    Args:
        level: Log level name (debug, info, warning, error).
        json_output: Render one JSON object per line instead of console output.
    """
    renderer: structlog.types.Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        cache_logger_on_first_use=False,
    )
