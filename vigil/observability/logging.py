"""structlog setup for the engine.

Every record carries ``service`` and ``version`` so lines from several
monitor processes can be told apart once shipped to one index.  ``json``
is the production format; ``console`` is for running ``vigil serve`` by
hand.
"""

from __future__ import annotations

import logging
import sys
from typing import IO

import structlog

LOG_FORMATS = ("json", "console")


def setup_logging(
    level: str = "info",
    fmt: str = "json",
    version: str = "",
    stream: IO[str] | None = None,
) -> None:
    """Configure structlog once per process."""
    log_level = getattr(logging, level.upper(), logging.INFO)
    renderer: structlog.typing.Processor
    if fmt == "console":
        renderer = structlog.dev.ConsoleRenderer(colors=False)
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stderr),
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.bind_contextvars(service="vigil", version=version)


def get_logger(component: str) -> structlog.typing.FilteringBoundLogger:
    return structlog.get_logger(component=component)
