"""Structured logging for RowORM.

Every module obtains its logger through ``get_logger(__name__)``. Loggers
are structlog wrappers around stdlib loggers, so a host application that
never configures anything only sees what the stdlib root logger lets
through (WARNING and above). ``configure_logging`` sets up structlog and
the stdlib root handler together.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import Processor


def configure_logging(level: str = "INFO", json_format: bool | None = None) -> None:
    """Configure structlog and stdlib logging for the application.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR).
        json_format: True for JSON lines, False for console output,
            None to pick JSON when stdout is not a tty.
    """
    if json_format is None:
        json_format = not sys.stdout.isatty()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
    ]
    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper()),
        force=True,
    )


def get_logger(name: str | None = None) -> Any:
    """Return a structlog logger backed by the stdlib logger *name*."""
    return structlog.wrap_logger(logging.getLogger(name), wrapper_class=structlog.stdlib.BoundLogger)
