"""Structured logging helpers.

Log records are structlog events: a short snake_case event name plus
keyword context, e.g. ``logger.info("dependency_skipped", path=...)``.

Updaters take their logger as an argument. When a caller does not pass one
they log into NULL_LOGGER, which renders nothing.
"""

from __future__ import annotations

import logging
import sys

import structlog
from structlog.typing import FilteringBoundLogger

# Type of the loggers passed around; structlog.get_logger returns a lazy
# proxy exposing the same methods.
Logger = FilteringBoundLogger

NULL_LOGGER = structlog.wrap_logger(structlog.ReturnLogger(), processors=[])


def get_logger(name: str) -> Logger:
    """Return a structlog logger bound to ``name``."""
    return structlog.get_logger(name)


def configure_logging(verbose: bool = False) -> None:
    """Route structlog output to stderr at INFO, or DEBUG when verbose."""
    level = logging.DEBUG if verbose else logging.INFO
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
