"""Central structured logging configuration using structlog.

Other modules can do:

    from eduflow.core.logging_config import get_logger
    logger = get_logger(__name__)

Logs are JSON-formatted with ISO timestamps.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from eduflow.core.config import LOG_LEVEL

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(message)s",
    stream=sys.stderr,
)

structlog.configure(
    wrapper_class=structlog.make_filtering_bound_logger(
        getattr(logging, LOG_LEVEL, logging.INFO)
    ),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(sort_keys=True),
    ],
)


def get_logger(name: str, **bound_values: Any) -> structlog.BoundLogger:
    """Return a JSON logger bound with *bound_values*."""
    return structlog.get_logger(name).bind(**bound_values)
