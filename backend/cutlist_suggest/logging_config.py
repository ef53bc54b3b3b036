"""Structured logging configuration using structlog.

Services and repositories log snake_case events with keyword context so that a
rejected observation or a failed store call can be traced back to the exact
product/size/profile it concerned.

Usage::

    from cutlist_suggest.logging_config import get_logger

    logger = get_logger(__name__)
    logger.info("pattern_created", pattern_key="DOOR|100X200|FRAME|990", ratio=2.0)
    # {"event": "pattern_created", "pattern_key": "...", "ratio": 2.0, "timestamp": "...", ...}
"""

import logging
import sys
from typing import Any, Optional

import structlog

from cutlist_suggest.config import Settings


def setup_logging(json_logs: bool = False, log_level: str = "INFO") -> None:
    """Configure structured logging for the engine.

    Args:
        json_logs: If True, render JSON lines. If False, use the console renderer.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_logs:
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def setup_logging_from_settings(settings: Optional[Settings] = None) -> None:
    """Configure logging from ``Settings.json_logs`` / ``Settings.log_level``."""
    s = settings or Settings()
    setup_logging(json_logs=s.json_logs, log_level=s.log_level)


def get_logger(name: str) -> Any:
    """Get a structured logger instance.

    Args:
        name: Logger name, typically __name__ of the module.

    Returns:
        Structured logger instance with bound context.
    """
    return structlog.get_logger(name)
