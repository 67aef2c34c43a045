"""Structured logging for the runtime host

Log records go to stderr as key/value lines so they never mix with
anything a handler writes to its stdout.
"""

import logging
import sys
from typing import Optional

import structlog


def setup_logging(log_level: Optional[str] = None) -> None:
    """Configure structlog once at process startup

    Args:
        log_level: Level name (DEBUG, INFO, ...). Unknown names fall back to INFO.
    """
    level_name = (log_level or "INFO").upper()
    numeric_level = getattr(logging, level_name, None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.KeyValueRenderer(key_order=["timestamp", "level", "event"]),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str):
    return structlog.get_logger(name)
