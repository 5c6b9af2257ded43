# roulette/logging.py
# structlog setup for the CLI; everything goes to stderr so stdout carries only results.

import logging
import sys
from typing import Optional

import structlog
from roulette.core.config import settings

QUIET_LOGGERS = ("httpx", "httpcore")


def _renderer():
    if settings.ENV.lower() == "development":
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def configure_logging(level: Optional[str] = None):
    """Console output in development, JSON lines anywhere else."""
    log_level = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            _renderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=log_level, force=True)

    # request lines at INFO drown out the wheel output
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))
