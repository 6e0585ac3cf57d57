"""
Logging Configuration

stdout logging shared by the three noteweave processes: the API, the
embedding worker and the backfill script. Every record carries the process
``component`` so interleaved container logs can be told apart.
"""

import logging
import sys
from logging.config import dictConfig

from noteweave.core.config import settings

# Chatty third-party loggers and the level they are held at
QUIET_LOGGERS = {
    "sqlalchemy.engine": "WARNING",
    "httpx": "WARNING",
    "openai": "WARNING",
    "sentence_transformers": "WARNING",
    "uvicorn": "INFO",
    "uvicorn.access": "INFO",
}


class ComponentFilter(logging.Filter):
    """Stamps each record with the process component name."""

    def __init__(self, component: str) -> None:
        super().__init__()
        self.component = component

    def filter(self, record: logging.LogRecord) -> bool:
        record.component = self.component
        return True


def setup_logging(component: str = "api") -> None:
    """
    Initialize logging for one process.

    Format: ``timestamp | level | component | logger | message``. The level
    of the ``noteweave`` loggers follows ``LOG_LEVEL``; third-party loggers
    are capped per ``QUIET_LOGGERS``.

    Args:
        component: Process name shown on every line (api, worker, backfill).
    """
    log_level = settings.LOG_LEVEL.upper()

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,  # Preserve third-party loggers
        "filters": {
            "component": {"()": ComponentFilter, "component": component},
        },
        "formatters": {
            "default": {
                "format": "%(asctime)s | %(levelname)-8s | %(component)s | %(name)s | %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "stream": sys.stdout,
                "formatter": "default",
                "filters": ["component"],
            },
        },
        "root": {"level": log_level, "handlers": ["console"]},
        "loggers": {
            "noteweave": {
                "level": log_level,
                "handlers": ["console"],
                "propagate": False,  # Prevent duplicate logs to root
            },
            **{
                name: {"level": level, "handlers": ["console"], "propagate": False}
                for name, level in QUIET_LOGGERS.items()
            },
        },
    }

    dictConfig(logging_config)
