"""Logging configuration shared by the API, the CLI and Celery workers."""
import logging
import logging.config
from typing import Optional

from parkease.core.config import settings


def setup_logging(level: Optional[str] = None) -> None:
    level = (level or settings.LOG_LEVEL or "INFO").upper()
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "loggers": {
                "parkease": {"handlers": ["console"], "level": level, "propagate": True},
                "sqlalchemy.engine": {"level": "WARNING"},
            },
        }
    )
