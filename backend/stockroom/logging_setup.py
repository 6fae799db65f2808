# Overview: Process-wide logging configuration applied by the app factory.

import logging
import sys
from logging.config import dictConfig


def configure_logging(level: str = "INFO") -> None:
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "stream": sys.stdout,
                    "formatter": "default",
                },
            },
            "loggers": {
                "stockroom": {
                    "level": level.upper(),
                },
                # SQL echo stays opt-in through SQLALCHEMY_ECHO
                "sqlalchemy.engine": {
                    "level": "WARNING",
                },
            },
            "root": {
                "level": level.upper(),
                "handlers": ["console"],
            },
        }
    )
    logging.getLogger(__name__).debug("logging configured at %s", level.upper())
