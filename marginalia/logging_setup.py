"""Central logging configuration for the application.

Applies a root stdout handler so all module loggers emit INFO-level logs
without per-module setup. Keeps uvicorn loggers visible and avoids duplicate
handlers on reloads. ``LOG_LEVEL`` overrides the root level.
"""
from __future__ import annotations
import copy
import logging
import os
from logging.config import dictConfig

_DICT_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(asctime)s %(levelname)s:%(name)s:%(message)s",
        }
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "level": "DEBUG",
            "formatter": "default",
            "stream": "ext://sys.stdout",
        }
    },
    "root": {"level": "INFO", "handlers": ["console"]},
    "loggers": {
        "uvicorn": {"level": "INFO", "handlers": ["console"], "propagate": False},
        "uvicorn.error": {"level": "INFO", "handlers": ["console"], "propagate": False},
        "uvicorn.access": {"level": "INFO", "handlers": ["console"], "propagate": False},
        "sqlalchemy.engine": {"level": "WARNING"},
    },
}


def configure_logging() -> None:
    """Configure application-wide logging once.

    If the root logger already has handlers, return to prevent duplicate output
    (reloaders, test runners).
    """
    root = logging.getLogger()
    if root.handlers:
        return
    config = copy.deepcopy(_DICT_CONFIG)
    config["root"]["level"] = os.getenv("LOG_LEVEL", "INFO").upper()
    dictConfig(config)
