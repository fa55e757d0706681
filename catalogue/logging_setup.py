"""Logging for the collection ordering service.

One stdout handler on the root logger. Every line carries the id of the HTTP
request it was emitted under (``-`` outside a request), so the
``reorder_*`` and ``event_published`` lines of one reorder can be grouped.
"""

from __future__ import annotations

import logging
import os
from logging.config import dictConfig
from typing import Optional

from catalogue.http.request_id import current_request_id

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s"


class RequestIdFilter(logging.Filter):
    """Stamp ``record.request_id`` from the active request, if any."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = current_request_id.get() or "-"
        return True


def _dict_config(level: str) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"request_id": {"()": RequestIdFilter}},
        "formatters": {"default": {"format": LOG_FORMAT}},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "default",
                "filters": ["request_id"],
                "stream": "ext://sys.stdout",
            }
        },
        "root": {"level": level, "handlers": ["console"]},
        "loggers": {
            # uvicorn installs its own handlers; route it through ours
            "uvicorn": {"level": level, "handlers": ["console"], "propagate": False},
            "uvicorn.access": {"level": level, "handlers": ["console"], "propagate": False},
            # SQL echo stays off unless explicitly raised
            "sqlalchemy.engine": {"level": "WARNING"},
        },
    }


def configure_logging(level: Optional[str] = None) -> None:
    """Install the service's logging once; ``LOG_LEVEL`` overrides INFO.

    Returns early when the root logger already has handlers, e.g. under
    pytest's log capture or a reloader.
    """
    root = logging.getLogger()
    if root.handlers:
        return
    dictConfig(_dict_config((level or os.environ.get("LOG_LEVEL") or "INFO").upper()))


__all__ = ["configure_logging", "RequestIdFilter", "LOG_FORMAT"]
