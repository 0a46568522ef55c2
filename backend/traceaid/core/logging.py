"""Logging setup: readable lines in debug, JSON lines otherwise.

The request id set by ``RequestIdMiddleware`` is attached to every record
emitted while a request is being handled.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import UTC, datetime

from traceaid.core.config import settings

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

_configured = False


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or "-"
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data)


def configure_logging() -> None:
    """Install a single stdout handler on the ``traceaid`` logger tree."""
    global _configured  # noqa: PLW0603
    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIdFilter())
    if settings.DEBUG:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s")
        )
    else:
        handler.setFormatter(JSONFormatter())

    logger = logging.getLogger("traceaid")
    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    logger.handlers = [handler]
    logger.propagate = False
    _configured = True
