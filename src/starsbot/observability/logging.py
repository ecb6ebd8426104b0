"""JSON line logging on stdout.

Each line carries the correlation ID of the request or update being handled
and the thread name: retractions run on the scheduler thread, webhook
handling on the server's worker threads.

LOG_LEVEL (default INFO) applies to every logger created here.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

from .correlation import get_correlation_id

SERVICE_NAME = "starsbot"


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "service": SERVICE_NAME,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }

        cid = get_correlation_id()
        if cid:
            entry["correlationId"] = cid

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        # extra={"extra_fields": safe_log_context(...)}
        fields = getattr(record, "extra_fields", None)
        if fields:
            entry.update(fields)

        return json.dumps(entry, default=str, ensure_ascii=False)


def _resolve_level() -> int:
    level = logging.getLevelName(os.environ.get("LOG_LEVEL", "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def get_logger(name: str) -> logging.Logger:
    """Logger writing JSON lines to stdout. Handlers are attached once per name."""
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    logger.setLevel(_resolve_level())
    logger.propagate = False
    return logger
