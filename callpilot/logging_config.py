"""
Structured JSON logging.

Every module gets its logger through `get_logger(__name__)`; records are
written to stdout as one JSON object per line.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from callpilot.config import get_settings


class StructuredFormatter(logging.Formatter):
    """JSON log formatter that also carries `extra=...` fields."""

    _RESERVED = {
        # standard LogRecord attributes
        "name", "msg", "args", "levelname", "levelno", "pathname", "filename",
        "module", "exc_info", "exc_text", "stack_info", "lineno", "funcName",
        "created", "msecs", "relativeCreated", "thread", "threadName",
        "processName", "process", "message", "taskName",
    }

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for k, v in record.__dict__.items():
            if k in self._RESERVED:
                continue
            if k in log_data:
                log_data[f"extra_{k}"] = v
            else:
                log_data[k] = v

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def get_logger(name: str) -> logging.Logger:
    """Get a logger that writes structured JSON to stdout.

    Args:
        name: Logger name (typically __name__).
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
        # our handler already writes the record; the root logger would repeat it
        logger.propagate = False

    level = get_settings().LOG_LEVEL.upper()
    logger.setLevel(getattr(logging, level, logging.INFO))

    return logger
