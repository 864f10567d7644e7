# chatline/utils/logger.py

import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from typing import Any

LOGGER_NAME = "chatline"

# Attributes every LogRecord carries; anything else came in through `extra=`.
_RECORD_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "taskName", "message",
}


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with `extra=` fields merged in."""

    SENSITIVE_KEYS = {"password", "token", "secret", "signature", "public_key", "authorization"}

    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS or key.startswith("_"):
                continue
            if key.lower() in self.SENSITIVE_KEYS:
                continue
            log_obj[key] = value

        if record.exc_info:
            log_obj["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "stacktrace": traceback.format_exception(*record.exc_info),
            }

        return json.dumps(log_obj, default=str)


def setup_logger(name: str = LOGGER_NAME, level: str | int = logging.INFO) -> logging.Logger:
    """
    Configure and return the application logger.

    Safe to call more than once: the stdout handler is only attached the
    first time, later calls just adjust the level.
    """
    log = logging.getLogger(name)
    log.setLevel(level.upper() if isinstance(level, str) else level)

    if not log.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        log.addHandler(handler)

    return log


logger = setup_logger()
