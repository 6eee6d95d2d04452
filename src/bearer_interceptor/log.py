"""
Structured JSON logging for interceptor decisions.

Every decision (not protected, token acquired, fallback, redirect, error) is
logged on the "bearer-interceptor" logger with its details in an
``auth_data`` extra. The formatter below merges that dict into one JSON
object per line:

    {"timestamp": "2026-10-16 10:30:00,123", "level": "INFO",
     "logger": "bearer-interceptor", "message": "Token acquired silently",
     "request_id": "1a2b3c4d", "scopes": ["user.read"], "decision": "silent"}

Access tokens are never part of auth_data.
"""

import json
import logging
import sys

LOGGER_NAME = "bearer-interceptor"


class JSONLogFormatter(logging.Formatter):
    """Formats log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, "auth_data"):
            log_entry.update(record.auth_data)
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def configure_logging(level: str = "info", stream=None) -> logging.Logger:
    """
    Send the interceptor's logs to ``stream`` (stdout by default) as JSON.

    Only the "bearer-interceptor" logger is configured; the host
    application's root logger is left alone.
    """
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JSONLogFormatter())

    logger = logging.getLogger(LOGGER_NAME)
    for existing in list(logger.handlers):
        if isinstance(existing.formatter, JSONLogFormatter):
            logger.removeHandler(existing)
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper()))
    return logger
