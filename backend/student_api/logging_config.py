"""
Structured JSON logging configuration.

Provides channel loggers (http, db, validation, students), request ID
tracking and context-rich log entries. All log output is a single JSON
object per line written to stdout for log aggregation.
"""

import logging
import json
import os
import uuid
from datetime import datetime, timezone
from contextvars import ContextVar
from typing import Optional

# ──────────────────────────────────────────────────────────────
# Context variable to track request ID across async operations.
# Every log entry emitted while serving a request carries it.
# ──────────────────────────────────────────────────────────────
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

CHANNELS = ["http", "db", "validation", "students"]


class StructuredJsonFormatter(logging.Formatter):
    """
    Formatter that renders each record as one JSON object.

    Keys:
    - timestamp: ISO 8601 timestamp in UTC
    - level: log severity
    - message: human-readable message
    - channel: log source category (http, db, validation, students, app)
    - context: business context (request_id, student_no, ...)
    - extra: additional metadata (duration_ms, error, ...)
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "message": record.getMessage(),
            "channel": getattr(record, "channel", record.name.split(".")[-1] if "." in record.name else "app"),
            "context": {
                "request_id": request_id_var.get(""),
                **(getattr(record, "context", {}) or {})
            },
            "extra": getattr(record, "extra_data", {}) or {}
        }
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def setup_logging(level: Optional[str] = None):
    """
    Configure the root logger and the channel loggers.

    Output goes to stdout through a single handler using the JSON
    formatter; channel loggers inherit it and only differ by name.
    """
    log_level = getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO)

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredJsonFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    for channel in CHANNELS:
        logging.getLogger(f"student_api.{channel}").setLevel(log_level)

    return root_logger


def get_logger(channel: str) -> logging.Logger:
    """Get the logger for a channel (http, db, validation, students)."""
    return logging.getLogger(f"student_api.{channel}")


def log_with_context(logger: logging.Logger, level: str, message: str,
                     context: dict = None, extra_data: dict = None,
                     exc_info: bool = False):
    """
    Emit a structured log entry with business context and extra metadata.

    Args:
        logger: The channel logger to use
        level: Log level string (INFO, WARNING, ERROR, DEBUG)
        message: Human-readable log message
        context: Business context dict (student_no, field, ...)
        extra_data: Additional metadata dict (duration_ms, error, ...)
        exc_info: Attach the active exception's traceback
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    logger.log(
        log_level,
        message,
        exc_info=exc_info,
        extra={"context": context or {}, "extra_data": extra_data or {}, "channel": logger.name.split(".")[-1]}
    )


def generate_request_id() -> str:
    """Generate a new UUID for request tracking."""
    return str(uuid.uuid4())
