"""
Structured logging configuration.

Channel loggers (storage, session, practice, sheets, config, explain) live
under the ``mathpractice`` namespace. Output is one JSON object per line so
best-effort failures (storage fallback, sheet sync) stay greppable.
"""

import json
import logging
import os
from datetime import datetime, timezone

LOG_LEVEL = os.getenv("LOG_LEVEL", "WARNING").upper()

ROOT = "mathpractice"
CHANNELS = ["storage", "session", "practice", "sheets", "config", "explain"]


class StructuredJsonFormatter(logging.Formatter):
    """
    One JSON log entry per line:
    - timestamp: ISO 8601 in UTC
    - level: log severity
    - channel: last dotted part of the logger name
    - message: human-readable text
    - context: business context passed through ``log_with_context``
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "channel": getattr(record, "channel", record.name.split(".")[-1]),
            "message": record.getMessage(),
            "context": getattr(record, "context", {}) or {},
        }
        if record.exc_info:
            entry["error"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


def setup_logging(level: str | None = None) -> logging.Logger:
    """Attach the JSON formatter to the package logger and set channel levels."""
    lvl = getattr(logging, (level or LOG_LEVEL).upper(), logging.WARNING)
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredJsonFormatter())

    root = logging.getLogger(ROOT)
    root.setLevel(lvl)
    root.handlers = [handler]
    root.propagate = False
    for channel in CHANNELS:
        logging.getLogger(f"{ROOT}.{channel}").setLevel(lvl)
    return root


def get_logger(channel: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT}.{channel}")


def log_with_context(logger: logging.Logger, level: str, message: str, context: dict | None = None) -> None:
    """Emit a log entry carrying business context (session_id, key, ...)."""
    logger.log(
        getattr(logging, level.upper(), logging.INFO),
        message,
        extra={"context": context or {}, "channel": logger.name.split(".")[-1]},
    )
