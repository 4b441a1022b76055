"""Structured Logging: JSON formatter and setup for instant-event observability.

Invariants:
    - All logs include timestamp, level, logger name, and message
    - The member -> event -> message chain is emitted as one "path" string,
      truncated at the first unset link (m1/e1, never m1//x1)
    - Failure fields (error_code, category, attempt, operation) surfaced when present
    - Text format appends the same path in brackets so dev logs stay greppable

Design Decisions:
    - JSONFormatter on stdlib logging: no extra dependency, full control over keys
    - Ids stay separate record attributes (extra=...) so callers never build paths
    - setup_logging called once by the composition root (main.lifespan)
"""

import logging
import json
from datetime import datetime, timezone


def resource_path(record: logging.LogRecord) -> str | None:
    """Join the record's member/event/message ids up to the first missing one."""
    links = []
    for key in ("member_id", "event_id", "message_id"):
        val = getattr(record, key, None)
        if val is None:
            break
        links.append(str(val))
    return "/".join(links) or None


class JSONFormatter(logging.Formatter):
    """Format logs as JSON for structured logging in production."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        path = resource_path(record)
        if path:
            log["path"] = path
        for key in ("operation", "error_code", "category", "attempt"):
            val = getattr(record, key, None)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Human-readable line with the resource path appended in brackets."""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        path = resource_path(record)
        return f"{line} [{path}]" if path else line


def setup_logging(level: str = "INFO", fmt: str = "json") -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter() if fmt == "json" else TextFormatter())
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level.upper(), logging.INFO))
    return handler
