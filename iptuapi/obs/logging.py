"""
Structured logging helpers for the IPTU API client.

Records carry an ``event`` name and an ``extra`` mapping so that retry and
request activity can be filtered by machine. ``JsonLineFormatter`` renders
one JSON object per line:

    {"ts": "2026-01-15T10:30:00Z", "level": "WARNING", "event": "http_retry",
     "module": "engine", "msg": "Request failed, retrying in 500ms (attempt 1/3)",
     "extra": {"delay_ms": 500, "attempt": 1, "max_attempts": 3}}
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class LogSettings:
    """
    Configuration for logger initialization.

    Attributes:
        level: Log level string (DEBUG, INFO, WARNING, ERROR).
        name: Logger name suffix, used to isolate CLI loggers.
        log_file: Optional path to log file (None for console only).
        jsonl: If True, use JSON Lines format; otherwise plain text.
    """
    level: str
    name: str = "cli"
    log_file: Path | None = None
    jsonl: bool = True


class JsonLineFormatter(logging.Formatter):
    """Logging formatter that outputs one JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        event = getattr(record, "event", "log")
        extra = getattr(record, "extra", {})
        if not isinstance(extra, dict):
            extra = {"value": extra}

        payload = {
            "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "event": event,
            "module": record.module,
            "msg": record.getMessage(),
            "extra": extra,
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def build_logger(settings: LogSettings) -> logging.Logger:
    """
    Create an isolated (non-propagating) logger with console and optional
    file handlers. Uses JSON Lines format when ``settings.jsonl`` is True.
    """
    logger = logging.getLogger(f"iptuapi.{settings.name}")
    logger.setLevel(settings.level)
    logger.handlers.clear()
    logger.propagate = False

    formatter = JsonLineFormatter() if settings.jsonl else None

    stream_handler = logging.StreamHandler()
    if formatter:
        stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if settings.log_file:
        file_handler = logging.FileHandler(settings.log_file, encoding="utf-8")
        if formatter:
            file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    message: str,
    *,
    exc_info: logging._ExcInfoType | None = None,
    **extra: Any,
) -> None:
    """
    Log a structured event with typed metadata.

    Example:
        >>> log_event(logger, logging.DEBUG, "http_request",
        ...           "Request: GET https://iptuapi.com.br/api/v1/iptu-tools/cidades",
        ...           method="GET")
    """
    logger.log(level, message, extra={"event": event, "extra": extra}, exc_info=exc_info)
