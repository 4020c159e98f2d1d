"""
Structured logging configuration for the DeepReview core.

The core only creates named loggers (`DeepReview.Store`,
`DeepReview.Analysis.Gateway`, ...). The host application decides where
they go by calling setup_logging() once at startup: JSON lines in
production, a readable single-line format in development. Records emitted
while an analysis is running carry that analysis' correlation id.

Usage:
    from deepreview.shared.logging_config import setup_logging, get_logger

    setup_logging(service_name="deepreview")
    logger = get_logger("DeepReview.Store")
    logger.info("Saved entries", extra={"count": 12})

Output format (JSON, one line per log):
    {
        "timestamp": "2026-03-18T21:04:11.532000+00:00",
        "level": "INFO",
        "logger": "DeepReview.Analysis.Gateway",
        "message": "DeepSeek: succeeded on attempt 2",
        "service": "deepreview",
        "correlation_id": "9f1c2ab04d7e"
    }
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO

from deepreview.shared.correlation import get_correlation_id

# Attributes every LogRecord has; anything else came in through `extra=`.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message", "asctime", "correlation_id",
}

NOISY_LOGGERS = ("httpx", "httpcore", "asyncio")

_HANDLER_MARK = "_deepreview_handler"


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


class CorrelationIdFilter(logging.Filter):
    """Stamp each record with the active analysis correlation id ("-" outside one)."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = get_correlation_id() or "-"
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record; `extra=` fields become top-level keys."""

    def __init__(self, service_name: str = "deepreview"):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
        }

        correlation_id = getattr(record, "correlation_id", "-")
        if correlation_id != "-":
            payload["correlation_id"] = correlation_id

        for key, value in _extra_fields(record).items():
            try:
                json.dumps(value)
            except (TypeError, ValueError):
                value = str(value)
            payload[key] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False)


class HumanReadableFormatter(logging.Formatter):
    """`time [LEVEL] [correlation] logger: message | k=v, ...` for local development."""

    def format(self, record: logging.LogRecord) -> str:
        line = (
            f"{self.formatTime(record, '%Y-%m-%d %H:%M:%S')} "
            f"[{record.levelname}] [{getattr(record, 'correlation_id', '-')}] "
            f"{record.name}: {record.getMessage()}"
        )
        extras = _extra_fields(record)
        if extras:
            line += " | " + ", ".join(f"{k}={v}" for k, v in extras.items())
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    service_name: str = "deepreview",
    level: Optional[str] = None,
    json_output: Optional[bool] = None,
    stream: Optional[TextIO] = None,
) -> logging.Handler:
    """
    Install the DeepReview handler on the root logger.

    Calling it again replaces the handler it installed earlier and leaves
    handlers added by the host application alone.

    Args:
        service_name: Name written into every JSON record
        level: DEBUG, INFO, WARNING or ERROR. Defaults to LOG_LEVEL or INFO
        json_output: JSON lines if True, human-readable if False. Defaults
                     to JSON unless ENVIRONMENT == "development"
        stream: Where to write (default: stdout)

    Returns:
        The installed handler
    """
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_level = getattr(logging, level, logging.INFO)

    environment = os.getenv("ENVIRONMENT", "production").lower()
    if json_output is None:
        json_output = environment != "development"

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(
        JSONFormatter(service_name=service_name) if json_output else HumanReadableFormatter()
    )
    handler.addFilter(CorrelationIdFilter())
    setattr(handler, _HANDLER_MARK, True)

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if getattr(existing, _HANDLER_MARK, False):
            root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("DeepReview.Startup").info(
        "Logging configured",
        extra={"log_level": level, "json_output": json_output, "environment": environment},
    )
    return handler


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name."""
    return logging.getLogger(name)
