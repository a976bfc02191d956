"""Structured JSON logging for the archive service.

Every record is emitted as a single JSON line carrying the service name and,
when a request is in flight, its correlation ID. Archive code attaches
structured fields (service, relative path, size) through log_with_context.
"""

import json
import logging
import sys
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Optional

EXTRA_PREFIX = "extra_"

# Libraries that log every request or file operation at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access")

_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def set_correlation_id(correlation_id: Optional[str]) -> Token:
    """Bind a correlation ID to the current task context.

    Returns:
        Token that restores the previous value via reset_correlation_id()
    """
    return _correlation_id.set(correlation_id)


def reset_correlation_id(token: Token) -> None:
    _correlation_id.reset(token)


def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class StructuredFormatter(logging.Formatter):
    """Render log records as JSON lines."""

    def __init__(self, service_name: str):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": _utc_timestamp(),
            "level": record.levelname,
            "service": self.service_name,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        correlation_id = getattr(record, "correlation_id", None)
        if correlation_id:
            payload["correlation_id"] = correlation_id

        if record.exc_info:
            payload["exception"] = self._exception_fields(record)

        payload.update(
            (key[len(EXTRA_PREFIX):], value)
            for key, value in record.__dict__.items()
            if key.startswith(EXTRA_PREFIX)
        )

        # Paths and datetimes in extra fields
        return json.dumps(payload, default=str)

    def _exception_fields(self, record: logging.LogRecord) -> dict:
        exc_type, exc_value, _ = record.exc_info
        return {
            "type": exc_type.__name__ if exc_type else None,
            "message": str(exc_value) if exc_value else None,
            "traceback": self.formatException(record.exc_info),
        }


class CorrelationFilter(logging.Filter):
    """Stamp records with the correlation ID of the current request."""

    def filter(self, record: logging.LogRecord) -> bool:
        correlation_id = get_correlation_id()
        if correlation_id and not getattr(record, "correlation_id", None):
            record.correlation_id = correlation_id
        return True


def setup_logging(service_name: str, level: str = "INFO") -> CorrelationFilter:
    """Route all logging through one JSON handler on stdout.

    Replaces any handlers already installed on the root logger, so calling
    it again (tests, reloads) never duplicates output.

    Args:
        service_name: Value of the "service" field (e.g., "media-archive")
        level: Root log level name; unknown names fall back to INFO

    Returns:
        The CorrelationFilter attached to the handler
    """
    correlation_filter = CorrelationFilter()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter(service_name))
    handler.addFilter(correlation_filter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return correlation_filter


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    correlation_id: Optional[str] = None,
    **fields: Any,
):
    """Log a message with structured fields, e.g. service=..., size=...

    Fields show up unprefixed in the JSON output.
    """
    extra = {f"{EXTRA_PREFIX}{key}": value for key, value in fields.items()}
    if correlation_id:
        extra["correlation_id"] = correlation_id

    getattr(logger, level.lower())(message, extra=extra)
