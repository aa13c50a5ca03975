"""
Structured Logging
==================

JSON log lines on stdout, one object per record.

Every record carries the service environment and, while a request is being
served, its correlation ID. Context goes through ``extra={...}``; keys that
look like credentials are masked before the line is written.

Usage:
    from src.shared.infrastructure.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Sweep finished", extra={"targets": 3})
"""

import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

from pythonjsonlogger import jsonlogger

SENSITIVE_KEY_PARTS = ("password", "api_key", "webhook", "token", "secret")
REDACTED = "***REDACTED***"

_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def bind_correlation_id(correlation_id: Optional[str]) -> None:
    """Attach ``correlation_id`` to every record logged from the current context."""
    _correlation_id.set(correlation_id)


def current_correlation_id() -> Optional[str]:
    return _correlation_id.get()


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding timestamp, environment and correlation ID."""

    def __init__(self, *args: Any, environment: str = "unknown", **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.environment = environment

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record.setdefault(
            "timestamp",
            datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        )
        log_record["environment"] = self.environment

        correlation_id = getattr(record, "correlation_id", None) or current_correlation_id()
        if correlation_id:
            log_record["correlation_id"] = correlation_id

        for key in list(log_record):
            if isinstance(log_record[key], str) and any(p in key.lower() for p in SENSITIVE_KEY_PARTS):
                log_record[key] = REDACTED


def setup_logging(level: str = "INFO", environment: str = "development") -> None:
    """
    Route every logger through one JSON handler on stdout.

    Args:
        level: Root level name (DEBUG, INFO, WARNING, ERROR)
        environment: Value of the ``environment`` field on every line
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        CustomJsonFormatter(
            fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
            environment=environment,
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    # Third-party chatter stays at WARNING
    for noisy in ("uvicorn.access", "apscheduler", "httpx", "watchdog"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Module logger; call as ``get_logger(__name__)``."""
    return logging.getLogger(name)


@contextmanager
def log_latency(logger: logging.Logger, operation: str, **extra_context: Any) -> Iterator[None]:
    """
    Log how long the wrapped block took, even when it raises.

    Usage:
        with log_latency(logger, "status_sweep", targets=3):
            await poller.sweep()
    """
    started = time.perf_counter()
    try:
        yield
    finally:
        logger.info(
            f"{operation} finished",
            extra={
                "operation": operation,
                "latency_ms": round((time.perf_counter() - started) * 1000, 2),
                **extra_context,
            },
        )
