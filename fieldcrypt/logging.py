"""Structured logging with exchange correlation.

Provides:
- JSON structured output for log aggregation
- Exchange correlation IDs propagated through context variables
- Sensitive data masking (secrets, keys, card numbers)
- Performance timing

Usage:
    from fieldcrypt.logging import get_logger, exchange_context

    logger = get_logger(__name__)

    with exchange_context(peer="supplierA"):
        logger.info("Field encrypted", operation="buyCart")
"""

import json
import logging
import sys
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable, Iterator

# Context variables for exchange-scoped data
exchange_id_var: ContextVar[str | None] = ContextVar("exchange_id", default=None)
peer_var: ContextVar[str | None] = ContextVar("peer", default=None)

# Sensitive fields to mask in logs
SENSITIVE_FIELDS = {
    "password", "secret", "token", "key", "credential", "authorization",
    "private_key", "keystore_password", "credit", "card", "ccnumber",
    "plaintext", "ciphertext",
}


def mask_sensitive(data: dict[str, Any]) -> dict[str, Any]:
    """Mask sensitive values in a dictionary."""
    masked = {}
    for key, value in data.items():
        key_lower = key.lower()
        if any(s in key_lower for s in SENSITIVE_FIELDS):
            masked[key] = "[REDACTED]"
        elif isinstance(value, dict):
            masked[key] = mask_sensitive(value)
        else:
            masked[key] = value
    return masked


class StructuredFormatter(logging.Formatter):
    """JSON structured log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if exchange_id := exchange_id_var.get():
            log_entry["exchange_id"] = exchange_id
        if peer := peer_var.get():
            log_entry["peer"] = peer

        if hasattr(record, "extra_fields"):
            log_entry.update(mask_sensitive(record.extra_fields))

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        # Add source location for errors
        if record.levelno >= logging.WARNING:
            log_entry["source"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(log_entry, default=str)


class HumanFormatter(logging.Formatter):
    """Human-readable log formatter for development."""

    COLORS = {
        "DEBUG": "\033[36m",    # Cyan
        "INFO": "\033[32m",     # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",    # Red
        "CRITICAL": "\033[35m", # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")

        prefix_parts = []
        if exchange_id := exchange_id_var.get():
            prefix_parts.append(f"xchg={exchange_id[:8]}")
        if peer := peer_var.get():
            prefix_parts.append(f"peer={peer}")

        prefix = f"[{' '.join(prefix_parts)}] " if prefix_parts else ""

        extra_str = ""
        if hasattr(record, "extra_fields") and record.extra_fields:
            masked = mask_sensitive(record.extra_fields)
            extra_str = " | " + " ".join(f"{k}={v}" for k, v in masked.items())

        timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]
        level = record.levelname[:4]

        message = (
            f"{color}{timestamp} {level}{self.RESET} "
            f"[{record.name}] {prefix}{record.getMessage()}{extra_str}"
        )

        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)

        return message


class StructuredLogger(logging.Logger):
    """Logger with structured logging support."""

    def _log_with_extra(
        self,
        level: int,
        msg: str,
        args: tuple,
        exc_info: Any = None,
        **kwargs,
    ):
        extra = {"extra_fields": kwargs} if kwargs else {}
        super()._log(level, msg, args, exc_info=exc_info, extra=extra)

    def debug(self, msg: str, *args, **kwargs):
        if self.isEnabledFor(logging.DEBUG):
            self._log_with_extra(logging.DEBUG, msg, args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        if self.isEnabledFor(logging.INFO):
            self._log_with_extra(logging.INFO, msg, args, **kwargs)

    def error(self, msg: str, *args, exc_info: Any = None, **kwargs):
        if self.isEnabledFor(logging.ERROR):
            self._log_with_extra(logging.ERROR, msg, args, exc_info=exc_info, **kwargs)


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger for a module."""
    logging.setLoggerClass(StructuredLogger)
    logger = logging.getLogger(name)
    logging.setLoggerClass(logging.Logger)
    return logger


def setup_logging(json_output: bool = False, level: str = "INFO"):
    """Configure interceptor logging.

    Args:
        json_output: Use JSON format (for production)
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)

    if json_output:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(HumanFormatter())

    root_logger.addHandler(handler)


@contextmanager
def exchange_context(exchange_id: str | None = None, peer: str | None = None) -> Iterator[str]:
    """Bind an exchange ID (and optionally the peer) to every log line in scope."""
    exchange_id = exchange_id or str(uuid.uuid4())
    exchange_token = exchange_id_var.set(exchange_id)
    peer_token = peer_var.set(peer) if peer else None
    try:
        yield exchange_id
    finally:
        exchange_id_var.reset(exchange_token)
        if peer_token is not None:
            peer_var.reset(peer_token)


def log_operation(operation: str):
    """Decorator to log function execution with timing."""
    def decorator(func: Callable):
        logger = get_logger(func.__module__)

        @wraps(func)
        def wrapper(*args, **kwargs):
            start = time.monotonic()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                duration_ms = (time.monotonic() - start) * 1000
                logger.error(
                    f"{operation} failed",
                    operation=operation,
                    error=str(e),
                    duration_ms=round(duration_ms, 2),
                )
                raise
            duration_ms = (time.monotonic() - start) * 1000
            logger.debug(
                f"{operation} completed",
                operation=operation,
                duration_ms=round(duration_ms, 2),
            )
            return result

        return wrapper

    return decorator
