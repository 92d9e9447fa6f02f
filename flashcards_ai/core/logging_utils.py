from __future__ import annotations

import datetime as dt
import json
import logging
import sys
import uuid
from collections.abc import Mapping
from typing import Any

from loguru import logger as loguru_logger

UTC = dt.UTC

REDACTED = "REDACTED"

# Attributes every LogRecord has; anything else came in through ``extra=``.
_STANDARD_FIELDS = frozenset(
    {
        "args",
        "msg",
        "name",
        "levelno",
        "levelname",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "getMessage",
        "message",
    }
)

_NOISY_LOGGERS = ("httpx", "httpcore")


class EnhancedJsonFormatter(logging.Formatter):
    """JSON formatter that groups ``extra=`` fields under stable keys."""

    def __init__(self, include_location: bool = True) -> None:
        super().__init__()
        self.include_location = include_location

    def format(self, record: logging.LogRecord) -> str:
        base: dict[str, Any] = {
            "timestamp": dt.datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.include_location:
            base.update(
                {
                    "module": record.module,
                    "function": record.funcName,
                    "line": record.lineno,
                }
            )

        if record.exc_info:
            base["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        error_fields: dict[str, Any] = {}
        extra_fields: dict[str, Any] = {}
        for key, value in record.__dict__.items():
            if key.startswith("_") or key in _STANDARD_FIELDS or key in base:
                continue
            if key in ("error_code", "error_message", "status_code", "details"):
                error_fields[key] = value
            else:
                extra_fields[key] = value

        if error_fields:
            base["error"] = error_fields
        if extra_fields:
            base["extra"] = extra_fields

        if hasattr(record, "correlation_id"):
            base["correlation_id"] = record.correlation_id

        return json.dumps(
            base, ensure_ascii=False, default=self._json_serializer, separators=(",", ":")
        )

    def _json_serializer(self, obj: Any) -> str:
        """Fallback for values ``json`` cannot encode."""
        if hasattr(obj, "__dict__"):
            return f"<{obj.__class__.__name__}>"
        return str(obj)


class InterceptHandler(logging.Handler):
    """Forward stdlib records, including ``extra=`` fields, to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        level_to_use: int | str
        try:
            level_to_use = loguru_logger.level(record.levelname).name
        except ValueError:
            level_to_use = record.levelno

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if not key.startswith("_") and key not in _STANDARD_FIELDS
        }

        loguru_logger.bind(logger_name=record.name, **extra).opt(
            depth=6, exception=record.exc_info
        ).log(level_to_use, record.getMessage())


def setup_json_logging(
    level: str = "INFO",
    *,
    use_loguru: bool = True,
    include_location: bool = True,
    log_file: str | None = None,
    max_file_size: str = "50 MB",
    retention: str = "14 days",
) -> None:
    """Configure structured JSON logging for the process.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        use_loguru: Route stdlib logging through loguru sinks (default); otherwise
            use plain stdlib handlers with :class:`EnhancedJsonFormatter`
        include_location: Include module/function/line in stdlib JSON output
        log_file: Optional log file path for persistent logging
        max_file_size: Rotation size for the loguru file sink
        retention: Retention period for the loguru file sink

    """
    lvl = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(lvl)

    if use_loguru:
        loguru_logger.remove()
        loguru_logger.add(sys.stderr, level=level.upper(), serialize=True, backtrace=True)
        if log_file:
            loguru_logger.add(
                log_file,
                level=level.upper(),
                serialize=True,
                rotation=max_file_size,
                retention=retention,
                enqueue=True,
            )
        root.addHandler(InterceptHandler())
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(EnhancedJsonFormatter(include_location=include_location))
        root.addHandler(console_handler)

        if log_file:
            from logging.handlers import RotatingFileHandler

            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=50 * 1024 * 1024,
                backupCount=5,
            )
            file_handler.setFormatter(EnhancedJsonFormatter(include_location=include_location))
            root.addHandler(file_handler)

    for noisy_logger in _NOISY_LOGGERS:
        logging.getLogger(noisy_logger).setLevel(max(lvl, logging.WARNING))

    logging.getLogger(__name__).debug(
        "logging_initialized",
        extra={"setup_config": {"level": level, "use_loguru": use_loguru, "log_file": log_file}},
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance by name, typically ``__name__`` of the caller."""
    return logging.getLogger(name)


def generate_correlation_id() -> str:
    """Generate a short correlation ID for tracing errors across logs and user messages."""
    return uuid.uuid4().hex[:12]


def truncate_log_content(content: str | None, max_length: int = 1000) -> str | None:
    """Truncate large content for logging to avoid cluttering logs.

    Args:
        content: The content to potentially truncate
        max_length: Maximum length before truncation (default 1000)

    Returns:
        Truncated content with ellipsis if truncated, or original content if short enough

    """
    if not content:
        return content
    if len(content) <= max_length:
        return content

    if max_length > 20:
        truncate_at = max_length - 15
        truncated = content[:truncate_at]

        last_space = truncated.rfind(" ", max(0, truncate_at - 50))
        if last_space > truncate_at - 100:
            truncated = truncated[:last_space]

        return truncated + "... [truncated]"

    return content[:max_length] + "..."


def redact_secret(value: Any, secret: str | None) -> Any:
    """Return a copy of ``value`` with every occurrence of ``secret`` replaced.

    Strings, mappings, lists and tuples are walked recursively; other values are
    returned as-is.
    """
    if not secret:
        return value
    if isinstance(value, str):
        return value.replace(secret, REDACTED) if secret in value else value
    if isinstance(value, Mapping):
        return {
            redact_secret(key, secret): redact_secret(item, secret) for key, item in value.items()
        }
    if isinstance(value, list):
        return [redact_secret(item, secret) for item in value]
    if isinstance(value, tuple):
        return tuple(redact_secret(item, secret) for item in value)
    return value


__all__ = [
    "REDACTED",
    "EnhancedJsonFormatter",
    "InterceptHandler",
    "generate_correlation_id",
    "get_logger",
    "redact_secret",
    "setup_json_logging",
    "truncate_log_content",
]
