"""Structured logging configuration for the Oracle MCP engine.

Provides JSON or text output on stdout and a filter that redacts credentials
before any record reaches a handler. The filter is installed by default.
"""

import json
import logging
import sys
from typing import Any, ClassVar

REDACTED = "***REDACTED***"

# Attributes every LogRecord carries; anything else came in through ``extra``.
_STANDARD_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
    }
)


class SensitiveDataFilter(logging.Filter):
    """Filter that masks credential-like keys in record extras and args.

    Example:
        >>> handler = logging.StreamHandler()
        >>> handler.addFilter(SensitiveDataFilter())
    """

    SENSITIVE_KEYS: ClassVar[frozenset[str]] = frozenset(
        {
            "password",
            "passwd",
            "pwd",
            "secret",
            "token",
            "access_token",
            "api_key",
            "private_key",
            "authorization",
            "credentials",
        }
    )

    def filter(self, record: logging.LogRecord) -> bool:
        """Sanitize the record in place; always lets it through."""
        if record.args:
            record.args = self._sanitize(record.args)

        for key in list(record.__dict__):
            if key in _STANDARD_ATTRS:
                continue
            if key.lower() in self.SENSITIVE_KEYS:
                record.__dict__[key] = REDACTED
            else:
                record.__dict__[key] = self._sanitize(record.__dict__[key])
        return True

    def _sanitize(self, data: Any) -> Any:
        if isinstance(data, dict):
            return {
                key: REDACTED if str(key).lower() in self.SENSITIVE_KEYS else self._sanitize(value)
                for key, value in data.items()
            }
        if isinstance(data, (list, tuple)):
            return type(data)(self._sanitize(item) for item in data)
        return data


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _STANDARD_ATTRS and key not in ("request_id", "operation")
    }


class JSONFormatter(logging.Formatter):
    """Render each record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for key in ("request_id", "operation"):
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra = _extra_fields(record)
        if extra:
            log_data["extra"] = extra

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable single line format for development consoles."""

    def format(self, record: logging.LogRecord) -> str:
        formatted = (
            f"{self.formatTime(record, self.datefmt)} "
            f"[{record.levelname}] "
            f"{record.name} - "
            f"{record.getMessage()}"
        )

        if hasattr(record, "request_id"):
            formatted += f" [request_id={record.request_id}]"

        extra = _extra_fields(record)
        if extra:
            formatted += " " + " ".join(f"{key}={value}" for key, value in extra.items())

        if record.exc_info:
            formatted += f"\n{self.formatException(record.exc_info)}"

        return formatted


def configure_logging(
    level: str = "INFO",
    log_format: str = "json",
    enable_sensitive_filter: bool = True,
) -> None:
    """Configure the root logger with a single stdout handler.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_format: ``"json"`` or ``"text"``.
        enable_sensitive_filter: Whether to redact credential-like fields.

    Example:
        >>> configure_logging(level="DEBUG", log_format="text")
        >>> logging.getLogger(__name__).info("Pool created", extra={"dsn": "db:1521/ORCL"})
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)

    formatter: logging.Formatter
    if log_format == "json":
        formatter = JSONFormatter(datefmt="%Y-%m-%dT%H:%M:%S")
    else:
        formatter = TextFormatter(datefmt="%Y-%m-%d %H:%M:%S")
    handler.setFormatter(formatter)

    if enable_sensitive_filter:
        handler.addFilter(SensitiveDataFilter())

    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level.upper()))

    logging.getLogger("oracledb").setLevel(logging.WARNING)
