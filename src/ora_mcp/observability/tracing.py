"""Request tracing and context propagation.

Each engine operation runs inside ``request_context()`` so every log line it
produces, including those from the pool manager, carries the same request id.
"""

import contextvars
import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

_request_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id", default=None
)
_operation_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "operation", default=None
)


def generate_request_id() -> str:
    """Generate a unique request ID."""
    return str(uuid.uuid4())


def get_request_id() -> str | None:
    """Get the current request ID from context."""
    return _request_id_var.get()


def get_operation() -> str | None:
    """Get the name of the operation running in the current context."""
    return _operation_var.get()


@asynccontextmanager
async def request_context(
    operation: str | None = None, request_id: str | None = None
) -> AsyncIterator[str]:
    """Bind a request ID (and operation name) for the duration of a block.

    Args:
        operation: Name of the engine operation.
        request_id: Optional request ID. A new one is generated if omitted.

    Yields:
        The request ID for this context.

    Example:
        >>> async with request_context("execute_query") as req_id:
        ...     await executor.execute_query("SELECT 1 FROM DUAL")
    """
    if request_id is None:
        request_id = generate_request_id()

    request_token = _request_id_var.set(request_id)
    operation_token = _operation_var.set(operation)
    try:
        yield request_id
    finally:
        _operation_var.reset(operation_token)
        _request_id_var.reset(request_token)


class TracingLogger:
    """Logger wrapper that adds the current request context to every record.

    Example:
        >>> logger = TracingLogger(__name__)
        >>> async with request_context("query_table"):
        ...     logger.info("Scanning table", extra={"table": "EMPLOYEES"})
    """

    def __init__(self, name: str):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, msg: str, *args: Any, **kwargs: Any) -> None:
        extra = dict(kwargs.pop("extra", None) or {})
        request_id = get_request_id()
        operation = get_operation()

        if request_id and "request_id" not in extra:
            extra["request_id"] = request_id
        if operation and "operation" not in extra:
            extra["operation"] = operation

        kwargs["extra"] = extra
        kwargs.setdefault("stacklevel", 3)
        self._logger.log(level, msg, *args, **kwargs)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log an error message with the active exception's traceback."""
        kwargs["exc_info"] = True
        self._log(logging.ERROR, msg, *args, **kwargs)


def get_tracing_logger(name: str) -> TracingLogger:
    """Get a tracing logger instance (typically for ``__name__``)."""
    return TracingLogger(name)
