"""Observability module for the Oracle MCP engine.

This module provides:
- Prometheus metrics collection
- Structured JSON or text logging with credential redaction
- Request tracing and context propagation

Example:
    >>> from ora_mcp.observability import metrics, configure_logging, request_context
    >>>
    >>> configure_logging(level="INFO", log_format="json")
    >>> metrics.start_metrics_server(9090)
    >>>
    >>> async with request_context("execute_query") as request_id:
    ...     metrics.increment_operation("execute_query", "success")
"""

from ora_mcp.observability.logging import (
    JSONFormatter,
    SensitiveDataFilter,
    TextFormatter,
    configure_logging,
)
from ora_mcp.observability.metrics import MetricsCollector, metrics
from ora_mcp.observability.tracing import (
    TracingLogger,
    generate_request_id,
    get_operation,
    get_request_id,
    get_tracing_logger,
    request_context,
)

__all__ = [
    # Metrics
    "MetricsCollector",
    "metrics",
    # Logging
    "configure_logging",
    "JSONFormatter",
    "TextFormatter",
    "SensitiveDataFilter",
    # Tracing
    "request_context",
    "generate_request_id",
    "get_request_id",
    "get_operation",
    "TracingLogger",
    "get_tracing_logger",
]
