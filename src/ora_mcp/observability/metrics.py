"""Prometheus metrics for the Oracle MCP engine.

Tracks engine operations, rejected statements and pool usage with
prometheus_client. Metrics are process-wide, so the collector is a singleton.
"""

from prometheus_client import Counter, Gauge, Histogram, start_http_server


class MetricsCollector:
    """Centralized metrics collector.

    Metrics Categories:
    - Operation metrics: counts by status and durations
    - Security metrics: statements rejected by validation or policy
    - Pool metrics: connections in use, stale connections replaced

    Example:
        >>> metrics = MetricsCollector()
        >>> metrics.increment_operation("execute_query", "success")
    """

    _instance: "MetricsCollector | None" = None

    def __new__(cls) -> "MetricsCollector":
        """Ensure singleton instance."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialize_metrics()
        return cls._instance

    def _initialize_metrics(self) -> None:
        self.enabled = True

        self.operations: Counter = Counter(
            "ora_mcp_operations_total",
            "Total number of engine operations",
            labelnames=["operation", "status"],
        )

        self.operation_duration: Histogram = Histogram(
            "ora_mcp_operation_duration_seconds",
            "Engine operation duration in seconds",
            labelnames=["operation"],
            buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0),
        )

        self.sql_rejected: Counter = Counter(
            "ora_mcp_sql_rejected_total",
            "Total number of statements rejected before execution",
            labelnames=["reason"],
        )

        self.db_connections_in_use: Gauge = Gauge(
            "ora_mcp_db_connections_in_use",
            "Number of pooled connections currently checked out",
        )

        self.stale_connections: Counter = Counter(
            "ora_mcp_stale_connections_total",
            "Connections discarded after a failed liveness probe",
        )

    def start_metrics_server(self, port: int) -> None:
        """Expose ``/metrics`` over HTTP on the given port."""
        start_http_server(port)

    def increment_operation(self, operation: str, status: str) -> None:
        if self.enabled:
            self.operations.labels(operation=operation, status=status).inc()

    def observe_operation_duration(self, operation: str, duration: float) -> None:
        if self.enabled:
            self.operation_duration.labels(operation=operation).observe(duration)

    def increment_sql_rejected(self, reason: str) -> None:
        """Count a rejected statement.

        Args:
            reason: Rejection reason (read_validation, dml_validation,
                table_not_allowed, ...).
        """
        if self.enabled:
            self.sql_rejected.labels(reason=reason).inc()

    def set_connections_in_use(self, count: int) -> None:
        if self.enabled:
            self.db_connections_in_use.set(count)

    def increment_stale_connections(self) -> None:
        if self.enabled:
            self.stale_connections.inc()


# Singleton instance
metrics = MetricsCollector()
