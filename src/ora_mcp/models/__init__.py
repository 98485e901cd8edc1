"""Data models module."""

from ora_mcp.models.errors import (
    ConfigurationError,
    DatabaseConnectionError,
    ErrorCode,
    ErrorDetail,
    ExitCode,
    OraMcpError,
    OutputError,
    QueryError,
    SecurityViolationError,
    SQLSyntaxError,
    TableNotFoundError,
    get_exit_code,
)
from ora_mcp.models.query import (
    AccessCheck,
    ColumnDescriptor,
    DmlOutcome,
    ExplainOutcome,
    InsertOutcome,
    PlanAnalysis,
    PlanWarning,
    QueryOutcome,
    QueryRequest,
    TableCount,
    TargetType,
    ValidationResult,
    WarningSeverity,
)

__all__ = [
    # Query models
    "AccessCheck",
    "ColumnDescriptor",
    "DmlOutcome",
    "ExplainOutcome",
    "InsertOutcome",
    "PlanAnalysis",
    "PlanWarning",
    "QueryOutcome",
    "QueryRequest",
    "TableCount",
    "TargetType",
    "ValidationResult",
    "WarningSeverity",
    # Error models
    "ErrorCode",
    "ErrorDetail",
    "ExitCode",
    "get_exit_code",
    "OraMcpError",
    "DatabaseConnectionError",
    "ConfigurationError",
    "QueryError",
    "TableNotFoundError",
    "SQLSyntaxError",
    "SecurityViolationError",
    "OutputError",
]
