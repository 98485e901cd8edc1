"""Oracle MCP engine - safe query execution for tool-calling agents.

Mediates caller-supplied SQL and structured data against a pooled Oracle
connection: read validation, pagination, point-in-time reads, guarded DML,
result normalization and classified errors.
"""

__version__ = "0.1.0"

from ora_mcp.config.settings import ConnectionConfig, Settings, get_settings
from ora_mcp.models.errors import (
    ConfigurationError,
    DatabaseConnectionError,
    ErrorCode,
    ExitCode,
    OraMcpError,
    QueryError,
    SecurityViolationError,
    SQLSyntaxError,
    TableNotFoundError,
)
from ora_mcp.models.query import QueryOutcome, QueryRequest
from ora_mcp.services.sql_executor import SQLExecutor

__all__ = [
    "__version__",
    # Config
    "ConnectionConfig",
    "Settings",
    "get_settings",
    # Engine
    "SQLExecutor",
    # Models
    "QueryRequest",
    "QueryOutcome",
    # Errors
    "OraMcpError",
    "DatabaseConnectionError",
    "ConfigurationError",
    "QueryError",
    "TableNotFoundError",
    "SQLSyntaxError",
    "SecurityViolationError",
    "ErrorCode",
    "ExitCode",
]
