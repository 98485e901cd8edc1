"""Custom exceptions and error codes for the Oracle MCP engine.

Error codes are grouped by hundreds so that a process exit code can be
derived from the range alone:

- 1xx connection errors
- 2xx configuration errors
- 3xx query errors
- 4xx output errors
"""

from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Closed taxonomy of classified error kinds."""

    # Connection errors (1xx)
    CONNECTION_FAILED = 101
    AUTH_FAILED = 102
    TIMEOUT = 103

    # Configuration errors (2xx)
    CONFIG_NOT_FOUND = 201
    CONFIG_PARSE_ERROR = 202
    MISSING_REQUIRED_PARAM = 203

    # Query errors (3xx)
    TABLE_NOT_FOUND = 301
    SQL_SYNTAX_ERROR = 302
    QUERY_EXECUTION_ERROR = 303
    ACCESS_DENIED = 304

    # Output errors (4xx)
    FILE_EXISTS = 401
    WRITE_PERMISSION_DENIED = 402

    UNKNOWN = 999


class ExitCode(IntEnum):
    """Process exit codes, one per error class."""

    SUCCESS = 0
    CONNECTION_ERROR = 1
    CONFIG_ERROR = 2
    QUERY_ERROR = 3
    OUTPUT_ERROR = 4
    UNKNOWN_ERROR = 99


def get_exit_code(code: int) -> ExitCode:
    """Map an error code to the exit code of its class.

    Args:
        code: Error code (an ``ErrorCode`` or its integer value).

    Returns:
        ExitCode: Exit code for the range the error code falls in.
    """
    if 100 <= code < 200:
        return ExitCode.CONNECTION_ERROR
    if 200 <= code < 300:
        return ExitCode.CONFIG_ERROR
    if 300 <= code < 400:
        return ExitCode.QUERY_ERROR
    if 400 <= code < 500:
        return ExitCode.OUTPUT_ERROR
    return ExitCode.UNKNOWN_ERROR


DEFAULT_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.CONNECTION_FAILED: "Unable to connect to the database",
    ErrorCode.AUTH_FAILED: "Database authentication failed, check user name and password",
    ErrorCode.TIMEOUT: "Connection timed out, check the network and database service",
    ErrorCode.CONFIG_NOT_FOUND: "Configuration file not found",
    ErrorCode.CONFIG_PARSE_ERROR: "Configuration could not be parsed",
    ErrorCode.MISSING_REQUIRED_PARAM: "A required parameter is missing",
    ErrorCode.TABLE_NOT_FOUND: "Table or view does not exist",
    ErrorCode.SQL_SYNTAX_ERROR: "SQL statement rejected",
    ErrorCode.QUERY_EXECUTION_ERROR: "Query execution failed",
    ErrorCode.ACCESS_DENIED: "Access denied, table is not in the allowed list",
    ErrorCode.FILE_EXISTS: "File already exists, use --force to overwrite",
    ErrorCode.WRITE_PERMISSION_DENIED: "No write permission",
    ErrorCode.UNKNOWN: "Unknown error",
}


class ErrorDetail:
    """Structured error detail information."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize error detail.

        Args:
            code: Error code identifier.
            message: Human-readable error message.
            details: Optional additional context.
        """
        self.code = code
        self.message = message
        self.details = details or {}

    @property
    def exit_code(self) -> ExitCode:
        """Exit code derived from the error code range."""
        return get_exit_code(self.code)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation.

        Returns:
            dict: Dictionary containing error information.
        """
        result: dict[str, Any] = {
            "code": int(self.code),
            "kind": self.code.name,
            "message": self.message,
            "exit_code": int(self.exit_code),
        }
        if self.details:
            result["details"] = self.details
        return result

    def __repr__(self) -> str:
        return f"ErrorDetail(code={self.code.name}, message={self.message!r})"


class OraMcpError(Exception):
    """Base exception for every classified error.

    Driver exceptions are always converted into an instance of this class
    (or a subclass) before they leave the engine. The original driver text
    is kept in ``native_message`` for diagnostics; tracebacks are never part
    of the user-facing payload.
    """

    default_code: ErrorCode = ErrorCode.UNKNOWN

    def __init__(
        self,
        message: str | None = None,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
        suggestion: str | None = None,
        native_message: str | None = None,
        native_code: str | None = None,
    ) -> None:
        """Initialize base error.

        Args:
            message: Human-readable error message. Defaults to the standard
                message for ``code``.
            code: Error code identifier. Defaults to the class default.
            details: Optional additional context.
            suggestion: Optional remediation hint.
            native_message: Original driver message, if any.
            native_code: Vendor error code such as ``ORA-00942``.
        """
        code = code if code is not None else self.default_code
        message = message or DEFAULT_MESSAGES.get(code, DEFAULT_MESSAGES[ErrorCode.UNKNOWN])
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        self.suggestion = suggestion
        self.native_message = native_message
        self.native_code = native_code

    @property
    def exit_code(self) -> ExitCode:
        """Exit code derived from the error code range."""
        return get_exit_code(self.code)

    def to_error_detail(self) -> ErrorDetail:
        """Convert exception to ErrorDetail.

        Returns:
            ErrorDetail: Structured error detail, including the suggestion
            and native diagnostics inside ``details``.
        """
        details = dict(self.details)
        if self.suggestion:
            details["suggestion"] = self.suggestion
        if self.native_code:
            details["native_code"] = self.native_code
        if self.native_message:
            details["native_message"] = self.native_message
        return ErrorDetail(code=self.code, message=self.message, details=details)

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible payload for the dispatch layer."""
        return self.to_error_detail().to_dict()

    def to_user_message(self) -> str:
        """Format the error for display to an end user.

        Returns:
            str: Multi-line message with code, field, native error and hint.
        """
        lines = [f"[Error {int(self.code)}] {self.message}"]
        if "field" in self.details:
            lines.append(f"  Missing field: {self.details['field']}")
        if "file" in self.details:
            lines.append(f"  File: {self.details['file']}")
        if self.native_message:
            lines.append(f"  Oracle error: {self.native_message}")
        if self.suggestion:
            lines.append(f"  Suggestion: {self.suggestion}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.name}, message={self.message!r})"


class DatabaseConnectionError(OraMcpError):
    """Raised when the database cannot be reached or the login is refused."""

    default_code = ErrorCode.CONNECTION_FAILED


class ConfigurationError(OraMcpError):
    """Raised for missing or malformed configuration."""

    default_code = ErrorCode.CONFIG_PARSE_ERROR


class QueryError(OraMcpError):
    """Raised when a statement fails validation or execution."""

    default_code = ErrorCode.QUERY_EXECUTION_ERROR


class TableNotFoundError(QueryError):
    """Raised when the referenced table or view does not exist."""

    default_code = ErrorCode.TABLE_NOT_FOUND


class SQLSyntaxError(QueryError):
    """Raised when a statement is rejected by a validator or by the parser."""

    default_code = ErrorCode.SQL_SYNTAX_ERROR


class SecurityViolationError(QueryError):
    """Raised when the security policy denies access to an object."""

    default_code = ErrorCode.ACCESS_DENIED


class OutputError(OraMcpError):
    """Raised when results cannot be written to their destination."""

    default_code = ErrorCode.FILE_EXISTS


_CLASS_BY_CODE: dict[ErrorCode, type[OraMcpError]] = {
    ErrorCode.TABLE_NOT_FOUND: TableNotFoundError,
    ErrorCode.SQL_SYNTAX_ERROR: SQLSyntaxError,
    ErrorCode.ACCESS_DENIED: SecurityViolationError,
}


def error_class_for(code: ErrorCode) -> type[OraMcpError]:
    """Pick the most specific exception class for an error code."""
    if code in _CLASS_BY_CODE:
        return _CLASS_BY_CODE[code]
    exit_code = get_exit_code(code)
    if exit_code is ExitCode.CONNECTION_ERROR:
        return DatabaseConnectionError
    if exit_code is ExitCode.CONFIG_ERROR:
        return ConfigurationError
    if exit_code is ExitCode.QUERY_ERROR:
        return QueryError
    if exit_code is ExitCode.OUTPUT_ERROR:
        return OutputError
    return OraMcpError
