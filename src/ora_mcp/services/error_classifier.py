"""Classification of driver and runtime errors into the error taxonomy.

Oracle reports failures as text such as ``ORA-00942: table or view does not
exist``; python-oracledb thin mode adds its own ``DPY-nnnn`` codes for
network and pool failures. Classification matches on the vendor code or on
the message text, so it works for any exception whose string form carries
the driver message.
"""

import re
from dataclasses import dataclass

from ora_mcp.models.errors import (
    ErrorCode,
    ExitCode,
    OraMcpError,
    error_class_for,
    get_exit_code,
)

_NATIVE_CODE_RE = re.compile(r"\b((?:ORA|DPY|DPI|TNS)-\d{4,5})\b")


@dataclass(frozen=True)
class Signature:
    """A recognizable driver failure."""

    code: ErrorCode
    markers: tuple[str, ...]
    message: str
    suggestion: str | None = None

    def matches(self, text: str) -> bool:
        return any(marker in text for marker in self.markers)


# Markers are lower-case; they are compared against the lower-cased message.
# Order matters: the first matching signature wins.
CONNECTION_SIGNATURES: tuple[Signature, ...] = (
    Signature(
        ErrorCode.AUTH_FAILED,
        ("ora-01017", "invalid username/password", "invalid credential", "dpy-4001"),
        "Database authentication failed, check user name and password",
    ),
    Signature(
        ErrorCode.TIMEOUT,
        ("ora-12170", "connect timeout", "dpy-4005", "dpy-4024"),
        "Connection timed out, check the network or the database service",
        "Confirm the database host and port are correct and reachable",
    ),
    Signature(
        ErrorCode.CONNECTION_FAILED,
        ("ora-12541", "no listener", "dpy-6005"),
        "Cannot reach the database listener",
        "Confirm the Oracle listener is running on the configured host and port",
    ),
    Signature(
        ErrorCode.CONNECTION_FAILED,
        ("ora-12514", "listener does not currently know of service", "dpy-6001"),
        "Service name is not known to the listener",
        "Check that the service name is correct",
    ),
)

QUERY_SIGNATURES: tuple[Signature, ...] = (
    Signature(
        ErrorCode.TABLE_NOT_FOUND,
        ("ora-00942", "table or view does not exist"),
        "Table or view does not exist",
        "Check the table name; Oracle stores unquoted names in upper case",
    ),
    Signature(
        ErrorCode.SQL_SYNTAX_ERROR,
        ("ora-00904", "invalid identifier"),
        "Invalid column name or identifier",
    ),
    Signature(
        ErrorCode.SQL_SYNTAX_ERROR,
        ("ora-00933", "ora-00936", "ora-00923", "sql command not properly ended"),
        "SQL syntax error",
    ),
    Signature(
        ErrorCode.QUERY_EXECUTION_ERROR,
        ("ora-00001", "unique constraint"),
        "Unique constraint violated, the row already exists",
    ),
    Signature(
        ErrorCode.QUERY_EXECUTION_ERROR,
        ("ora-02291", "parent key not found"),
        "Foreign key constraint violated, the referenced row does not exist",
    ),
    Signature(
        ErrorCode.QUERY_EXECUTION_ERROR,
        ("ora-01400", "cannot insert null", "not null constraint violated"),
        "A required column cannot be NULL",
    ),
    Signature(
        ErrorCode.ACCESS_DENIED,
        ("ora-01031", "insufficient privileges"),
        "Insufficient privileges for this statement",
        "Ask a DBA to grant the required privilege",
    ),
    Signature(
        ErrorCode.QUERY_EXECUTION_ERROR,
        ("ora-01555", "snapshot too old"),
        "Historical data is no longer available (undo exhausted)",
        "Try a more recent timestamp or ask a DBA to raise UNDO_RETENTION",
    ),
    Signature(
        ErrorCode.QUERY_EXECUTION_ERROR,
        ("ora-08180", "no snapshot found"),
        "No flashback data for the requested time",
        "FLASHBACK privilege and retained undo are needed for historical reads",
    ),
)


_DEFAULT_PREFIX: dict[ErrorCode, str] = {
    ErrorCode.QUERY_EXECUTION_ERROR: "Query execution failed",
    ErrorCode.CONNECTION_FAILED: "Database connection failed",
}


def native_code_of(text: str) -> str | None:
    """Extract the first vendor code such as ``ORA-00942`` from a message."""
    match = _NATIVE_CODE_RE.search(text)
    return match.group(1) if match else None


def _from_signature(
    signature: Signature, native: str, sql: str | None, table: str | None
) -> OraMcpError:
    message = signature.message
    if signature.code is ErrorCode.TABLE_NOT_FOUND and table:
        message = f"Table {table} does not exist or is not accessible"
    details: dict[str, str] = {}
    if sql:
        details["sql"] = sql[:500]
    if table:
        details["table"] = table
    return error_class_for(signature.code)(
        message,
        code=signature.code,
        details=details,
        suggestion=signature.suggestion,
        native_message=native,
        native_code=native_code_of(native),
    )


def _from_builtin(error: BaseException, native: str) -> OraMcpError | None:
    code: ErrorCode | None = None
    if isinstance(error, TimeoutError):
        code = ErrorCode.TIMEOUT
    elif isinstance(error, FileNotFoundError):
        code = ErrorCode.CONFIG_NOT_FOUND
    elif isinstance(error, FileExistsError):
        code = ErrorCode.FILE_EXISTS
    elif isinstance(error, PermissionError):
        code = ErrorCode.WRITE_PERMISSION_DENIED
    if code is None:
        return None

    details = {"file": error.filename} if isinstance(error, OSError) and error.filename else {}
    return error_class_for(code)(code=code, details=details, native_message=native or None)


def classify(
    error: BaseException,
    *,
    sql: str | None = None,
    table: str | None = None,
    default: ErrorCode = ErrorCode.QUERY_EXECUTION_ERROR,
) -> OraMcpError:
    """Map any exception onto a classified error.

    Args:
        error: Exception raised by the driver or the runtime.
        sql: Statement being executed, kept in details for diagnostics.
        table: Table the caller asked for, used in not-found messages.
        default: Code used when no signature matches.

    Returns:
        OraMcpError: ``error`` itself when already classified, otherwise a
        new classified error carrying the native message.
    """
    if isinstance(error, OraMcpError):
        return error

    native = str(error)
    lowered = native.lower()

    for signature in (*CONNECTION_SIGNATURES, *QUERY_SIGNATURES):
        if signature.matches(lowered):
            return _from_signature(signature, native, sql, table)

    builtin = _from_builtin(error, native)
    if builtin is not None:
        return builtin

    details = {"error_type": type(error).__name__}
    if sql:
        details["sql"] = sql[:500]
    return error_class_for(default)(
        f"{_DEFAULT_PREFIX.get(default, 'Operation failed')}: {native}" if native else None,
        code=default,
        details=details,
        native_message=native or None,
        native_code=native_code_of(native),
    )


def classify_connection_error(error: BaseException) -> OraMcpError:
    """Classify a failure raised while connecting or checking out.

    The result is always connection-class: signatures from other classes are
    ignored and the fallback is CONNECTION_FAILED.
    """
    if isinstance(error, OraMcpError) and error.exit_code is ExitCode.CONNECTION_ERROR:
        return error

    native = str(error)
    lowered = native.lower()
    for signature in CONNECTION_SIGNATURES:
        if signature.matches(lowered):
            return _from_signature(signature, native, None, None)
    if isinstance(error, TimeoutError):
        return error_class_for(ErrorCode.TIMEOUT)(code=ErrorCode.TIMEOUT, native_message=native or None)
    return error_class_for(ErrorCode.CONNECTION_FAILED)(
        f"Database connection failed: {native}" if native else None,
        code=ErrorCode.CONNECTION_FAILED,
        details={"error_type": type(error).__name__},
        native_message=native or None,
        native_code=native_code_of(native),
    )


def exit_code_for(error: BaseException | None) -> ExitCode:
    """Process exit code for an outcome; ``None`` means success."""
    if error is None:
        return ExitCode.SUCCESS
    return get_exit_code(classify(error).code)
