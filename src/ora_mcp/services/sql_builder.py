"""SQL construction and read-statement validation.

Everything here is textual. Pagination uses the Oracle 12c+
``OFFSET ... ROWS FETCH NEXT ... ROWS ONLY`` syntax and point-in-time reads
use flashback ``AS OF TIMESTAMP``. Only the first ``FROM <table>`` of a
statement is rewritten for flashback, so statements with joins or subqueries
read the other tables at the current time.
"""

import json
import re
from collections.abc import Mapping
from typing import Any

from ora_mcp.models.errors import ErrorCode, SQLSyntaxError
from ora_mcp.models.query import ValidationResult
from ora_mcp.services.result_mapper import parse_iso
from ora_mcp.services.security_policy import contains_keyword

READ_FORBIDDEN_KEYWORDS = ("DROP", "DELETE", "UPDATE", "INSERT", "TRUNCATE", "ALTER", "CREATE")

SQL_EXPRESSIONS = frozenset(
    {"SYSDATE", "SYSTIMESTAMP", "NULL", "CURRENT_DATE", "CURRENT_TIMESTAMP"}
)

PLAN_FORMATS = frozenset({"BASIC", "TYPICAL", "ALL"})

_PART = r'(?:"[^"]+"|[A-Za-z][\w$#]*)'
_IDENTIFIER_RE = re.compile(rf"^{_PART}(?:\.{_PART})?$")
_FROM_RE = re.compile(rf"\bFROM\s+(?P<table>{_PART}(?:\.{_PART})?)", re.IGNORECASE)
_TIMESTAMP_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})[T ](\d{2}:\d{2}:\d{2})")


def validate_read_sql(sql: Any) -> ValidationResult:
    """Check that a statement is a plain SELECT.

    Stricter than the DML policy: none of the mutating keywords may appear
    anywhere in the statement as a standalone token.
    """
    if not isinstance(sql, str) or not sql.strip():
        return ValidationResult(
            valid=False, error="SQL statement must not be empty", code=ErrorCode.SQL_SYNTAX_ERROR
        )

    if not sql.strip().upper().startswith("SELECT"):
        return ValidationResult(
            valid=False, error="Only SELECT statements are supported", code=ErrorCode.SQL_SYNTAX_ERROR
        )

    for keyword in READ_FORBIDDEN_KEYWORDS:
        if contains_keyword(sql, keyword):
            return ValidationResult(
                valid=False,
                error=f"Keyword {keyword} is not allowed in a query",
                code=ErrorCode.SQL_SYNTAX_ERROR,
            )

    return ValidationResult(valid=True)


def ensure_read_sql(sql: Any) -> str:
    """Validate a read statement and return it, or raise SQLSyntaxError."""
    result = validate_read_sql(sql)
    if not result.valid:
        raise SQLSyntaxError(result.error, details={"sql": str(sql)[:200] if sql else None})
    return sql


def validate_identifier(name: Any) -> str:
    """Validate a table or column name and return it upper-cased.

    Accepts ``NAME`` or ``SCHEMA.NAME`` made of letters, digits, ``_ $ #``
    or double-quoted parts. Quoted parts keep their case.

    Raises:
        SQLSyntaxError: If the name is empty or contains anything else.
    """
    if not isinstance(name, str) or not _IDENTIFIER_RE.match(name.strip()):
        raise SQLSyntaxError(
            f"Invalid identifier: {name!r}",
            details={"identifier": name if isinstance(name, str) else None},
            suggestion="Use a plain or SCHEMA.TABLE style Oracle identifier",
        )
    parts = re.findall(_PART, name.strip())
    return ".".join(p if p.startswith('"') else p.upper() for p in parts)


def build_paginated_sql(base_sql: str, limit: int | None = None, offset: int | None = None) -> str:
    """Append an OFFSET/FETCH clause to a statement.

    A single trailing ``;`` is removed. ``OFFSET n ROWS`` is emitted only for
    a positive offset and ``FETCH NEXT n ROWS ONLY`` only for a positive
    limit, preceded by ``OFFSET 0 ROWS`` when no offset was emitted. With
    neither, the statement comes back unchanged apart from trimming.

    Example:
        >>> build_paginated_sql("SELECT * FROM T", 100, 50)
        'SELECT * FROM T OFFSET 50 ROWS FETCH NEXT 100 ROWS ONLY'
    """
    sql = base_sql.strip()
    if sql.endswith(";"):
        sql = sql[:-1].rstrip()

    parts: list[str] = []
    if offset is not None and offset > 0:
        parts.append(f"OFFSET {int(offset)} ROWS")
    if limit is not None and limit > 0:
        if not parts:
            parts.append("OFFSET 0 ROWS")
        parts.append(f"FETCH NEXT {int(limit)} ROWS ONLY")

    if parts:
        sql = f"{sql} {' '.join(parts)}"
    return sql


def to_oracle_timestamp(value: str) -> str:
    """Convert an ISO-8601 timestamp to a ``TO_TIMESTAMP`` expression.

    Fractional seconds and zone suffix are discarded.

    Raises:
        SQLSyntaxError: If the value is not ``YYYY-MM-DD[T ]HH:MM:SS...``.
    """
    match = _TIMESTAMP_RE.match(value.strip()) if isinstance(value, str) else None
    if match is None:
        raise SQLSyntaxError(
            f"Invalid timestamp: {value!r}",
            details={"as_of_timestamp": value},
            suggestion="Use ISO-8601 such as 2024-01-15T14:30:00Z",
        )
    return f"TO_TIMESTAMP('{match.group(1)} {match.group(2)}', 'YYYY-MM-DD HH24:MI:SS')"


def build_point_in_time_sql(base_sql: str, as_of_timestamp: str | None) -> str:
    """Rewrite the first ``FROM <table>`` into a flashback read.

    Returns ``base_sql`` unchanged when no timestamp is given or no
    ``FROM <table>`` is found.
    """
    if not as_of_timestamp:
        return base_sql

    literal = to_oracle_timestamp(as_of_timestamp)
    return _FROM_RE.sub(
        lambda m: f"FROM {m.group('table')} AS OF TIMESTAMP {literal}",
        base_sql,
        count=1,
    )


def build_table_query_sql(table: str, limit: int | None = None, offset: int | None = None) -> str:
    """``SELECT *`` over a single table, paginated."""
    return build_paginated_sql(f"SELECT * FROM {validate_identifier(table)}", limit, offset)


def build_count_sql(table: str) -> str:
    return f"SELECT COUNT(*) AS CNT FROM {validate_identifier(table)}"


def _insert_value(value: Any) -> tuple[str | None, Any]:
    """Return ``(inline_expression, bind_value)`` for one insert value."""
    if value is None:
        return None, None

    if isinstance(value, str):
        if value.strip().upper() in SQL_EXPRESSIONS:
            return value.strip().upper(), None
        return None, value

    if isinstance(value, Mapping):
        if "$expr" in value:
            expr = str(value["$expr"]).strip().upper()
            if expr not in SQL_EXPRESSIONS:
                raise SQLSyntaxError(
                    f"Unsupported SQL expression: {value['$expr']}",
                    details={"allowed": sorted(SQL_EXPRESSIONS)},
                )
            return expr, None
        for key in ("$date", "$timestamp"):
            if key in value:
                parsed = parse_iso(str(value[key]))
                if parsed is None:
                    raise SQLSyntaxError(f"Invalid {key} value: {value[key]!r}")
                return None, parsed
        return None, json.dumps(value)

    if isinstance(value, list):
        return None, json.dumps(value)

    return None, value


def build_insert_sql(table: str, data: Any) -> tuple[str, dict[str, Any], list[str]]:
    """Build a single-row INSERT from a JSON object.

    Plain values become bind variables. The strings SYSDATE, SYSTIMESTAMP,
    NULL, CURRENT_DATE and CURRENT_TIMESTAMP, or ``{"$expr": ...}`` naming one
    of them, are inlined. ``{"$date": ...}`` and ``{"$timestamp": ...}`` bind
    a datetime; other objects are bound as JSON text.

    Returns:
        tuple: ``(sql, binds, columns)``.
    """
    table_name = validate_identifier(table)
    if not isinstance(data, Mapping) or not data:
        raise SQLSyntaxError("data must be a non-empty JSON object")

    columns: list[str] = []
    placeholders: list[str] = []
    binds: dict[str, Any] = {}
    for index, (column, value) in enumerate(data.items()):
        column_name = validate_identifier(column)
        expression, bind_value = _insert_value(value)
        columns.append(column_name)
        if expression is not None:
            placeholders.append(expression)
        else:
            bind_name = f"v{index}"
            placeholders.append(f":{bind_name}")
            binds[bind_name] = bind_value

    sql = f"INSERT INTO {table_name} ({', '.join(columns)}) VALUES ({', '.join(placeholders)})"
    return sql, binds, columns


def build_explain_sql(sql: str, statement_id: str) -> str:
    return f"EXPLAIN PLAN SET STATEMENT_ID = '{statement_id}' FOR {sql.strip().rstrip(';')}"


def build_plan_display_sql(statement_id: str, fmt: str = "TYPICAL") -> str:
    """Query returning the DBMS_XPLAN text of a stored plan.

    Raises:
        SQLSyntaxError: If ``fmt`` is not BASIC, TYPICAL or ALL.
    """
    fmt = fmt.upper()
    if fmt not in PLAN_FORMATS:
        raise SQLSyntaxError(
            f"Unsupported plan format: {fmt}", details={"allowed": sorted(PLAN_FORMATS)}
        )
    return (
        "SELECT PLAN_TABLE_OUTPUT FROM "
        f"TABLE(DBMS_XPLAN.DISPLAY('PLAN_TABLE', '{statement_id}', '{fmt}'))"
    )


def build_plan_cleanup_sql(statement_id: str) -> str:
    return f"DELETE FROM PLAN_TABLE WHERE STATEMENT_ID = '{statement_id}'"
