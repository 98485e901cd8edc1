"""Normalization of driver rows into JSON-compatible records.

Oracle type names are mapped onto a small closed set of target types, SQL
NULL always becomes ``None``, temporal values become ISO-8601 strings and
oversized text or binary values are truncated with a visible marker.
"""

import base64
import datetime
import decimal
import uuid
from collections.abc import Mapping, Sequence
from typing import Any

from ora_mcp.config.settings import SecurityConfig
from ora_mcp.models.query import ColumnDescriptor, TargetType

TRUNCATION_MARKER = "... [TRUNCATED]"

TYPE_MAPPING: dict[str, TargetType] = {
    # Character types
    "VARCHAR2": TargetType.STRING,
    "VARCHAR": TargetType.STRING,
    "CHAR": TargetType.STRING,
    "NVARCHAR2": TargetType.STRING,
    "NCHAR": TargetType.STRING,
    "LONG": TargetType.STRING,
    "CLOB": TargetType.STRING,
    "NCLOB": TargetType.STRING,
    # Numeric types
    "NUMBER": TargetType.NUMBER,
    "INTEGER": TargetType.NUMBER,
    "INT": TargetType.NUMBER,
    "SMALLINT": TargetType.NUMBER,
    "FLOAT": TargetType.NUMBER,
    "REAL": TargetType.NUMBER,
    "DOUBLE PRECISION": TargetType.NUMBER,
    "BINARY_FLOAT": TargetType.NUMBER,
    "BINARY_DOUBLE": TargetType.NUMBER,
    "BINARY_INTEGER": TargetType.NUMBER,
    # Temporal types (TIMESTAMP variants are handled by prefix)
    "DATE": TargetType.DATE,
    "TIMESTAMP": TargetType.DATE,
    # Binary types
    "BLOB": TargetType.BINARY,
    "RAW": TargetType.BINARY,
    "LONG RAW": TargetType.BINARY,
    "BFILE": TargetType.BINARY,
    # Others
    "ROWID": TargetType.STRING,
    "UROWID": TargetType.STRING,
    "XMLTYPE": TargetType.STRING,
    "BOOLEAN": TargetType.BOOLEAN,
    "JSON": TargetType.OBJECT,
}

# python-oracledb reports column types as DbType objects named DB_TYPE_*.
DRIVER_TYPE_NAMES: dict[str, str] = {
    "DB_TYPE_VARCHAR": "VARCHAR2",
    "DB_TYPE_NVARCHAR": "NVARCHAR2",
    "DB_TYPE_CHAR": "CHAR",
    "DB_TYPE_NCHAR": "NCHAR",
    "DB_TYPE_LONG": "LONG",
    "DB_TYPE_LONG_NVARCHAR": "LONG",
    "DB_TYPE_CLOB": "CLOB",
    "DB_TYPE_NCLOB": "NCLOB",
    "DB_TYPE_NUMBER": "NUMBER",
    "DB_TYPE_BINARY_INTEGER": "BINARY_INTEGER",
    "DB_TYPE_BINARY_FLOAT": "BINARY_FLOAT",
    "DB_TYPE_BINARY_DOUBLE": "BINARY_DOUBLE",
    "DB_TYPE_DATE": "DATE",
    "DB_TYPE_TIMESTAMP": "TIMESTAMP",
    "DB_TYPE_TIMESTAMP_TZ": "TIMESTAMP WITH TIME ZONE",
    "DB_TYPE_TIMESTAMP_LTZ": "TIMESTAMP WITH LOCAL TIME ZONE",
    "DB_TYPE_BLOB": "BLOB",
    "DB_TYPE_RAW": "RAW",
    "DB_TYPE_LONG_RAW": "LONG RAW",
    "DB_TYPE_BFILE": "BFILE",
    "DB_TYPE_ROWID": "ROWID",
    "DB_TYPE_UROWID": "UROWID",
    "DB_TYPE_BOOLEAN": "BOOLEAN",
    "DB_TYPE_JSON": "JSON",
    "DB_TYPE_XMLTYPE": "XMLTYPE",
}


def base_type_name(native_type: str | None) -> str:
    """Upper-case a type name and strip any ``(length, scale)`` suffix."""
    if not native_type:
        return ""
    return native_type.upper().split("(")[0].strip()


def map_type(native_type: str | None) -> TargetType:
    """Map an Oracle type name to a target type.

    Unknown or empty names map to ``TargetType.OBJECT``; this never raises.

    Example:
        >>> map_type("VARCHAR2(100)")
        <TargetType.STRING: 'string'>
        >>> map_type("TIMESTAMP(6) WITH TIME ZONE")
        <TargetType.DATE: 'date'>
    """
    base = base_type_name(native_type)
    if base.startswith("TIMESTAMP"):
        return TargetType.DATE
    return TYPE_MAPPING.get(base, TargetType.OBJECT)


def native_type_name(type_code: Any) -> str:
    """Oracle type name for a DB-API ``type_code``."""
    if type_code is None:
        return ""
    if isinstance(type_code, str):
        return type_code.upper()
    name = str(getattr(type_code, "name", type_code)).upper()
    return DRIVER_TYPE_NAMES.get(name, name.removeprefix("DB_TYPE_").replace("_", " "))


def to_iso(value: datetime.date | None) -> str | None:
    """Render a date or datetime as ISO-8601 with millisecond precision.

    Aware datetimes are converted to UTC and suffixed with ``Z``; naive ones
    (Oracle DATE and TIMESTAMP) are rendered as-is.
    """
    if value is None:
        return None
    if isinstance(value, datetime.datetime):
        if value.tzinfo is not None:
            utc = value.astimezone(datetime.UTC)
            return utc.replace(tzinfo=None).isoformat(timespec="milliseconds") + "Z"
        return value.isoformat(timespec="milliseconds")
    return value.isoformat()


def parse_iso(text: str | None) -> datetime.datetime | None:
    """Parse an ISO-8601 string; ``None`` for missing or invalid input."""
    if text is None:
        return None
    try:
        return datetime.datetime.fromisoformat(text.strip())
    except (TypeError, ValueError):
        return None


def _truncate_text(value: str, max_chars: int) -> str:
    if len(value) <= max_chars:
        return value
    return value[:max_chars] + TRUNCATION_MARKER


def _encode_binary(value: bytes | bytearray | memoryview, max_bytes: int) -> str:
    data = bytes(value)
    encoded = base64.b64encode(data[:max_bytes]).decode("ascii")
    if len(data) > max_bytes:
        encoded += TRUNCATION_MARKER
    return encoded


def describe_columns(description: Sequence[Any] | None) -> list[ColumnDescriptor]:
    """Build column descriptors from a DB-API ``cursor.description``.

    Accepts plain 7-tuples as well as python-oracledb ``FetchInfo`` objects.
    """
    columns: list[ColumnDescriptor] = []
    for entry in description or ():
        name, type_code, _display_size, internal_size, precision, scale, null_ok = tuple(entry)[:7]
        native = native_type_name(type_code)
        columns.append(
            ColumnDescriptor(
                name=str(name),
                native_type=native,
                inferred_type=map_type(native),
                nullable=bool(null_ok) if null_ok is not None else True,
                length=internal_size,
                precision=precision,
                scale=scale,
            )
        )
    return columns


class ResultMapper:
    """Convert raw driver values into normalized rows.

    Example:
        >>> mapper = ResultMapper(clob_max_chars=10)
        >>> mapper.map_value("x" * 12, "CLOB")
        'xxxxxxxxxx... [TRUNCATED]'
    """

    def __init__(self, clob_max_chars: int = 4000, blob_max_bytes: int = 1024) -> None:
        self.clob_max_chars = clob_max_chars
        self.blob_max_bytes = blob_max_bytes

    @classmethod
    def from_config(cls, config: SecurityConfig) -> "ResultMapper":
        return cls(clob_max_chars=config.clob_max_chars, blob_max_bytes=config.blob_max_bytes)

    def map_value(self, value: Any, native_type: str | None = None) -> Any:
        """Normalize a single value.

        Args:
            value: Raw value from the driver.
            native_type: Oracle type name of the column, if known.

        Returns:
            JSON-compatible value; ``None`` for SQL NULL.
        """
        if value is None:
            return None

        if isinstance(value, (datetime.datetime, datetime.date)):
            return to_iso(value)

        if isinstance(value, (bytes, bytearray, memoryview)):
            return _encode_binary(value, self.blob_max_bytes)

        if isinstance(value, str) and map_type(native_type) is TargetType.BINARY:
            # RAW fetched as hex text: two characters per byte.
            return _truncate_text(value, self.blob_max_bytes * 2)

        if isinstance(value, str):
            # Long text types and unexpectedly large ad hoc strings share the threshold.
            return _truncate_text(value, self.clob_max_chars)

        if isinstance(value, decimal.Decimal):
            return int(value) if value == value.to_integral_value() else float(value)

        if isinstance(value, datetime.timedelta):
            return str(value)

        if isinstance(value, uuid.UUID):
            return str(value)

        return value

    def map_row(
        self, row: Sequence[Any] | Mapping[str, Any], columns: Sequence[ColumnDescriptor]
    ) -> dict[str, Any]:
        """Zip a positional or named row against its column descriptors.

        Every column gets a key, so a NULL cell (or a key absent from a
        mapping row) appears as ``None`` rather than going missing.
        """
        if isinstance(row, Mapping):
            return {
                column.name: self.map_value(row.get(column.name), column.native_type)
                for column in columns
            }
        return {
            column.name: self.map_value(row[index] if index < len(row) else None, column.native_type)
            for index, column in enumerate(columns)
        }

    def map_rows(
        self,
        rows: Sequence[Sequence[Any] | Mapping[str, Any]],
        columns: Sequence[ColumnDescriptor],
    ) -> list[dict[str, Any]]:
        return [self.map_row(row, columns) for row in rows]
