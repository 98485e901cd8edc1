"""Request and outcome models for engine operations.

Every outcome is a pydantic model whose ``model_dump()`` is JSON-compatible,
so the dispatch layer can serialize it without further conversion.
"""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, model_validator

from ora_mcp.models.errors import ErrorCode


class TargetType(StrEnum):
    """Closed set of normalized column types."""

    STRING = "string"
    NUMBER = "number"
    DATE = "date"
    BINARY = "binary"
    BOOLEAN = "boolean"
    OBJECT = "object"


class ValidationResult(BaseModel):
    """Outcome of a pattern-based SQL check."""

    valid: bool = Field(..., description="Whether the statement passed every check")
    error: str | None = Field(None, description="Reason of the first failing check")
    verb: str | None = Field(None, description="Leading DML verb, when recognized")
    code: ErrorCode | None = Field(None, description="Error code to raise when invalid")


class AccessCheck(BaseModel):
    """Outcome of a table whitelist lookup."""

    allowed: bool
    message: str | None = None


class QueryRequest(BaseModel):
    """A read request: ad hoc SQL or a table scan."""

    sql: str | None = Field(None, description="SELECT statement to run")
    table: str | None = Field(None, description="Table to scan instead of SQL")
    binds: dict[str, Any] | list[Any] | None = Field(None, description="Bind variables")
    limit: int | None = Field(None, description="Requested row limit")
    offset: int | None = Field(None, ge=0, description="Rows to skip")
    as_of_timestamp: str | None = Field(
        None, description="ISO-8601 timestamp for a point-in-time read"
    )

    @model_validator(mode="after")
    def check_target(self) -> "QueryRequest":
        if (self.sql is None) == (self.table is None):
            raise ValueError("exactly one of 'sql' or 'table' must be provided")
        return self


class ColumnDescriptor(BaseModel):
    """Column metadata reported by the driver."""

    name: str
    native_type: str
    inferred_type: TargetType
    nullable: bool = True
    length: int | None = None
    precision: int | None = None
    scale: int | None = None


class QueryOutcome(BaseModel):
    """Normalized result of a read operation."""

    rows: list[dict[str, Any]] = Field(default_factory=list)
    row_count: int = 0
    columns: list[str] = Field(default_factory=list)
    execution_time_ms: int = 0
    sql: str = Field(..., description="Statement actually sent to the database")
    warning: str | None = None
    as_of_timestamp: str | None = None


class TableCount(BaseModel):
    """Row count of a single table."""

    table: str
    count: int
    execution_time_ms: int = 0


class DmlOutcome(BaseModel):
    """Result of an INSERT or UPDATE statement."""

    success: bool = True
    verb: str
    rows_affected: int = 0
    execution_time_ms: int = 0
    sql: str


class InsertOutcome(BaseModel):
    """Result of a structured single-row insert."""

    success: bool = True
    table: str
    rows_affected: int = 0
    columns: list[str] = Field(default_factory=list)
    execution_time_ms: int = 0
    sql: str


class WarningSeverity(StrEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class PlanWarning(BaseModel):
    """A potential performance problem spotted in a plan."""

    type: str
    message: str
    severity: WarningSeverity
    suggestion: str


class PlanAnalysis(BaseModel):
    """Heuristic summary of an execution plan."""

    warnings: list[PlanWarning] = Field(default_factory=list)
    operations: list[str] = Field(default_factory=list)
    estimated_cost: int | None = None
    estimated_rows: int | None = None
    summary: str = ""


class ExplainOutcome(BaseModel):
    """Execution plan text plus its analysis."""

    sql: str
    plan_text: str
    analysis: PlanAnalysis
    format: str
