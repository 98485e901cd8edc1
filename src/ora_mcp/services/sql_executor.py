"""Execution engine for Oracle operations.

Each public coroutine is one logical operation: it validates its input,
checks out a probed connection, runs exactly one statement (two for
explain), normalizes the result and releases the connection on every exit
path. Failures always leave as an ``OraMcpError``; driver exceptions are
classified before they are raised.

Reads never open a transaction. Writes run with autocommit off and end in
an explicit commit, or a rollback when the statement fails.
"""

import time
import uuid
from collections.abc import AsyncIterator, Mapping, Sequence
from contextlib import asynccontextmanager
from typing import Any

import oracledb
from oracledb import AsyncConnection

from ora_mcp.config.settings import ConnectionConfig, Settings, get_settings, parse_connection_config
from ora_mcp.db.manager import ConnectionManager
from ora_mcp.models.errors import ErrorCode, OraMcpError, QueryError, SecurityViolationError, SQLSyntaxError
from ora_mcp.models.query import (
    ColumnDescriptor,
    DmlOutcome,
    ExplainOutcome,
    InsertOutcome,
    QueryOutcome,
    QueryRequest,
    TableCount,
)
from ora_mcp.observability.metrics import MetricsCollector
from ora_mcp.observability.metrics import metrics as default_metrics
from ora_mcp.observability.tracing import get_tracing_logger, request_context
from ora_mcp.services.error_classifier import classify, native_code_of
from ora_mcp.services.plan_analyzer import analyze_plan
from ora_mcp.services.result_mapper import ResultMapper, describe_columns
from ora_mcp.services.security_policy import SecurityPolicy
from ora_mcp.services.sql_builder import (
    build_count_sql,
    build_explain_sql,
    build_insert_sql,
    build_paginated_sql,
    build_plan_cleanup_sql,
    build_plan_display_sql,
    build_point_in_time_sql,
    ensure_read_sql,
    validate_identifier,
)

logger = get_tracing_logger(__name__)

_BINARY_LOB_TYPES = (oracledb.DB_TYPE_BLOB, oracledb.DB_TYPE_BFILE)


def _elapsed_ms(start: float) -> int:
    return int(round((time.perf_counter() - start) * 1000))


class SQLExecutor:
    """Runs validated operations against the pool owned by its manager.

    Example:
        >>> executor = SQLExecutor.from_settings()
        >>> await executor.connect({"host": "db", "service_name": "ORCLPDB1",
        ...                         "user": "scott", "password": "tiger"})
        >>> outcome = await executor.execute_query("SELECT * FROM EMP", limit=10)
        >>> outcome.row_count
        10
    """

    def __init__(
        self,
        manager: ConnectionManager,
        policy: SecurityPolicy,
        mapper: ResultMapper | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        """Initialize SQL executor.

        Args:
            manager: Connection manager holding the pool.
            policy: Whitelist, row ceiling and DML policy.
            mapper: Result normalizer. Built from the policy's LOB limits if None.
            metrics: Optional metrics collector.
        """
        self.manager = manager
        self.policy = policy
        self.mapper = mapper or ResultMapper.from_config(policy.config)
        self._metrics = metrics

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "SQLExecutor":
        """Build an executor (and its manager) from process settings."""
        settings = settings or get_settings()
        collector = default_metrics if settings.observability.metrics_enabled else None
        return cls(
            manager=ConnectionManager(settings.pool, metrics=collector),
            policy=SecurityPolicy(settings.security),
            mapper=ResultMapper.from_config(settings.security),
            metrics=collector,
        )

    # Connection lifecycle

    async def connect(self, config: ConnectionConfig | Mapping[str, Any]) -> dict[str, Any]:
        """Create the connection pool, replacing any existing one.

        Args:
            config: A ConnectionConfig or the flat argument object of a
                connect call (``host``, ``port``, ``service_name``, ``user``,
                ``password``).

        Returns:
            dict: Connection summary without the password.
        """
        async with self._operation("connect"):
            connection = (
                config if isinstance(config, ConnectionConfig) else parse_connection_config(config)
            )
            await self.manager.create_pool(connection)
            logger.info("Connected to database", extra={"dsn": connection.safe_dsn})
            return {
                "connected": True,
                "host": connection.host,
                "port": connection.port,
                "service_name": connection.service_name,
                "user": connection.user,
            }

    async def disconnect(self) -> dict[str, Any]:
        async with self._operation("disconnect"):
            await self.manager.close()
            return {"connected": False}

    async def check_connection(self) -> bool:
        """Return True if the active pool can complete a round trip."""
        async with self._operation("check_connection"):
            return await self.manager.check_health()

    # Reads

    async def execute_query(
        self,
        sql: str,
        binds: Mapping[str, Any] | Sequence[Any] | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> QueryOutcome:
        """Run a SELECT with the row ceiling and pagination applied.

        Args:
            sql: SELECT statement.
            binds: Bind variables by name or position.
            limit: Requested row limit, clamped to ``[1, max_rows]``.
            offset: Rows to skip.

        Returns:
            QueryOutcome: Normalized rows. ``warning`` is set when the
            requested limit was above the ceiling.

        Raises:
            SQLSyntaxError: If the statement is not a plain SELECT.
            OraMcpError: Classified database failure.
        """
        async with self._operation("execute_query"):
            self._ensure_read(sql)
            effective = self.policy.enforce_row_limit(limit)
            paginated = build_paginated_sql(sql, effective, offset)
            rows, columns, elapsed = await self._fetch(paginated, binds, effective)
            return self._outcome(rows, columns, elapsed, paginated, warning=self._limit_warning(limit))

    async def query_table(
        self,
        table: str,
        limit: int | None = None,
        offset: int | None = None,
        as_of_timestamp: str | None = None,
    ) -> QueryOutcome:
        """Page through a whitelisted table, optionally as of a past time.

        Raises:
            SecurityViolationError: If the table is not whitelisted.
            TableNotFoundError: If the table does not exist.
        """
        async with self._operation("query_table"):
            name = self._checked_table(table)
            effective = self.policy.enforce_row_limit(limit)
            base = build_point_in_time_sql(f"SELECT * FROM {name}", as_of_timestamp)
            sql = build_paginated_sql(base, effective, offset)
            rows, columns, elapsed = await self._fetch(sql, None, effective, table=name)
            return self._outcome(
                rows,
                columns,
                elapsed,
                sql,
                warning=self._limit_warning(limit),
                as_of_timestamp=as_of_timestamp,
            )

    async def count_table(self, table: str) -> TableCount:
        async with self._operation("count_table"):
            name = self._checked_table(table)
            sql = build_count_sql(name)
            rows, _, elapsed = await self._fetch(sql, None, 1, table=name)
            count = rows[0].get("CNT") if rows else 0
            return TableCount(table=name, count=int(count or 0), execution_time_ms=elapsed)

    async def flashback_query(
        self,
        sql: str,
        as_of_timestamp: str,
        binds: Mapping[str, Any] | Sequence[Any] | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> QueryOutcome:
        """Run a SELECT against the database state at ``as_of_timestamp``.

        Only the first ``FROM <table>`` is read as of the timestamp; other
        tables in joins or subqueries are read at the current time.

        Raises:
            SQLSyntaxError: If the statement or the timestamp is invalid.
            QueryError: If undo data for that time is gone (ORA-01555) or
                flashback is not available (ORA-08180).
        """
        async with self._operation("flashback_query"):
            self._ensure_read(sql)
            if not as_of_timestamp:
                raise SQLSyntaxError(
                    "as_of_timestamp is required for a point-in-time query",
                    suggestion="Use ISO-8601 such as 2024-01-15T14:30:00Z",
                )
            effective = self.policy.enforce_row_limit(limit)
            flashback = build_point_in_time_sql(sql, as_of_timestamp)
            paginated = build_paginated_sql(flashback, effective, offset)
            rows, columns, elapsed = await self._fetch(paginated, binds, effective)
            return self._outcome(
                rows,
                columns,
                elapsed,
                paginated,
                warning=self._limit_warning(limit),
                as_of_timestamp=as_of_timestamp,
            )

    async def execute(self, request: QueryRequest) -> QueryOutcome:
        """Dispatch a QueryRequest to the matching read operation."""
        if request.table is not None:
            return await self.query_table(
                request.table, request.limit, request.offset, request.as_of_timestamp
            )
        if request.as_of_timestamp:
            return await self.flashback_query(
                request.sql, request.as_of_timestamp, request.binds, request.limit, request.offset
            )
        return await self.execute_query(request.sql, request.binds, request.limit, request.offset)

    async def explain_plan(self, sql: str, fmt: str = "TYPICAL") -> ExplainOutcome:
        """Explain a SELECT and analyze the resulting plan.

        The plan rows written to PLAN_TABLE are deleted and committed
        afterwards; a failed cleanup is only logged.

        Args:
            sql: SELECT statement to explain.
            fmt: DBMS_XPLAN format, one of BASIC, TYPICAL or ALL.
        """
        async with self._operation("explain_plan"):
            self._ensure_read(sql)
            fmt = (fmt or "TYPICAL").upper()
            statement_id = f"MCP_{uuid.uuid4().hex[:20].upper()}"
            display_sql = build_plan_display_sql(statement_id, fmt)

            try:
                async with self.manager.connection() as conn:
                    try:
                        with conn.cursor() as cursor:
                            await cursor.execute(build_explain_sql(sql, statement_id))
                            await cursor.execute(display_sql)
                            plan_lines = [row[0] or "" for row in await cursor.fetchall()]
                    finally:
                        await self._cleanup_plan(conn, statement_id)
            except OraMcpError:
                raise
            except Exception as e:
                raise self._plan_error(e, sql) from e

            analysis = analyze_plan(plan_lines)
            logger.info(
                "Execution plan analyzed",
                extra={"warnings": len(analysis.warnings), "estimated_cost": analysis.estimated_cost},
            )
            return ExplainOutcome(
                sql=sql, plan_text="\n".join(plan_lines), analysis=analysis, format=fmt
            )

    # Writes

    async def execute_dml(
        self, sql: str, binds: Mapping[str, Any] | Sequence[Any] | None = None
    ) -> DmlOutcome:
        """Run one INSERT or UPDATE and commit it.

        Raises:
            SQLSyntaxError: If the statement fails the DML policy.
            OraMcpError: Classified database failure; the transaction has
                been rolled back.
        """
        async with self._operation("execute_dml"):
            validation = self.policy.validate_dml_sql(sql)
            if not validation.valid:
                self._reject("dml_validation")
                raise SQLSyntaxError(validation.error, details={"sql": str(sql)[:200] if sql else None})

            rows_affected, elapsed = await self._write(sql, binds)
            logger.info(
                "DML committed", extra={"verb": validation.verb, "rows_affected": rows_affected}
            )
            return DmlOutcome(
                verb=validation.verb,
                rows_affected=rows_affected,
                execution_time_ms=elapsed,
                sql=sql,
            )

    async def insert_record(self, table: str, data: Mapping[str, Any]) -> InsertOutcome:
        """Insert one row built from a column/value mapping.

        Values are bound, except for the allowed SQL expressions
        (SYSDATE, SYSTIMESTAMP, ...) which are inlined.
        """
        async with self._operation("insert_record"):
            name = self._checked_table(table)
            sql, binds, columns = build_insert_sql(name, data)
            rows_affected, elapsed = await self._write(sql, binds, table=name)
            logger.info("Row inserted", extra={"table": name, "rows_affected": rows_affected})
            return InsertOutcome(
                table=name,
                rows_affected=rows_affected,
                columns=columns,
                execution_time_ms=elapsed,
                sql=sql,
            )

    def security_summary(self) -> dict[str, Any]:
        """Effective security policy, for display."""
        return self.policy.describe()

    # Internals

    @asynccontextmanager
    async def _operation(self, name: str) -> AsyncIterator[str]:
        """Bind a request context, time the block and classify what escapes it."""
        start = time.perf_counter()
        async with request_context(name) as request_id:
            try:
                yield request_id
            except OraMcpError as e:
                self._record(name, e.code.name.lower(), start)
                logger.warning(
                    f"Operation failed: {e.message}",
                    extra={"error_code": int(e.code), "native_code": e.native_code},
                )
                raise
            except Exception as e:
                self._record(name, ErrorCode.UNKNOWN.name.lower(), start)
                logger.exception("Operation failed with an unexpected error")
                raise classify(e) from e
            self._record(name, "success", start)

    def _record(self, operation: str, status: str, start: float) -> None:
        if self._metrics is not None:
            self._metrics.increment_operation(operation, status)
            self._metrics.observe_operation_duration(operation, time.perf_counter() - start)

    def _reject(self, reason: str) -> None:
        if self._metrics is not None:
            self._metrics.increment_sql_rejected(reason)

    def _ensure_read(self, sql: Any) -> None:
        try:
            ensure_read_sql(sql)
        except SQLSyntaxError:
            self._reject("read_validation")
            raise

    def _checked_table(self, table: Any) -> str:
        """Validate a table name and check it against the whitelist."""
        name = validate_identifier(table)
        try:
            self.policy.ensure_table_access(name)
        except SecurityViolationError:
            self._reject("table_not_allowed")
            raise
        return name

    def _limit_warning(self, requested: int | None) -> str | None:
        if requested is None or requested <= self.policy.max_rows:
            return None
        return (
            f"Requested {requested} rows exceeds the maximum of {self.policy.max_rows}; "
            f"results are limited to {self.policy.max_rows}"
        )

    @staticmethod
    def _outcome(
        rows: list[dict[str, Any]],
        columns: list[ColumnDescriptor],
        elapsed: int,
        sql: str,
        **extra: Any,
    ) -> QueryOutcome:
        return QueryOutcome(
            rows=rows,
            row_count=len(rows),
            columns=[column.name for column in columns],
            execution_time_ms=elapsed,
            sql=sql,
            **extra,
        )

    async def _fetch(
        self,
        sql: str,
        binds: Mapping[str, Any] | Sequence[Any] | None,
        max_rows: int,
        *,
        table: str | None = None,
    ) -> tuple[list[dict[str, Any]], list[ColumnDescriptor], int]:
        start = time.perf_counter()
        try:
            async with self.manager.connection() as conn:
                with conn.cursor() as cursor:
                    await cursor.execute(sql, binds or None)
                    columns = describe_columns(cursor.description)
                    raw_rows = await cursor.fetchmany(max_rows)
                    rows = [await self._read_lobs(row) for row in raw_rows]
        except OraMcpError:
            raise
        except Exception as e:
            raise classify(e, sql=sql, table=table) from e

        elapsed = _elapsed_ms(start)
        logger.debug("Query executed", extra={"row_count": len(rows), "execution_time_ms": elapsed})
        return self.mapper.map_rows(rows, columns), columns, elapsed

    async def _read_lobs(self, row: Sequence[Any]) -> list[Any]:
        """Replace LOB locators with their (length-capped) contents."""
        values = list(row)
        for index, value in enumerate(values):
            if isinstance(value, oracledb.AsyncLOB):
                # One extra unit lets the mapper see that truncation happened.
                if value.type in _BINARY_LOB_TYPES:
                    amount = self.mapper.blob_max_bytes + 1
                else:
                    amount = self.mapper.clob_max_chars + 1
                values[index] = await value.read(1, amount)
        return values

    async def _write(
        self,
        sql: str,
        binds: Mapping[str, Any] | Sequence[Any] | None,
        *,
        table: str | None = None,
    ) -> tuple[int, int]:
        start = time.perf_counter()
        try:
            async with self.manager.connection() as conn:
                conn.autocommit = False
                with conn.cursor() as cursor:
                    try:
                        await cursor.execute(sql, binds or None)
                        rows_affected = cursor.rowcount or 0
                        await conn.commit()
                    except Exception:
                        await self._rollback(conn)
                        raise
        except OraMcpError:
            raise
        except Exception as e:
            raise classify(e, sql=sql, table=table) from e
        return rows_affected, _elapsed_ms(start)

    async def _rollback(self, conn: AsyncConnection) -> None:
        try:
            await conn.rollback()
        except Exception as e:
            logger.warning(f"Rollback failed: {e!s}")

    async def _cleanup_plan(self, conn: AsyncConnection, statement_id: str) -> None:
        try:
            with conn.cursor() as cursor:
                await cursor.execute(build_plan_cleanup_sql(statement_id))
            await conn.commit()
        except Exception as e:
            logger.warning(f"Failed to clean up PLAN_TABLE rows: {e!s}")

    def _plan_error(self, error: Exception, sql: str) -> OraMcpError:
        native = str(error)
        lowered = native.lower()
        if "ora-02402" in lowered or ("ora-00942" in lowered and "plan_table" in lowered):
            return QueryError(
                "PLAN_TABLE does not exist",
                code=ErrorCode.QUERY_EXECUTION_ERROR,
                details={"sql": sql[:500]},
                suggestion="Ask a DBA to create PLAN_TABLE with @?/rdbms/admin/utlxplan.sql",
                native_message=native,
                native_code=native_code_of(native),
            )
        return classify(error, sql=sql)
