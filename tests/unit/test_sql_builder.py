"""Unit tests for SQL construction and read validation."""

import datetime
import json

import pytest

from ora_mcp.models.errors import ErrorCode, SQLSyntaxError
from ora_mcp.services.sql_builder import (
    build_count_sql,
    build_explain_sql,
    build_insert_sql,
    build_paginated_sql,
    build_plan_cleanup_sql,
    build_plan_display_sql,
    build_point_in_time_sql,
    build_table_query_sql,
    ensure_read_sql,
    to_oracle_timestamp,
    validate_identifier,
    validate_read_sql,
)


class TestValidateReadSql:
    """Tests for validate_read_sql."""

    @pytest.mark.parametrize(
        "sql",
        [
            "SELECT * FROM EMP",
            "  select id from emp where deleted_flag = 0",
            "SELECT UPDATED_AT, CREATED_BY FROM AUDIT_LOG",
        ],
    )
    def test_valid(self, sql: str) -> None:
        assert validate_read_sql(sql).valid

    @pytest.mark.parametrize(
        "sql",
        [
            "WITH x AS (SELECT 1 FROM DUAL) SELECT * FROM x",
            "UPDATE EMP SET A=1 WHERE ID=1",
            "EXPLAIN PLAN FOR SELECT 1 FROM DUAL",
            "(SELECT 1 FROM DUAL)",
        ],
    )
    def test_must_start_with_select(self, sql: str) -> None:
        result = validate_read_sql(sql)
        assert not result.valid
        assert result.error == "Only SELECT statements are supported"

    @pytest.mark.parametrize("keyword", ["DROP", "DELETE", "UPDATE", "INSERT", "TRUNCATE", "ALTER", "CREATE"])
    def test_forbidden_keyword_anywhere(self, keyword: str) -> None:
        result = validate_read_sql(f"SELECT * FROM EMP; {keyword.lower()} something")
        assert not result.valid
        assert keyword in result.error

    @pytest.mark.parametrize("sql", [None, "", "   ", 12])
    def test_empty_or_non_string(self, sql: object) -> None:
        result = validate_read_sql(sql)
        assert not result.valid
        assert result.code == ErrorCode.SQL_SYNTAX_ERROR

    def test_ensure_raises(self) -> None:
        with pytest.raises(SQLSyntaxError, match="Only SELECT"):
            ensure_read_sql("DELETE FROM EMP")

    def test_ensure_returns_sql(self) -> None:
        assert ensure_read_sql("SELECT 1 FROM DUAL") == "SELECT 1 FROM DUAL"


class TestValidateIdentifier:
    """Tests for identifier validation."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("employees", "EMPLOYEES"),
            ("hr.employees", "HR.EMPLOYEES"),
            ("EMP$HIST#1", "EMP$HIST#1"),
            ('"MixedCase"', '"MixedCase"'),
            (' hr."Emp" ', 'HR."Emp"'),
        ],
    )
    def test_valid(self, name: str, expected: str) -> None:
        assert validate_identifier(name) == expected

    @pytest.mark.parametrize(
        "name",
        ["", "1EMP", "EMP; DROP TABLE X", "EMP--", "A.B.C", "EMP WHERE 1=1", None],
    )
    def test_invalid(self, name: object) -> None:
        with pytest.raises(SQLSyntaxError, match="Invalid identifier"):
            validate_identifier(name)


class TestPagination:
    """Tests for build_paginated_sql."""

    def test_limit_and_offset(self) -> None:
        assert (
            build_paginated_sql("SELECT * FROM T", 100, 50)
            == "SELECT * FROM T OFFSET 50 ROWS FETCH NEXT 100 ROWS ONLY"
        )

    def test_limit_only_emits_zero_offset(self) -> None:
        assert (
            build_paginated_sql("SELECT * FROM T", 10)
            == "SELECT * FROM T OFFSET 0 ROWS FETCH NEXT 10 ROWS ONLY"
        )

    def test_offset_only(self) -> None:
        assert build_paginated_sql("SELECT * FROM T", None, 5) == "SELECT * FROM T OFFSET 5 ROWS"

    def test_nothing_to_add(self) -> None:
        assert build_paginated_sql("SELECT * FROM T") == "SELECT * FROM T"
        assert build_paginated_sql("SELECT * FROM T", 0, 0) == "SELECT * FROM T"

    def test_strips_single_terminator(self) -> None:
        assert (
            build_paginated_sql("  SELECT * FROM T ;  ", 1)
            == "SELECT * FROM T OFFSET 0 ROWS FETCH NEXT 1 ROWS ONLY"
        )

    def test_idempotent_without_pagination(self) -> None:
        once = build_paginated_sql("SELECT * FROM T")
        assert build_paginated_sql(once) == once


class TestPointInTime:
    """Tests for flashback rewriting."""

    def test_timestamp_literal(self) -> None:
        assert (
            to_oracle_timestamp("2024-01-15T14:30:00.123Z")
            == "TO_TIMESTAMP('2024-01-15 14:30:00', 'YYYY-MM-DD HH24:MI:SS')"
        )

    def test_space_separator(self) -> None:
        assert "'2024-01-15 14:30:00'" in to_oracle_timestamp("2024-01-15 14:30:00")

    @pytest.mark.parametrize("value", ["yesterday", "2024-01-15", "15/01/2024 14:30:00", ""])
    def test_invalid_timestamp(self, value: str) -> None:
        with pytest.raises(SQLSyntaxError, match="Invalid timestamp"):
            to_oracle_timestamp(value)

    def test_trailing_text_discarded(self) -> None:
        literal = to_oracle_timestamp("2024-01-15T14:30:00'); DROP TABLE EMP --")
        assert "DROP" not in literal

    def test_rewrites_first_from(self) -> None:
        sql = build_point_in_time_sql(
            "SELECT * FROM EMP e JOIN DEPT d ON e.DEPTNO = d.DEPTNO", "2024-01-15T14:30:00Z"
        )
        assert sql == (
            "SELECT * FROM EMP AS OF TIMESTAMP "
            "TO_TIMESTAMP('2024-01-15 14:30:00', 'YYYY-MM-DD HH24:MI:SS') "
            "e JOIN DEPT d ON e.DEPTNO = d.DEPTNO"
        )
        assert sql.count("AS OF TIMESTAMP") == 1

    def test_schema_qualified(self) -> None:
        sql = build_point_in_time_sql("select * from hr.emp", "2024-01-15T14:30:00")
        assert "FROM hr.emp AS OF TIMESTAMP" in sql

    def test_without_timestamp(self) -> None:
        assert build_point_in_time_sql("SELECT * FROM EMP", None) == "SELECT * FROM EMP"
        assert build_point_in_time_sql("SELECT * FROM EMP", "") == "SELECT * FROM EMP"

    def test_without_from(self) -> None:
        assert build_point_in_time_sql("SELECT SYSDATE", "2024-01-15T14:30:00") == "SELECT SYSDATE"


class TestTableStatements:
    """Tests for table scan and count statements."""

    def test_table_query(self) -> None:
        assert (
            build_table_query_sql("employees", 100, 0)
            == "SELECT * FROM EMPLOYEES OFFSET 0 ROWS FETCH NEXT 100 ROWS ONLY"
        )

    def test_count(self) -> None:
        assert build_count_sql("hr.employees") == "SELECT COUNT(*) AS CNT FROM HR.EMPLOYEES"

    def test_injection_rejected(self) -> None:
        with pytest.raises(SQLSyntaxError):
            build_count_sql("EMP; DROP TABLE EMP")


class TestInsert:
    """Tests for build_insert_sql."""

    def test_plain_values_are_bound(self) -> None:
        sql, binds, columns = build_insert_sql("emp", {"id": 1, "name": "Alice", "bonus": None})
        assert sql == "INSERT INTO EMP (ID, NAME, BONUS) VALUES (:v0, :v1, :v2)"
        assert binds == {"v0": 1, "v1": "Alice", "v2": None}
        assert columns == ["ID", "NAME", "BONUS"]

    def test_sql_expressions_inlined(self) -> None:
        sql, binds, _ = build_insert_sql(
            "EMP", {"ID": 7, "CREATED": "sysdate", "UPDATED": {"$expr": "CURRENT_TIMESTAMP"}}
        )
        assert sql == "INSERT INTO EMP (ID, CREATED, UPDATED) VALUES (:v0, SYSDATE, CURRENT_TIMESTAMP)"
        assert binds == {"v0": 7}

    def test_date_markers_bind_datetimes(self) -> None:
        _, binds, _ = build_insert_sql(
            "EMP", {"HIRED": {"$date": "2024-01-15"}, "SEEN": {"$timestamp": "2024-01-15T14:30:00.250"}}
        )
        assert binds["v0"] == datetime.datetime(2024, 1, 15)
        assert binds["v1"] == datetime.datetime(2024, 1, 15, 14, 30, 0, 250000)

    def test_invalid_date_marker(self) -> None:
        with pytest.raises(SQLSyntaxError, match=r"Invalid \$date"):
            build_insert_sql("EMP", {"HIRED": {"$date": "not a date"}})

    def test_unknown_expression_rejected(self) -> None:
        with pytest.raises(SQLSyntaxError, match="Unsupported SQL expression"):
            build_insert_sql("EMP", {"ID": {"$expr": "DBMS_RANDOM.VALUE"}})

    def test_objects_bound_as_json(self) -> None:
        _, binds, _ = build_insert_sql("EVENTS", {"PAYLOAD": {"a": 1}, "TAGS": ["x", "y"]})
        assert json.loads(binds["v0"]) == {"a": 1}
        assert json.loads(binds["v1"]) == ["x", "y"]

    @pytest.mark.parametrize("data", [{}, None, [("ID", 1)], "ID=1"])
    def test_empty_or_non_mapping(self, data: object) -> None:
        with pytest.raises(SQLSyntaxError, match="non-empty JSON object"):
            build_insert_sql("EMP", data)

    def test_bad_column_name(self) -> None:
        with pytest.raises(SQLSyntaxError, match="Invalid identifier"):
            build_insert_sql("EMP", {"ID) VALUES (1); --": 1})


class TestPlanStatements:
    """Tests for explain plan statements."""

    def test_explain(self) -> None:
        assert (
            build_explain_sql("SELECT * FROM EMP;", "MCP_1")
            == "EXPLAIN PLAN SET STATEMENT_ID = 'MCP_1' FOR SELECT * FROM EMP"
        )

    def test_display(self) -> None:
        assert build_plan_display_sql("MCP_1", "all") == (
            "SELECT PLAN_TABLE_OUTPUT FROM TABLE(DBMS_XPLAN.DISPLAY('PLAN_TABLE', 'MCP_1', 'ALL'))"
        )

    def test_display_rejects_unknown_format(self) -> None:
        with pytest.raises(SQLSyntaxError, match="Unsupported plan format"):
            build_plan_display_sql("MCP_1", "ADVANCED")

    def test_cleanup(self) -> None:
        assert build_plan_cleanup_sql("MCP_1") == "DELETE FROM PLAN_TABLE WHERE STATEMENT_ID = 'MCP_1'"
