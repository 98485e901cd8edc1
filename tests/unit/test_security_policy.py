"""Unit tests for SecurityPolicy.

Covers the table whitelist, the row-limit clamp and the DML guardrails.
"""

import pytest

from ora_mcp.config.settings import SecurityConfig
from ora_mcp.models.errors import ErrorCode, SecurityViolationError
from ora_mcp.services.security_policy import SecurityPolicy, contains_keyword


@pytest.fixture
def policy() -> SecurityPolicy:
    return SecurityPolicy(SecurityConfig())


@pytest.fixture
def restricted_policy() -> SecurityPolicy:
    return SecurityPolicy(SecurityConfig(table_whitelist="EMPLOYEES,departments"))


class TestContainsKeyword:
    """Tests for standalone keyword matching."""

    def test_standalone(self) -> None:
        assert contains_keyword("UPDATE T SET A=1; DELETE FROM T", "DELETE")

    def test_case_insensitive(self) -> None:
        assert contains_keyword("update t set a = 1 where id = 2", "WHERE")

    @pytest.mark.parametrize("sql", ["UPDATE T SET DELETED_FLAG=1", "UPDATE T SET IS_DELETE$=1", "UPDATE UNDELETE SET A=1"])
    def test_part_of_identifier(self, sql: str) -> None:
        assert not contains_keyword(sql, "DELETE")


class TestTableAccess:
    """Tests for the table whitelist."""

    def test_no_whitelist_allows_everything(self, policy: SecurityPolicy) -> None:
        assert policy.whitelist is None
        assert policy.check_table_access("ANYTHING").allowed

    def test_case_insensitive(self, restricted_policy: SecurityPolicy) -> None:
        assert restricted_policy.check_table_access("employees").allowed
        assert restricted_policy.check_table_access("Departments").allowed

    def test_denied_lists_allowed_tables(self) -> None:
        policy = SecurityPolicy(SecurityConfig(table_whitelist="EMPLOYEES"))
        result = policy.check_table_access("orders")

        assert not result.allowed
        assert "orders" in result.message
        assert "Allowed tables: EMPLOYEES" in result.message

    def test_ensure_raises(self, restricted_policy: SecurityPolicy) -> None:
        with pytest.raises(SecurityViolationError) as exc_info:
            restricted_policy.ensure_table_access("SALARIES")

        error = exc_info.value
        assert error.code == ErrorCode.ACCESS_DENIED
        assert error.details == {"table": "SALARIES"}
        assert error.suggestion

    def test_ensure_allows(self, restricted_policy: SecurityPolicy) -> None:
        restricted_policy.ensure_table_access("EMPLOYEES")


class TestRowLimit:
    """Tests for enforce_row_limit."""

    @pytest.mark.parametrize(
        ("requested", "expected"),
        [
            (None, 100),
            (0, 1),
            (-5, 1),
            (1, 1),
            (500, 500),
            (1000, 1000),
            (5000, 1000),
        ],
    )
    def test_clamp(self, policy: SecurityPolicy, requested: int | None, expected: int) -> None:
        assert policy.enforce_row_limit(requested) == expected

    def test_default_capped_by_ceiling(self) -> None:
        policy = SecurityPolicy(SecurityConfig(max_rows=20, default_limit=100))
        assert policy.enforce_row_limit() == 20


class TestValidateDml:
    """Tests for validate_dml_sql."""

    def test_update_without_where(self, policy: SecurityPolicy) -> None:
        result = policy.validate_dml_sql("UPDATE EMPLOYEES SET SALARY=1")
        assert not result.valid
        assert "WHERE" in result.error
        assert result.code == ErrorCode.SQL_SYNTAX_ERROR

    def test_update_with_where(self, policy: SecurityPolicy) -> None:
        result = policy.validate_dml_sql("UPDATE EMPLOYEES SET SALARY=1 WHERE ID=1")
        assert result.valid
        assert result.verb == "UPDATE"
        assert result.error is None

    def test_insert(self, policy: SecurityPolicy) -> None:
        result = policy.validate_dml_sql("  insert into EMP (ID) values (1)")
        assert result.valid
        assert result.verb == "INSERT"

    @pytest.mark.parametrize(
        "sql",
        ["DELETE FROM EMP WHERE ID=1", "SELECT * FROM EMP", "MERGE INTO EMP USING DUAL ON (1=1)"],
    )
    def test_disallowed_verb(self, policy: SecurityPolicy, sql: str) -> None:
        result = policy.validate_dml_sql(sql)
        assert not result.valid
        assert result.error == "Only INSERT/UPDATE statements are allowed"

    def test_blacklisted_keyword(self, policy: SecurityPolicy) -> None:
        result = policy.validate_dml_sql("UPDATE EMP SET A=1 WHERE ID IN (SELECT 1 FROM DUAL); DROP TABLE EMP")
        assert not result.valid
        assert result.error == "SQL contains forbidden keyword: DROP"

    def test_identifier_containing_keyword(self, policy: SecurityPolicy) -> None:
        result = policy.validate_dml_sql("UPDATE EMP SET DELETED_FLAG=1 WHERE ID=1")
        assert result.valid

    def test_first_failing_check_reported(self, policy: SecurityPolicy) -> None:
        # Both the blacklist and the WHERE rule fail; the blacklist runs first.
        result = policy.validate_dml_sql("UPDATE EMP SET A=1; TRUNCATE TABLE EMP")
        assert result.error == "SQL contains forbidden keyword: TRUNCATE"

    @pytest.mark.parametrize("sql", [None, "", "   ", 42])
    def test_empty_or_non_string(self, policy: SecurityPolicy, sql: object) -> None:
        result = policy.validate_dml_sql(sql)
        assert not result.valid
        assert result.code == ErrorCode.SQL_SYNTAX_ERROR


class TestDescribe:
    def test_summary(self, restricted_policy: SecurityPolicy) -> None:
        summary = restricted_policy.describe()
        assert summary["max_rows_limit"] == 1000
        assert summary["table_whitelist_enabled"] is True
        assert summary["table_whitelist"] == ["DEPARTMENTS", "EMPLOYEES"]
        assert summary["dml_allowed_verbs"] == ["INSERT", "UPDATE"]

    def test_summary_without_whitelist(self, policy: SecurityPolicy) -> None:
        summary = policy.describe()
        assert summary["table_whitelist_enabled"] is False
        assert summary["table_whitelist"] is None
