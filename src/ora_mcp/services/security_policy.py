"""Security policy: table whitelist, row ceiling and DML guardrails.

These checks are pattern based and advisory. They narrow what a caller can
ask for, but they are not a SQL parser and cannot catch every obfuscation;
the account the engine logs in with must still be restricted with database
grants, which remain the real security boundary.
"""

import re
from functools import lru_cache
from typing import Any

from ora_mcp.config.settings import SecurityConfig
from ora_mcp.models.errors import ErrorCode, SecurityViolationError
from ora_mcp.models.query import AccessCheck, ValidationResult


@lru_cache(maxsize=64)
def _keyword_regex(keyword: str) -> re.Pattern[str]:
    # Oracle identifiers may contain _ $ #, so those count as word characters.
    return re.compile(rf"(?<![\w$#]){re.escape(keyword)}(?![\w$#])", re.IGNORECASE)


def contains_keyword(sql: str, keyword: str) -> bool:
    """Return True if ``keyword`` appears in ``sql`` as a standalone token.

    A column called ``DELETED_FLAG`` does not match ``DELETE``.
    """
    return _keyword_regex(keyword).search(sql) is not None


class SecurityPolicy:
    """Read-only view over SecurityConfig with the policy checks.

    Example:
        >>> policy = SecurityPolicy(SecurityConfig(table_whitelist="EMPLOYEES"))
        >>> policy.check_table_access("orders").allowed
        False
        >>> policy.enforce_row_limit(5000)
        1000
    """

    def __init__(self, config: SecurityConfig) -> None:
        self.config = config
        self._whitelist: frozenset[str] | None = (
            frozenset(name.upper() for name in config.table_whitelist)
            if config.table_whitelist
            else None
        )
        self._allowed_verbs = tuple(verb.upper() for verb in config.dml_allowed_verbs)
        self._blacklist = tuple(keyword.upper() for keyword in config.dml_blacklist_keywords)

    @property
    def whitelist(self) -> frozenset[str] | None:
        """Upper-cased allowed table names, or None when unrestricted."""
        return self._whitelist

    @property
    def max_rows(self) -> int:
        return self.config.max_rows

    def check_table_access(self, table_name: str) -> AccessCheck:
        """Check a table name against the whitelist (case-insensitive).

        Args:
            table_name: Table name as supplied by the caller.

        Returns:
            AccessCheck: ``allowed`` and, when denied, a message listing the
            allowed tables.
        """
        if self._whitelist is None:
            return AccessCheck(allowed=True)

        if table_name.strip().upper() in self._whitelist:
            return AccessCheck(allowed=True)

        allowed = ", ".join(sorted(self._whitelist))
        return AccessCheck(
            allowed=False,
            message=f"Table {table_name} is not in the allowed list. Allowed tables: {allowed}",
        )

    def ensure_table_access(self, table_name: str) -> None:
        """Raise SecurityViolationError if the table is not whitelisted."""
        access = self.check_table_access(table_name)
        if not access.allowed:
            raise SecurityViolationError(
                access.message,
                details={"table": table_name},
                suggestion="Ask an administrator to add the table to ORACLE_TABLE_WHITELIST",
            )

    def enforce_row_limit(self, requested: int | None = None) -> int:
        """Clamp a requested row limit into ``[1, max_rows]``.

        An absent request falls back to the configured default limit, still
        capped by the ceiling. Never raises.
        """
        if requested is None:
            return min(self.config.default_limit, self.config.max_rows)
        return min(max(1, int(requested)), self.config.max_rows)

    def validate_dml_sql(self, sql: Any) -> ValidationResult:
        """Check an INSERT/UPDATE statement against the DML policy.

        Checks run in order and the first failure is reported:

        1. the statement starts with an allowed verb;
        2. no blacklisted keyword appears as a standalone token;
        3. an UPDATE carries a WHERE clause.

        Args:
            sql: Statement supplied by the caller.

        Returns:
            ValidationResult: ``valid`` plus the recognized ``verb`` or the
            rejection reason.
        """
        if not isinstance(sql, str) or not sql.strip():
            return ValidationResult(
                valid=False, error="SQL statement must not be empty", code=ErrorCode.SQL_SYNTAX_ERROR
            )

        statement = sql.strip()
        upper = statement.upper()

        verb = next((v for v in self._allowed_verbs if upper.startswith(v)), None)
        if verb is None:
            return ValidationResult(
                valid=False,
                error=f"Only {'/'.join(self._allowed_verbs)} statements are allowed",
                code=ErrorCode.SQL_SYNTAX_ERROR,
            )

        for keyword in self._blacklist:
            if contains_keyword(statement, keyword):
                return ValidationResult(
                    valid=False,
                    error=f"SQL contains forbidden keyword: {keyword}",
                    verb=verb,
                    code=ErrorCode.SQL_SYNTAX_ERROR,
                )

        if verb == "UPDATE" and not contains_keyword(statement, "WHERE"):
            return ValidationResult(
                valid=False,
                error="UPDATE statements must include a WHERE clause to prevent full-table updates",
                verb=verb,
                code=ErrorCode.SQL_SYNTAX_ERROR,
            )

        return ValidationResult(valid=True, verb=verb)

    def describe(self) -> dict[str, Any]:
        """Summary of the effective policy for display."""
        return {
            "max_rows_limit": self.config.max_rows,
            "default_limit": self.config.default_limit,
            "clob_max_length": self.config.clob_max_chars,
            "blob_max_length": self.config.blob_max_bytes,
            "table_whitelist_enabled": self._whitelist is not None,
            "table_whitelist": sorted(self._whitelist) if self._whitelist is not None else None,
            "dml_allowed_verbs": list(self._allowed_verbs),
            "dml_blacklist_keywords": list(self._blacklist),
        }
