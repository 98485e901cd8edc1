"""Service layer for the Oracle MCP engine.

Policy checks, SQL construction, result normalization, error classification
and plan analysis. Import the execution engine from
``ora_mcp.services.sql_executor``.
"""

from ora_mcp.services.error_classifier import classify, classify_connection_error, exit_code_for
from ora_mcp.services.plan_analyzer import analyze_plan
from ora_mcp.services.result_mapper import ResultMapper, map_type, parse_iso, to_iso
from ora_mcp.services.security_policy import SecurityPolicy

__all__ = [
    "SecurityPolicy",
    "ResultMapper",
    "map_type",
    "to_iso",
    "parse_iso",
    "classify",
    "classify_connection_error",
    "exit_code_for",
    "analyze_plan",
]
