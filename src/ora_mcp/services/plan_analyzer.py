"""Heuristic analysis of DBMS_XPLAN output.

This scans plan text for well-known expensive operations and pulls cost and
row estimates out of it. It does not build a plan tree; unfamiliar output
formats simply produce fewer findings.
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass

from ora_mcp.models.query import PlanAnalysis, PlanWarning, WarningSeverity

HIGH_COST_THRESHOLD = 10000
MEDIUM_COST_THRESHOLD = 1000

_COST_RE = re.compile(r"\bCost\s*[=:]\s*(\d+)", re.IGNORECASE)
_ROWS_RE = re.compile(r"\bRows\s*[=:]\s*(\d+)", re.IGNORECASE)
_FULL_SCAN_TABLE_RE = re.compile(r"TABLE ACCESS FULL\s*\|\s*([\w$#]+)", re.IGNORECASE)
_NUMBER_RE = re.compile(r"^(\d+)\s*([KMG]?)", re.IGNORECASE)

_SUFFIX_FACTORS = {"": 1, "K": 1000, "M": 1000**2, "G": 1000**3}


@dataclass(frozen=True)
class OperationRule:
    type: str
    markers: tuple[str, ...]
    severity: WarningSeverity
    message: str
    suggestion: str


OPERATION_RULES: tuple[OperationRule, ...] = (
    OperationRule(
        "FULL_TABLE_SCAN",
        ("TABLE ACCESS FULL",),
        WarningSeverity.HIGH,
        "Full table scan",
        "Consider an index on the columns used in WHERE conditions",
    ),
    OperationRule(
        "INDEX_FULL_SCAN",
        ("INDEX FULL SCAN",),
        WarningSeverity.MEDIUM,
        "Index full scan",
        "Check whether a more selective index range scan is possible",
    ),
    OperationRule(
        "CARTESIAN_JOIN",
        ("CARTESIAN",),
        WarningSeverity.CRITICAL,
        "Cartesian join",
        "Check for a missing JOIN condition",
    ),
    OperationRule(
        "SORT_OPERATION",
        ("SORT ORDER BY", "SORT GROUP BY"),
        WarningSeverity.LOW,
        "Sort operation (may use a lot of memory)",
        "For large data sets consider an index that avoids the sort",
    ),
)


def _parse_estimate(cell: str) -> int | None:
    """Parse a plan table cell such as ``14``, ``3   (0)`` or ``1200K``."""
    match = _NUMBER_RE.match(cell.strip())
    if match is None:
        return None
    return int(match.group(1)) * _SUFFIX_FACTORS[match.group(2).upper()]


def _split_row(line: str) -> list[str]:
    return [cell.strip() for cell in line.strip().strip("|").split("|")]


class _Maximum:
    """Running maximum that starts out unknown."""

    def __init__(self) -> None:
        self.value: int | None = None

    def offer(self, candidate: int | None) -> None:
        if candidate is not None and (self.value is None or candidate > self.value):
            self.value = candidate


def _rule_warning(rule: OperationRule, line: str) -> PlanWarning:
    message = rule.message
    if rule.type == "FULL_TABLE_SCAN":
        match = _FULL_SCAN_TABLE_RE.search(line)
        message = f"{rule.message}: {match.group(1) if match else 'unknown'}"
    return PlanWarning(
        type=rule.type, message=message, severity=rule.severity, suggestion=rule.suggestion
    )


def analyze_plan(plan_lines: Iterable[str]) -> PlanAnalysis:
    """Scan plan lines for expensive operations and cost estimates.

    Args:
        plan_lines: Lines of DBMS_XPLAN (or similar) output.

    Returns:
        PlanAnalysis: Warnings, operations, the highest cost and row
        estimates found, and a summary line.

    Example:
        >>> result = analyze_plan(["|* 1 | TABLE ACCESS FULL| EMP | 14 | 532 | 3 (0)|"])
        >>> result.warnings[0].type
        'FULL_TABLE_SCAN'
    """
    warnings: list[PlanWarning] = []
    operations: list[str] = []
    cost = _Maximum()
    rows = _Maximum()
    # Column positions once a "| Id | Operation | ... | Rows | ... | Cost |" header is seen.
    columns: dict[str, int] = {}

    for line in plan_lines:
        if line is None:
            continue
        upper = line.upper()

        for rule in OPERATION_RULES:
            if any(marker in upper for marker in rule.markers):
                warnings.append(_rule_warning(rule, line))

        cost.offer(int(m.group(1)) if (m := _COST_RE.search(line)) else None)
        rows.offer(int(m.group(1)) if (m := _ROWS_RE.search(line)) else None)

        if not line.strip().startswith("|"):
            continue
        cells = _split_row(line)
        upper_cells = [cell.upper() for cell in cells]
        if "OPERATION" in upper_cells:
            columns = {
                key: index
                for index, cell in enumerate(upper_cells)
                for key in ("OPERATION", "ROWS", "COST")
                if cell.startswith(key)
            }
            continue
        if not columns or len(cells) <= max(columns.values()):
            continue
        if "OPERATION" in columns and cells[columns["OPERATION"]]:
            operations.append(cells[columns["OPERATION"]])
        if "ROWS" in columns:
            rows.offer(_parse_estimate(cells[columns["ROWS"]]))
        if "COST" in columns:
            cost.offer(_parse_estimate(cells[columns["COST"]]))

    if cost.value is not None:
        if cost.value > HIGH_COST_THRESHOLD:
            warnings.append(
                PlanWarning(
                    type="HIGH_COST",
                    message=f"High execution cost: {cost.value}",
                    severity=WarningSeverity.HIGH,
                    suggestion="Optimize the query or add indexes",
                )
            )
        elif cost.value > MEDIUM_COST_THRESHOLD:
            warnings.append(
                PlanWarning(
                    type="MEDIUM_COST",
                    message=f"Moderate execution cost: {cost.value}",
                    severity=WarningSeverity.MEDIUM,
                    suggestion="May need tuning for large data volumes",
                )
            )

    summary = (
        "Execution plan looks normal"
        if not warnings
        else f"Found {len(warnings)} potential issue(s)"
    )
    return PlanAnalysis(
        warnings=warnings,
        operations=operations,
        estimated_cost=cost.value,
        estimated_rows=rows.value,
        summary=summary,
    )
