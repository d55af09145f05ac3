"""
app/domain/column_roles.py

Column roles and the heuristic that pre-fills them from header text.

The heuristic is an ordered rule table: every header is tested against the
rules top to bottom and takes the role of the first rule that matches.
Rule order is significant (e.g. "Revenue Target" is revenue, not expected).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Sequence


class ColumnRole(str, Enum):
    DATE = "date"
    REVENUE = "revenue"
    COST = "cost"
    LABOR_HOURS = "labor_hours"
    ATTENDANCE = "attendance"
    EXPECTED = "expected"
    DIMENSION = "dimension"
    CATEGORY = "category"
    LOCATION = "location"
    NAME = "name"
    CUSTOM = "custom"
    SKIP = "skip"


class DataType(str, Enum):
    REVENUE = "Revenue"
    LABOR = "Labor"
    ATTENDANCE = "Attendance"
    INVENTORY = "Inventory"
    CUSTOM = "Custom"


ROLE_LABELS: dict[ColumnRole, str] = {
    ColumnRole.DATE: "Date",
    ColumnRole.REVENUE: "Revenue",
    ColumnRole.COST: "Cost",
    ColumnRole.LABOR_HOURS: "Labor hours",
    ColumnRole.ATTENDANCE: "Attendance",
    ColumnRole.EXPECTED: "Expected (Target/Capacity/Quota)",
    ColumnRole.DIMENSION: "Dimension (Group by)",
    ColumnRole.CATEGORY: "Category",
    ColumnRole.LOCATION: "Location",
    ColumnRole.NAME: "Name",
    ColumnRole.CUSTOM: "Custom",
    ColumnRole.SKIP: "Skip",
}

EXPECTED_KEYWORDS: tuple[str, ...] = ("target", "quota", "expected", "capacity", "potential", "max")

DIMENSION_KEYWORDS: tuple[str, ...] = (
    "instructor",
    "coach",
    "trainer",
    "staff",
    "rep",
    "sales",
    "region",
    "territory",
    "location",
    "outlet",
    "store",
    "team",
)


def normalize_header_text(header: str) -> str:
    """
    Lower-case a header and collapse inner whitespace runs to one space.
    """

    return " ".join(header.strip().lower().split())


def is_week_start_header(header: str) -> bool:
    normalized = normalize_header_text(header)
    return "week_start" in normalized or "week start" in normalized


@dataclass(frozen=True)
class HeaderContext:
    """
    Facts about the whole upload that individual rules may depend on.
    """

    has_week_start: bool = False

    @classmethod
    def from_headers(cls, headers: Sequence[str]) -> "HeaderContext":
        return cls(has_week_start=any(is_week_start_header(header) for header in headers))


def _contains_any(*keywords: str) -> Callable[[str, HeaderContext], bool]:
    def predicate(normalized: str, _context: HeaderContext) -> bool:
        return any(keyword in normalized for keyword in keywords)

    return predicate


def _is_start_date(normalized: str, _context: HeaderContext) -> bool:
    return (
        "week_start" in normalized
        or "week start" in normalized
        or "period_start" in normalized
        or "start_date" in normalized
        or "date_start" in normalized
        or ("week" in normalized and "start" in normalized)
    )


def _is_lone_week_end(normalized: str, context: HeaderContext) -> bool:
    return "week_end" in normalized and not context.has_week_start


@dataclass(frozen=True)
class ColumnRoleRule:
    name: str
    role: ColumnRole
    predicate: Callable[[str, HeaderContext], bool]

    def matches(self, normalized_header: str, context: HeaderContext) -> bool:
        return self.predicate(normalized_header, context)


ROLE_RULES: tuple[ColumnRoleRule, ...] = (
    ColumnRoleRule("start_date", ColumnRole.DATE, _is_start_date),
    ColumnRoleRule("lone_week_end", ColumnRole.DATE, _is_lone_week_end),
    ColumnRoleRule("date", ColumnRole.DATE, _contains_any("date")),
    ColumnRoleRule("revenue", ColumnRole.REVENUE, _contains_any("rev")),
    ColumnRoleRule("cost", ColumnRole.COST, _contains_any("cost")),
    ColumnRoleRule("labor", ColumnRole.LABOR_HOURS, _contains_any("labor")),
    ColumnRoleRule("attendance", ColumnRole.ATTENDANCE, _contains_any("attend", "check")),
    ColumnRoleRule("expected", ColumnRole.EXPECTED, _contains_any(*EXPECTED_KEYWORDS)),
    ColumnRoleRule("dimension", ColumnRole.DIMENSION, _contains_any(*DIMENSION_KEYWORDS)),
    ColumnRoleRule("site", ColumnRole.LOCATION, _contains_any("site")),
    ColumnRoleRule("name", ColumnRole.NAME, _contains_any("name", "member")),
)


def infer_column_role(
    header: str,
    context: HeaderContext | None = None,
    *,
    rules: Sequence[ColumnRoleRule] = ROLE_RULES,
) -> ColumnRole:
    """
    Return the role of the first rule matching *header*, or ``custom``.
    """

    normalized = normalize_header_text(header)
    ctx = context or HeaderContext()
    for rule in rules:
        if rule.matches(normalized, ctx):
            return rule.role
    return ColumnRole.CUSTOM


def suggest_column_roles(headers: Sequence[str]) -> dict[str, ColumnRole]:
    """
    Pre-fill a role for every header of one upload.
    """

    context = HeaderContext.from_headers(headers)
    return {header: infer_column_role(header, context) for header in headers}


def parse_role(value: str) -> ColumnRole | None:
    try:
        return ColumnRole(value.strip().lower())
    except ValueError:
        return None
