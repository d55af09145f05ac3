"""
app/domain/gaps.py

Typed inputs and results of the gap/leakage matrix engine.

Results are derived on every query and never stored. ``to_dict`` renders
the JSON shape the dashboard consumes (camelCase keys, ISO week dates).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Any


def week_start(value: date) -> date:
    """
    Truncate a date to the Monday that starts its ISO week.
    """

    return value - timedelta(days=value.weekday())


class SeverityBand(str, Enum):
    AHEAD = "ahead"
    GOOD = "good"
    WARNING = "warning"
    ELEVATED = "elevated"
    CRITICAL = "critical"


def severity_band(pct: float | None) -> SeverityBand | None:
    """
    Map a gap percentage to its display band; ``None`` stays ``None``.
    """

    if pct is None:
        return None
    if pct <= 0:
        return SeverityBand.AHEAD
    if pct < 15:
        return SeverityBand.GOOD
    if pct < 30:
        return SeverityBand.WARNING
    if pct < 50:
        return SeverityBand.ELEVATED
    return SeverityBand.CRITICAL


@dataclass(frozen=True)
class MetricPoint:
    """
    One normalized row as seen by the engine.
    """

    date: date
    dimension_field: str
    dimension_value: str
    actual: float
    expected: float | None = None


@dataclass(frozen=True)
class GapCell:
    actual: float
    expected: float | None
    gap: float
    pct: float | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "actual": self.actual,
            "expected": self.expected,
            "gap": self.gap,
            "pct": self.pct,
        }


@dataclass(frozen=True)
class EntitySummary:
    """
    Roll-up of one dimension value across every week in range.

    ``trend`` is aligned with the result's week axis; weeks without data
    hold ``None``.
    """

    field: str
    value: str
    total_actual: float
    total_expected: float
    total_gap: float
    week_count: int
    avg_gap_pct: float | None
    trend: tuple[float | None, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "field": self.field,
            "value": self.value,
            "totalActual": self.total_actual,
            "totalExpected": self.total_expected,
            "totalGap": self.total_gap,
            "weekCount": self.week_count,
            "avgGapPct": self.avg_gap_pct,
            "trend": list(self.trend),
        }


@dataclass(frozen=True)
class Performer:
    field: str
    value: str
    gap: float

    def to_dict(self) -> dict[str, Any]:
        return {"field": self.field, "value": self.value, "gap": self.gap}


@dataclass(frozen=True)
class PortfolioSummary:
    total_leakage: float = 0.0
    dimension_count: int = 0
    entity_count: int = 0
    week_count: int = 0
    best_performer: Performer | None = None
    worst_performer: Performer | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalLeakage": self.total_leakage,
            "dimensionCount": self.dimension_count,
            "entityCount": self.entity_count,
            "weekCount": self.week_count,
            "bestPerformer": self.best_performer.to_dict() if self.best_performer else None,
            "worstPerformer": self.worst_performer.to_dict() if self.worst_performer else None,
        }


@dataclass(frozen=True)
class DimensionValues:
    field: str
    values: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"field": self.field, "values": list(self.values)}


@dataclass(frozen=True)
class GapMatrixResult:
    weeks: tuple[date, ...] = ()
    dimensions: tuple[DimensionValues, ...] = ()
    matrix: dict[str, dict[str, dict[date, GapCell]]] = field(default_factory=dict)
    entities: tuple[EntitySummary, ...] = ()
    summary: PortfolioSummary = field(default_factory=PortfolioSummary)

    def cell(self, dimension_field: str, dimension_value: str, week: date) -> GapCell | None:
        """
        Return the cell for a week, or ``None`` when that week has no data.
        """

        return self.matrix.get(dimension_field, {}).get(dimension_value, {}).get(week)

    def to_dict(self) -> dict[str, Any]:
        return {
            "weeks": [week.isoformat() for week in self.weeks],
            "dimensions": [dimension.to_dict() for dimension in self.dimensions],
            "matrix": {
                dimension_field: {
                    value: {week.isoformat(): cell.to_dict() for week, cell in cells.items()}
                    for value, cells in values.items()
                }
                for dimension_field, values in self.matrix.items()
            },
            "entities": [entity.to_dict() for entity in self.entities],
            "summary": self.summary.to_dict(),
        }


@dataclass(frozen=True)
class LeakageItem:
    dimension_field: str
    dimension_value: str
    actual: float
    expected: float | None
    gap: float
    pct: float | None
    band: SeverityBand | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "dimensionField": self.dimension_field,
            "dimensionValue": self.dimension_value,
            "actual": self.actual,
            "expected": self.expected,
            "gap": self.gap,
            "pct": self.pct,
            "band": self.band.value if self.band else None,
        }


@dataclass(frozen=True)
class WeeklyLeakage:
    week_start: date
    total_leakage: float
    top_leakage: tuple[LeakageItem, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "weekStart": self.week_start.isoformat(),
            "totalLeakage": self.total_leakage,
            "topLeakage": [item.to_dict() for item in self.top_leakage],
        }
