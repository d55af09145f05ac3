"""
app/services/gap_engine.py

Deterministic weekly gap/leakage matrix engine.

All calculation functions operate on pre-fetched ``MetricPoint`` values.
No database logic lives here; the caller loads normalized data rows and
hands them over together with the requested dimension fields and range.

Formulas
--------
gap            = expected - actual            (0 when expected is missing)
gap pct        = gap / expected * 100         (None unless expected > 0)
avg gap pct    = mean of the non-null weekly gap pcts of one value
total leakage  = sum of max(0, gap) over every cell
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Collection, Iterable, Sequence

from app.domain.gaps import (
    DimensionValues,
    EntitySummary,
    GapCell,
    GapMatrixResult,
    LeakageItem,
    MetricPoint,
    Performer,
    PortfolioSummary,
    WeeklyLeakage,
    severity_band,
    week_start,
)

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")


def round2(value: float) -> float:
    """
    Round half away from zero to two decimals.

    Non-finite values are returned unchanged.
    """

    if not math.isfinite(value):
        return value
    return float(Decimal(repr(value)).quantize(_CENT, rounding=ROUND_HALF_UP))


def gap_pct(gap: float, expected: float | None) -> float | None:
    if expected is None or expected <= 0:
        return None
    pct = gap / expected * 100
    if not math.isfinite(pct):
        return None
    return round2(pct)


def _is_usable(point: MetricPoint) -> bool:
    if not math.isfinite(point.actual):
        return False
    return point.expected is None or math.isfinite(point.expected)


# ---------------------------------------------------------------------------
# Input dataclass
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GapQuery:
    """
    Optional filters applied before aggregation.

    ``start`` and ``end`` are truncated to their week starts; both bounds
    are inclusive. An empty or missing ``dimension_fields`` keeps every
    dimension.
    """

    dimension_fields: Collection[str] | None = None
    start: date | None = None
    end: date | None = None

    def includes(self, point: MetricPoint, point_week: date) -> bool:
        if self.dimension_fields and point.dimension_field not in self.dimension_fields:
            return False
        if self.start is not None and point_week < week_start(self.start):
            return False
        if self.end is not None and point_week > week_start(self.end):
            return False
        return True


# ---------------------------------------------------------------------------
# Accumulator
# ---------------------------------------------------------------------------


class _CellTotals:
    __slots__ = ("actual", "expected", "has_expected")

    def __init__(self) -> None:
        self.actual = 0.0
        self.expected = 0.0
        self.has_expected = False

    def add(self, point: MetricPoint) -> None:
        self.actual += point.actual
        if point.expected is not None:
            self.expected += point.expected
            self.has_expected = True

    def to_cell(self) -> GapCell:
        if not self.has_expected:
            return GapCell(actual=self.actual, expected=None, gap=0.0, pct=None)
        gap = self.expected - self.actual
        return GapCell(
            actual=self.actual,
            expected=self.expected,
            gap=gap,
            pct=gap_pct(gap, self.expected),
        )


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class GapEngine:
    """
    Stateless weekly gap matrix calculator.

    Usage::

        engine = GapEngine()
        result = engine.compute(points, GapQuery(dimension_fields={"Location"}))
        result.to_dict()["summary"]["totalLeakage"]
    """

    def compute(
        self,
        points: Iterable[MetricPoint],
        query: GapQuery | None = None,
    ) -> GapMatrixResult:
        """
        Build the week x dimension-value matrix, entity roll-ups and summary.

        Ordering is deterministic: weeks ascending, dimension fields in
        first-seen order, values sorted, entities by total gap descending
        with first-seen order breaking ties.
        """

        active_query = query or GapQuery()
        groups: dict[tuple[str, str], dict[date, _CellTotals]] = {}
        field_order: list[str] = []
        weeks_seen: set[date] = set()
        skipped = 0
        unusable = 0

        for point in points:
            if not _is_usable(point):
                unusable += 1
                continue
            point_week = week_start(point.date)
            if not active_query.includes(point, point_week):
                skipped += 1
                continue
            key = (point.dimension_field, point.dimension_value)
            if key not in groups:
                groups[key] = defaultdict(_CellTotals)
                if point.dimension_field not in field_order:
                    field_order.append(point.dimension_field)
            groups[key][point_week].add(point)
            weeks_seen.add(point_week)

        if skipped:
            logger.debug("Gap engine filtered out %d points", skipped)
        if unusable:
            logger.warning("Gap engine ignored %d points with non-finite values", unusable)
        if not groups:
            return GapMatrixResult()

        weeks = tuple(sorted(weeks_seen))
        matrix: dict[str, dict[str, dict[date, GapCell]]] = {field_name: {} for field_name in field_order}
        entities: list[EntitySummary] = []

        for (dimension_field, dimension_value), week_totals in groups.items():
            cells = {week: week_totals[week].to_cell() for week in sorted(week_totals)}
            matrix[dimension_field][dimension_value] = cells
            entities.append(self._summarize_entity(dimension_field, dimension_value, cells, weeks))

        for dimension_field in field_order:
            matrix[dimension_field] = dict(sorted(matrix[dimension_field].items()))

        dimensions = tuple(
            DimensionValues(field=field_name, values=tuple(matrix[field_name]))
            for field_name in field_order
        )
        summary = self._summarize_portfolio(matrix, entities, dimensions, weeks)
        ranked = tuple(sorted(entities, key=lambda entity: entity.total_gap, reverse=True))

        logger.debug(
            "Gap matrix computed: %d entities across %d weeks",
            len(ranked),
            len(weeks),
        )
        return GapMatrixResult(
            weeks=weeks,
            dimensions=dimensions,
            matrix=matrix,
            entities=ranked,
            summary=summary,
        )

    def weekly_leakage(
        self,
        points: Iterable[MetricPoint],
        *,
        top_n: int = 5,
        query: GapQuery | None = None,
    ) -> WeeklyLeakage | None:
        """
        Summarize the latest week that has data: leakage and its top cells.
        """

        result = self.compute(points, query)
        if not result.weeks:
            return None
        latest = result.weeks[-1]
        items: list[LeakageItem] = []
        for dimension_field, values in result.matrix.items():
            for dimension_value, cells in values.items():
                cell = cells.get(latest)
                if cell is None:
                    continue
                items.append(
                    LeakageItem(
                        dimension_field=dimension_field,
                        dimension_value=dimension_value,
                        actual=cell.actual,
                        expected=cell.expected,
                        gap=cell.gap,
                        pct=cell.pct,
                        band=severity_band(cell.pct),
                    )
                )
        items.sort(key=lambda item: item.gap, reverse=True)
        total = round2(sum(max(0.0, item.gap) for item in items))
        return WeeklyLeakage(
            week_start=latest,
            total_leakage=total,
            top_leakage=tuple(items[: max(0, top_n)]),
        )

    @staticmethod
    def _summarize_entity(
        dimension_field: str,
        dimension_value: str,
        cells: dict[date, GapCell],
        weeks: Sequence[date],
    ) -> EntitySummary:
        total_actual = 0.0
        total_expected = 0.0
        total_gap = 0.0
        pcts: list[float] = []
        for cell in cells.values():
            total_actual += cell.actual
            total_expected += cell.expected or 0.0
            total_gap += cell.gap
            if cell.pct is not None:
                pcts.append(cell.pct)

        avg_pct = round2(sum(pcts) / len(pcts)) if pcts else None
        trend = tuple(cells[week].gap if week in cells else None for week in weeks)
        return EntitySummary(
            field=dimension_field,
            value=dimension_value,
            total_actual=total_actual,
            total_expected=total_expected,
            total_gap=total_gap,
            week_count=len(cells),
            avg_gap_pct=avg_pct,
            trend=trend,
        )

    @staticmethod
    def _summarize_portfolio(
        matrix: dict[str, dict[str, dict[date, GapCell]]],
        entities: Sequence[EntitySummary],
        dimensions: Sequence[DimensionValues],
        weeks: Sequence[date],
    ) -> PortfolioSummary:
        leakage = 0.0
        for values in matrix.values():
            for cells in values.values():
                for cell in cells.values():
                    leakage += max(0.0, cell.gap)

        best: EntitySummary | None = None
        worst: EntitySummary | None = None
        for entity in entities:
            if best is None or entity.total_gap < best.total_gap:
                best = entity
            if worst is None or entity.total_gap > worst.total_gap:
                worst = entity

        return PortfolioSummary(
            total_leakage=round2(leakage),
            dimension_count=len(dimensions),
            entity_count=len(entities),
            week_count=len(weeks),
            best_performer=_performer(best),
            worst_performer=_performer(worst),
        )


def _performer(entity: EntitySummary | None) -> Performer | None:
    if entity is None:
        return None
    return Performer(field=entity.field, value=entity.value, gap=entity.total_gap)
