"""
tests/test_gap_engine.py

Pytest unit tests for GapEngine.

All tests are pure Python: no database, no I/O, hand-built metric points.

Coverage
--------
- Two-week single-entity scenario (gap, pct, avg pct, leakage)
- Missing expected values
- Week truncation and summing within a week
- Range and dimension filters
- Entity ordering, best/worst performer ties
- Trend alignment with missing weeks
- Weekly leakage and severity bands
- Per-entity totals, idempotence, zero expected values
- Non-finite inputs ignored
- JSON rendering
"""

from __future__ import annotations

from datetime import date

import pytest

from app.domain.gaps import MetricPoint, SeverityBand, severity_band, week_start
from app.services.gap_engine import GapEngine, GapQuery, gap_pct, round2


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


WEEK_1 = date(2024, 1, 1)
WEEK_2 = date(2024, 1, 8)
WEEK_3 = date(2024, 1, 15)


def _point(
    day: date,
    value: str,
    actual: float,
    expected: float | None = None,
    field: str = "Location",
) -> MetricPoint:
    return MetricPoint(
        date=day,
        dimension_field=field,
        dimension_value=value,
        actual=actual,
        expected=expected,
    )


@pytest.fixture()
def engine() -> GapEngine:
    return GapEngine()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def test_week_start_is_monday() -> None:
    assert week_start(date(2024, 1, 7)) == WEEK_1
    assert week_start(WEEK_2) == WEEK_2
    assert week_start(date(2024, 1, 10)) == WEEK_2


@pytest.mark.parametrize(
    ("value", "expected"),
    [(16.665, 16.67), (-8.335, -8.34), (4.17, 4.17), (0.005, 0.01)],
)
def test_round2_rounds_half_away_from_zero(value: float, expected: float) -> None:
    assert round2(value) == expected


def test_round2_passes_non_finite_values_through() -> None:
    assert round2(float("inf")) == float("inf")
    assert round2(float("-inf")) == float("-inf")


def test_gap_pct_is_none_when_not_finite() -> None:
    assert gap_pct(float("-inf"), 10.0) is None
    assert gap_pct(1e308, 1e-300) is None


def test_gap_pct_requires_positive_expected() -> None:
    assert gap_pct(10.0, None) is None
    assert gap_pct(10.0, 0.0) is None
    assert gap_pct(200.0, 1200.0) == 16.67


@pytest.mark.parametrize(
    ("pct", "band"),
    [
        (None, None),
        (-5.0, SeverityBand.AHEAD),
        (0.0, SeverityBand.AHEAD),
        (14.99, SeverityBand.GOOD),
        (15.0, SeverityBand.WARNING),
        (29.99, SeverityBand.WARNING),
        (30.0, SeverityBand.ELEVATED),
        (49.99, SeverityBand.ELEVATED),
        (50.0, SeverityBand.CRITICAL),
    ],
)
def test_severity_band(pct, band) -> None:
    assert severity_band(pct) == band


# ---------------------------------------------------------------------------
# Matrix
# ---------------------------------------------------------------------------


def test_two_week_scenario(engine: GapEngine) -> None:
    points = [
        _point(WEEK_1, "Location A", 1000, 1200),
        _point(WEEK_2, "Location A", 1300, 1200),
    ]

    result = engine.compute(points)

    assert result.weeks == (WEEK_1, WEEK_2)
    first = result.cell("Location", "Location A", WEEK_1)
    second = result.cell("Location", "Location A", WEEK_2)
    assert (first.gap, first.pct) == (200.0, 16.67)
    assert (second.gap, second.pct) == (-100.0, -8.33)

    entity = result.entities[0]
    assert entity.total_gap == 100.0
    assert entity.avg_gap_pct == 4.17
    assert entity.week_count == 2
    assert entity.trend == (200.0, -100.0)
    assert result.summary.total_leakage == 200.0


def test_missing_expected_gives_zero_gap_and_no_pct(engine: GapEngine) -> None:
    result = engine.compute([_point(WEEK_1, "A", 500)])

    cell = result.cell("Location", "A", WEEK_1)
    assert cell.expected is None
    assert cell.gap == 0.0
    assert cell.pct is None
    assert result.entities[0].avg_gap_pct is None
    assert result.summary.total_leakage == 0.0


def test_points_in_one_week_are_summed(engine: GapEngine) -> None:
    points = [
        _point(date(2024, 1, 2), "A", 100, 150),
        _point(date(2024, 1, 5), "A", 200, None),
        _point(date(2024, 1, 7), "A", 50, 150),
    ]

    result = engine.compute(points)

    cell = result.cell("Location", "A", WEEK_1)
    assert result.weeks == (WEEK_1,)
    assert cell.actual == 350.0
    assert cell.expected == 300.0
    assert cell.gap == -50.0


def test_range_filter_is_inclusive_by_week(engine: GapEngine) -> None:
    points = [
        _point(WEEK_1, "A", 1, 2),
        _point(date(2024, 1, 10), "A", 1, 2),
        _point(WEEK_3, "A", 1, 2),
    ]

    result = engine.compute(points, GapQuery(start=date(2024, 1, 9), end=date(2024, 1, 14)))

    assert result.weeks == (WEEK_2,)


def test_dimension_filter(engine: GapEngine) -> None:
    points = [
        _point(WEEK_1, "A", 1, 2, field="Location"),
        _point(WEEK_1, "Jo", 1, 2, field="Instructor"),
    ]

    result = engine.compute(points, GapQuery(dimension_fields={"Instructor"}))

    assert [dimension.field for dimension in result.dimensions] == ["Instructor"]
    assert result.summary.dimension_count == 1


def test_empty_input_returns_empty_result(engine: GapEngine) -> None:
    result = engine.compute([])

    assert result.weeks == ()
    assert result.entities == ()
    assert result.summary.best_performer is None
    assert result.to_dict()["summary"]["totalLeakage"] == 0.0


def test_entities_sorted_by_total_gap_descending(engine: GapEngine) -> None:
    points = [
        _point(WEEK_1, "Small", 90, 100),
        _point(WEEK_1, "Ahead", 150, 100),
        _point(WEEK_1, "Large", 10, 100),
    ]

    result = engine.compute(points)

    assert [entity.value for entity in result.entities] == ["Large", "Small", "Ahead"]
    assert result.summary.worst_performer.value == "Large"
    assert result.summary.best_performer.value == "Ahead"
    assert result.dimensions[0].values == ("Ahead", "Large", "Small")


def test_performer_ties_keep_first_seen(engine: GapEngine) -> None:
    points = [
        _point(WEEK_1, "First", 50, 100),
        _point(WEEK_1, "Second", 50, 100),
    ]

    result = engine.compute(points)

    assert result.summary.best_performer.value == "First"
    assert result.summary.worst_performer.value == "First"


def test_trend_has_none_for_missing_weeks(engine: GapEngine) -> None:
    points = [
        _point(WEEK_1, "A", 10, 20),
        _point(WEEK_3, "A", 10, 15),
        _point(WEEK_2, "B", 10, 10),
    ]

    result = engine.compute(points)
    trends = {entity.value: entity.trend for entity in result.entities}

    assert result.weeks == (WEEK_1, WEEK_2, WEEK_3)
    assert trends["A"] == (10.0, None, 5.0)
    assert trends["B"] == (None, 0.0, None)


def test_leakage_ignores_negative_gaps(engine: GapEngine) -> None:
    points = [
        _point(WEEK_1, "A", 80, 100),
        _point(WEEK_1, "B", 130, 100),
        _point(WEEK_2, "A", 95, 100),
    ]

    result = engine.compute(points)

    assert result.summary.total_leakage == 25.0
    assert result.summary.entity_count == 2
    assert result.summary.week_count == 2


def test_entity_total_actual_matches_its_cells(engine: GapEngine) -> None:
    points = [
        _point(WEEK_1, "A", 100, 120),
        _point(date(2024, 1, 3), "A", 25.5, None),
        _point(WEEK_2, "A", 80, 100),
        _point(WEEK_3, "A", 40.25),
        _point(WEEK_2, "B", 10, 10),
    ]

    result = engine.compute(points)

    for entity in result.entities:
        cells = result.matrix[entity.field][entity.value]
        assert sum(cell.actual for cell in cells.values()) == pytest.approx(entity.total_actual)
    assert {entity.value: entity.total_actual for entity in result.entities} == {"A": 245.75, "B": 10.0}


def test_compute_is_idempotent(engine: GapEngine) -> None:
    points = [
        _point(WEEK_1, "A", 1000, 1200),
        _point(WEEK_2, "A", 1300, 1200),
        _point(WEEK_2, "Jo", 50, None, field="Instructor"),
        _point(WEEK_3, "B", 70, 90),
    ]

    first = engine.compute(points).to_dict()
    second = engine.compute(list(points)).to_dict()

    assert first == second


def test_zero_expected_gives_no_pct(engine: GapEngine) -> None:
    points = [
        _point(WEEK_1, "A", 40, 0.0),
        _point(WEEK_2, "A", 0, 0.0),
    ]

    result = engine.compute(points)

    cell = result.cell("Location", "A", WEEK_1)
    assert cell.expected == 0.0
    assert cell.gap == -40.0
    assert cell.pct is None
    assert result.entities[0].avg_gap_pct is None
    assert result.to_dict()["entities"][0]["avgGapPct"] is None


def test_non_finite_points_are_ignored(engine: GapEngine) -> None:
    points = [
        _point(WEEK_1, "A", float("inf"), 10.0),
        _point(WEEK_1, "B", 5, float("nan")),
        _point(WEEK_1, "C", 80, 100),
    ]

    result = engine.compute(points)

    assert result.dimensions[0].values == ("C",)
    assert result.summary.total_leakage == 20.0


# ---------------------------------------------------------------------------
# Weekly leakage
# ---------------------------------------------------------------------------


def test_weekly_leakage_uses_latest_week(engine: GapEngine) -> None:
    points = [
        _point(WEEK_1, "A", 0, 1000),
        _point(WEEK_2, "A", 60, 100),
        _point(WEEK_2, "B", 90, 100),
        _point(WEEK_2, "C", 120, 100),
    ]

    leakage = engine.weekly_leakage(points, top_n=2)

    assert leakage.week_start == WEEK_2
    assert leakage.total_leakage == 50.0
    assert [item.dimension_value for item in leakage.top_leakage] == ["A", "B"]
    assert leakage.top_leakage[0].band == SeverityBand.ELEVATED
    assert leakage.top_leakage[1].band == SeverityBand.GOOD


def test_weekly_leakage_without_data_is_none(engine: GapEngine) -> None:
    assert engine.weekly_leakage([]) is None


# ---------------------------------------------------------------------------
# JSON rendering
# ---------------------------------------------------------------------------


def test_to_dict_shape(engine: GapEngine) -> None:
    result = engine.compute([_point(WEEK_1, "A", 1000, 1200)])

    payload = result.to_dict()

    assert payload["weeks"] == ["2024-01-01"]
    assert payload["dimensions"] == [{"field": "Location", "values": ["A"]}]
    assert payload["matrix"]["Location"]["A"]["2024-01-01"] == {
        "actual": 1000.0,
        "expected": 1200.0,
        "gap": 200.0,
        "pct": 16.67,
    }
    assert payload["entities"][0]["avgGapPct"] == 16.67
    assert payload["summary"]["worstPerformer"] == {"field": "Location", "value": "A", "gap": 200.0}
