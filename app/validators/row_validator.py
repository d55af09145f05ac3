"""
app/validators/row_validator.py

Row-level parsing of mapped upload rows into normalized metric rows.
"""

from __future__ import annotations

import math
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Sequence

from app.domain.column_roles import ColumnRole
from app.domain.ingestion import BLANK_DIMENSION_VALUE, NormalizedMetricRow, RowValidationError

DATE_FORMATS: tuple[str, ...] = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
)

_NUMBER_NOISE = str.maketrans("", "", ",$%")


def parse_number(value: Any) -> float | None:
    """
    Parse a spreadsheet number, ignoring currency signs, thousands separators and `%`.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
        return number if math.isfinite(number) else None
    cleaned = str(value).translate(_NUMBER_NOISE).strip()
    if not cleaned:
        return None
    try:
        parsed = Decimal(cleaned)
    except (InvalidOperation, ValueError):
        return None
    if not parsed.is_finite():
        return None
    # Decimal accepts magnitudes a float cannot hold.
    number = float(parsed)
    return number if math.isfinite(number) else None


def parse_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if value is None:
        return None
    raw = str(value).strip()
    if not raw:
        return None

    normalized = raw[:-1] + "+00:00" if raw.endswith("Z") else raw
    try:
        return datetime.fromisoformat(normalized).date()
    except ValueError:
        pass

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(raw, fmt).date()
        except ValueError:
            continue
    return None


class MetricRowValidator:
    """
    Normalizes raw rows using a validated header -> role mapping.

    The first column (in header order) holding the date, revenue and
    expected roles feeds the normalized row; the single dimension column
    supplies the grouping key.
    """

    def __init__(self, *, headers: Sequence[str], mapping: Mapping[str, ColumnRole]) -> None:
        self._date_column = self._first_with(headers, mapping, ColumnRole.DATE)
        self._revenue_column = self._first_with(headers, mapping, ColumnRole.REVENUE)
        self._expected_column = self._first_with(headers, mapping, ColumnRole.EXPECTED)
        dimension_column = self._first_with(headers, mapping, ColumnRole.DIMENSION)
        if dimension_column is None:
            raise ValueError("Mapping has no dimension column.")
        self._dimension_column = dimension_column

    @property
    def dimension_field(self) -> str:
        return self._dimension_column

    def is_completely_empty_row(self, row: Mapping[str, Any]) -> bool:
        """
        Return True when all values in the row are empty or whitespace.
        """

        return all(self._is_blank(value) for value in row.values())

    def normalize_row(
        self,
        *,
        row: Mapping[str, Any],
        row_number: int,
    ) -> tuple[NormalizedMetricRow, list[RowValidationError]]:
        """
        Normalize one row. Parse problems are reported, never raised.
        """

        errors: list[RowValidationError] = []

        row_date = self._parse_row_date(row=row, row_number=row_number, errors=errors)
        actual = self._parse_actual(row=row, row_number=row_number, errors=errors)
        expected = None
        if self._expected_column is not None:
            expected = parse_number(row.get(self._expected_column))

        raw_dimension = row.get(self._dimension_column)
        dimension_value = BLANK_DIMENSION_VALUE if self._is_blank(raw_dimension) else str(raw_dimension).strip()

        normalized = NormalizedMetricRow(
            row_number=row_number,
            date=row_date,
            dimension_field=self._dimension_column,
            dimension_value=dimension_value,
            actual=actual,
            expected=expected,
            data=dict(row),
        )
        return normalized, errors

    def _parse_row_date(
        self,
        *,
        row: Mapping[str, Any],
        row_number: int,
        errors: list[RowValidationError],
    ) -> date | None:
        if self._date_column is None:
            return None
        value = row.get(self._date_column)
        parsed = parse_date(value)
        if parsed is None:
            message = "Required value is missing." if self._is_blank(value) else "Invalid date format."
            errors.append(
                RowValidationError(
                    row_number=row_number,
                    column=self._date_column,
                    message=message,
                    value=self._stringify_value(value),
                )
            )
        return parsed

    def _parse_actual(
        self,
        *,
        row: Mapping[str, Any],
        row_number: int,
        errors: list[RowValidationError],
    ) -> float:
        if self._revenue_column is None:
            return 0.0
        value = row.get(self._revenue_column)
        parsed = parse_number(value)
        if parsed is None:
            if not self._is_blank(value):
                errors.append(
                    RowValidationError(
                        row_number=row_number,
                        column=self._revenue_column,
                        message="Value is not numeric; counted as 0.",
                        value=self._stringify_value(value),
                    )
                )
            return 0.0
        return parsed

    @staticmethod
    def _first_with(
        headers: Sequence[str],
        mapping: Mapping[str, ColumnRole],
        role: ColumnRole,
    ) -> str | None:
        for header in headers:
            if mapping.get(header) == role:
                return header
        return None

    @staticmethod
    def _is_blank(value: Any) -> bool:
        if value is None:
            return True
        return str(value).strip() == ""

    @staticmethod
    def _stringify_value(value: Any) -> str | None:
        if value is None:
            return None
        return str(value)
