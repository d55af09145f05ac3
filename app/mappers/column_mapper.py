"""
app/mappers/column_mapper.py

Resolves upload headers into column roles and normalized metric rows.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence

from app.domain.column_roles import ColumnRole, parse_role, suggest_column_roles
from app.domain.ingestion import NormalizedMetricRow, RowValidationError
from app.validators.mapping_validator import (
    ColumnMappingError,
    ColumnMappingValidator,
    MappingErrorDetail,
)
from app.validators.row_validator import MetricRowValidator


@dataclass(frozen=True)
class MappingResolution:
    """
    Final header -> role mapping and how each role was chosen.
    """

    header_to_role: dict[str, ColumnRole]
    source_headers: tuple[str, ...]
    match_strategies: dict[str, str]

    def as_json(self) -> dict[str, str]:
        return {header: role.value for header, role in self.header_to_role.items()}


@dataclass
class NormalizationResult:
    rows: list[NormalizedMetricRow] = field(default_factory=list)
    errors: list[RowValidationError] = field(default_factory=list)
    empty_rows: int = 0


def normalize_column_mapping(
    mapping: Mapping[str, str] | None,
    headers: Sequence[str],
) -> dict[str, str]:
    """
    Return a header -> role mapping.

    Mappings stored the other way round (role -> header, as older uploads
    saved them) are inverted; anything else is passed through untouched.
    """

    if not mapping:
        return {}
    cleaned = {
        str(key).strip(): str(value).strip()
        for key, value in mapping.items()
        if key is not None and value is not None and str(key).strip() and str(value).strip()
    }
    header_set = set(headers)
    keys_are_roles = all(parse_role(key) is not None and key not in header_set for key in cleaned)
    values_are_headers = all(value in header_set for value in cleaned.values())
    if cleaned and keys_are_roles and values_are_headers:
        return {header: role for role, header in cleaned.items()}
    return cleaned


class ColumnMapper:
    """
    Combines heuristic role suggestions with user overrides.
    """

    def __init__(self, *, validator: ColumnMappingValidator | None = None) -> None:
        self._validator = validator or ColumnMappingValidator()

    def suggest(self, headers: Sequence[str]) -> dict[str, ColumnRole]:
        return suggest_column_roles(self._clean_headers(headers))

    def resolve_mapping(
        self,
        headers: Sequence[str],
        *,
        overrides: Mapping[str, str] | None = None,
    ) -> MappingResolution:
        """
        Fill every header's role (override first, heuristic otherwise) and validate.
        """

        source_headers = self._clean_headers(headers)
        if not source_headers:
            raise ColumnMappingError(
                message="Upload headers are empty; cannot resolve column mapping.",
                errors=[
                    MappingErrorDetail(
                        code="empty_headers",
                        message="No column headers were provided.",
                    )
                ],
            )

        suggestions = suggest_column_roles(source_headers)
        explicit = normalize_column_mapping(overrides, source_headers)

        merged: dict[str, str] = {}
        strategies: dict[str, str] = {}
        for header in source_headers:
            if header in explicit:
                merged[header] = explicit[header]
                strategies[header] = "override"
            else:
                merged[header] = suggestions[header].value
                strategies[header] = "heuristic"
        for header, role in explicit.items():
            if header not in merged:
                merged[header] = role
                strategies[header] = "override"

        resolved = self._validator.validate(mapping=merged, source_headers=source_headers)
        return MappingResolution(
            header_to_role=resolved,
            source_headers=source_headers,
            match_strategies=strategies,
        )

    def check(self, mapping: Mapping[str, str], headers: Sequence[str]) -> list[MappingErrorDetail]:
        """
        Return validation problems for a mapping without raising.
        """

        return self._validator.collect_errors(mapping=mapping, source_headers=self._clean_headers(headers))

    def normalize_rows(
        self,
        numbered_rows: Iterable[tuple[int, Mapping[str, Any]]],
        *,
        resolution: MappingResolution,
    ) -> NormalizationResult:
        """
        Normalize ``(row_number, row)`` pairs in order, e.g. ``enumerate(rows, start=1)``.

        Completely empty rows are dropped.
        """

        validator = MetricRowValidator(
            headers=resolution.source_headers,
            mapping=resolution.header_to_role,
        )
        result = NormalizationResult()
        for row_number, raw_row in numbered_rows:
            if validator.is_completely_empty_row(raw_row):
                result.empty_rows += 1
                continue
            normalized, errors = validator.normalize_row(row=raw_row, row_number=row_number)
            result.rows.append(normalized)
            result.errors.extend(errors)
        return result

    @staticmethod
    def _clean_headers(headers: Sequence[str]) -> tuple[str, ...]:
        return tuple(header for header in headers if header and header.strip())
