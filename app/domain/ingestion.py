"""
app/domain/ingestion.py

Domain models used by the upload ingestion flow.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Mapping

from app.domain.column_roles import ColumnRole, DataType

BLANK_DIMENSION_VALUE = "(blank)"


@dataclass(frozen=True)
class NormalizedMetricRow:
    """
    One uploaded row reduced to the fields the gap engine aggregates.

    ``date`` is ``None`` when the date-role cell could not be parsed; such
    rows are persisted with their raw data but never aggregated.
    """

    row_number: int
    date: date | None
    dimension_field: str
    dimension_value: str
    actual: float
    expected: float | None
    data: Mapping[str, Any]


@dataclass(frozen=True)
class RowValidationError:
    """
    One row-level problem found while normalizing an upload.
    """

    row_number: int
    message: str
    column: str | None = None
    value: str | None = None


@dataclass(frozen=True)
class RelationshipColumn:
    column: str
    to_entity_type_id: uuid.UUID
    relationship_name: str = "references"


@dataclass(frozen=True)
class OntologyConfig:
    """
    How uploaded rows project onto entities of one entity type.

    ``column_to_property`` only holds non-empty header -> property key pairs.
    ``entity_type_id`` may be left empty when the import creates the type.
    """

    name_column: str
    entity_type_id: uuid.UUID | None = None
    column_to_property: dict[str, str] = field(default_factory=dict)
    relationship_columns: tuple[RelationshipColumn, ...] = ()


@dataclass(frozen=True)
class ProjectionSummary:
    entities_created: int = 0
    entities_updated: int = 0
    relationships_created: int = 0
    relationships_skipped: int = 0
    rejected_properties: int = 0
    rows_skipped: int = 0
    rows_failed: int = 0


@dataclass(frozen=True)
class ImportRequest:
    """
    Mapped upload ready for validation and persistence.
    """

    file_name: str
    data_type: DataType
    headers: tuple[str, ...]
    rows: tuple[Mapping[str, Any], ...]
    mapping: Mapping[str, str] | None = None
    ontology: OntologyConfig | None = None
    file_size: int | None = None
    uploaded_by: uuid.UUID | None = None


@dataclass(frozen=True)
class ImportSummary:
    """
    End-of-run ingestion summary.
    """

    upload_id: uuid.UUID
    mapping: dict[str, ColumnRole]
    rows_imported: int
    rows_skipped: int
    rows_undated: int = 0
    row_errors: list[RowValidationError] = field(default_factory=list)
    ontology: ProjectionSummary | None = None
