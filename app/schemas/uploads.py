"""
Schemas for upload detection, import, and reprocessing endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import Field

from app.domain.column_roles import ColumnRole, DataType
from app.schemas.base import APIModel


class DetectRequest(APIModel):
    headers: list[str] = Field(..., min_length=1)
    rows: list[dict[str, Any]] = Field(default_factory=list)


class MappingErrorResponse(APIModel):
    code: str
    message: str
    role: str | None = None
    source_column: str | None = None
    context: dict[str, Any] | None = None


class DetectResponse(APIModel):
    mapping: dict[str, ColumnRole]
    is_valid: bool
    errors: list[MappingErrorResponse] = Field(default_factory=list)
    preview_rows: list[dict[str, Any]] = Field(default_factory=list)


class RelationshipColumnRequest(APIModel):
    column: str
    to_entity_type_id: UUID
    relationship_name: str = "references"


class NewEntityTypeRequest(APIModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    icon: str | None = None
    color: str | None = None
    properties: list[dict[str, Any]] = Field(default_factory=list)


class OntologyConfigRequest(APIModel):
    """
    Either ``entity_type_id`` or ``new_entity_type`` must be given.
    """

    entity_type_id: UUID | None = None
    new_entity_type: NewEntityTypeRequest | None = None
    name_column: str
    column_to_property: dict[str, str] = Field(default_factory=dict)
    relationship_columns: list[RelationshipColumnRequest] = Field(default_factory=list)


class ImportRowsRequest(APIModel):
    file_name: str = Field(..., min_length=1, max_length=255)
    data_type: DataType = DataType.REVENUE
    headers: list[str] = Field(..., min_length=1)
    rows: list[dict[str, Any]] = Field(default_factory=list)
    mapping: dict[str, str] | None = None
    ontology: OntologyConfigRequest | None = None


class ReprocessRequest(APIModel):
    mapping: dict[str, str] | None = None


class RowErrorResponse(APIModel):
    row_number: int = Field(..., ge=1)
    message: str
    column: str | None = None
    value: str | None = None


class ProjectionSummaryResponse(APIModel):
    entities_created: int = Field(..., ge=0)
    entities_updated: int = Field(..., ge=0)
    relationships_created: int = Field(..., ge=0)
    relationships_skipped: int = Field(..., ge=0)
    rejected_properties: int = Field(..., ge=0)
    rows_skipped: int = Field(default=0, ge=0)
    rows_failed: int = Field(default=0, ge=0)


class ImportSummaryResponse(APIModel):
    upload_id: UUID
    mapping: dict[str, ColumnRole]
    rows_imported: int = Field(..., ge=0)
    rows_skipped: int = Field(..., ge=0)
    rows_undated: int = Field(default=0, ge=0)
    row_errors: list[RowErrorResponse] = Field(default_factory=list)
    ontology: ProjectionSummaryResponse | None = None


class UploadResponse(APIModel):
    id: UUID
    file_name: str
    file_size: int | None = None
    data_type: str
    headers: list[str] = Field(default_factory=list)
    row_count: int | None = None
    skipped_row_count: int | None = None
    column_mapping: dict[str, str] = Field(default_factory=dict)
    status: str
    error_message: str | None = None
    created_at: datetime
