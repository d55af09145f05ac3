"""
app/api/routers/upload_router.py

Upload detection, import, and reprocessing endpoints.
"""

from __future__ import annotations

import json
import uuid
from contextlib import contextmanager
from typing import Any, Iterator

from fastapi import APIRouter, Depends, Form, HTTPException, Query, Response, UploadFile, status
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.api.dependencies import get_csv_upload, get_current_organization
from app.domain.column_roles import DataType
from app.domain.ingestion import ImportRequest, ImportSummary, OntologyConfig, RelationshipColumn
from app.domain.ontology import (
    DEFAULT_RELATIONSHIP_NAME,
    OntologyConflictError,
    OntologyError,
    OntologyNotFoundError,
    OntologyPersistenceError,
)
from app.domain.property_values import PropertyDefinitionError, PropertyValidationError
from app.schemas.uploads import (
    DetectRequest,
    DetectResponse,
    ImportRowsRequest,
    ImportSummaryResponse,
    MappingErrorResponse,
    OntologyConfigRequest,
    ReprocessRequest,
    UploadResponse,
)
from app.services.upload_service import (
    NewEntityTypeDraft,
    UploadFormatError,
    UploadIngestionService,
    UploadNotFoundError,
    UploadPersistenceError,
    get_upload_ingestion_service,
)
from app.validators.mapping_validator import ColumnMappingError
from db.models.organization import Organization
from db.session import get_db

router = APIRouter(prefix="/uploads", tags=["uploads"])

_PREVIEW_ROWS = 5


@router.post("/detect", response_model=DetectResponse)
def detect_mapping(
    body: DetectRequest,
    ingestion_service: UploadIngestionService = Depends(get_upload_ingestion_service),
) -> DetectResponse:
    """
    Suggest a column role per header and report whether the suggestion can be imported.
    """

    result = ingestion_service.detect(body.headers)
    return DetectResponse(
        mapping=result.mapping,
        is_valid=result.is_valid,
        errors=[MappingErrorResponse.model_validate(error) for error in result.errors],
        preview_rows=body.rows[:_PREVIEW_ROWS],
    )


@router.post("", response_model=ImportSummaryResponse, status_code=status.HTTP_201_CREATED)
def import_rows(
    body: ImportRowsRequest,
    organization: Organization = Depends(get_current_organization),
    db: Session = Depends(get_db),
    ingestion_service: UploadIngestionService = Depends(get_upload_ingestion_service),
) -> ImportSummaryResponse:
    """
    Import already-parsed rows (headers + row objects) with an optional mapping.
    """

    ontology, new_entity_type = _ontology_from_request(body.ontology)
    request = ImportRequest(
        file_name=body.file_name,
        data_type=body.data_type,
        headers=tuple(body.headers),
        rows=tuple(_stringify_row(row) for row in body.rows),
        mapping=body.mapping,
        ontology=ontology,
    )
    with _translate_errors():
        summary = ingestion_service.import_rows(
            db=db,
            organization=organization,
            request=request,
            new_entity_type=new_entity_type,
        )
    return _summary_response(summary)


@router.post("/csv", response_model=ImportSummaryResponse, status_code=status.HTTP_201_CREATED)
def import_csv(
    file: UploadFile = Depends(get_csv_upload),
    data_type: DataType = Form(default=DataType.REVENUE),
    mapping: str | None = Form(default=None, description="JSON object: header -> role"),
    ontology: str | None = Form(default=None, description="JSON ontology configuration"),
    organization: Organization = Depends(get_current_organization),
    db: Session = Depends(get_db),
    ingestion_service: UploadIngestionService = Depends(get_upload_ingestion_service),
) -> ImportSummaryResponse:
    """
    Import one CSV file. Delimiter (comma, tab, semicolon) is detected from the header row.
    """

    mapping_overrides = _parse_mapping_form(mapping)
    ontology_request = _parse_ontology_form(ontology)
    ontology_config, new_entity_type = _ontology_from_request(ontology_request)
    try:
        with _translate_errors():
            summary = ingestion_service.import_csv(
                db=db,
                organization=organization,
                upload_file=file,
                data_type=data_type,
                mapping=mapping_overrides,
                ontology=ontology_config,
                new_entity_type=new_entity_type,
            )
    finally:
        file.file.close()
    return _summary_response(summary)


@router.get("", response_model=list[UploadResponse])
def list_uploads(
    limit: int = Query(default=100, ge=1, le=500),
    organization: Organization = Depends(get_current_organization),
    db: Session = Depends(get_db),
    ingestion_service: UploadIngestionService = Depends(get_upload_ingestion_service),
) -> list[UploadResponse]:
    uploads = ingestion_service.list_uploads(db=db, organization=organization, limit=limit)
    return [UploadResponse.model_validate(upload) for upload in uploads]


@router.delete("/{upload_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_upload(
    upload_id: uuid.UUID,
    organization: Organization = Depends(get_current_organization),
    db: Session = Depends(get_db),
    ingestion_service: UploadIngestionService = Depends(get_upload_ingestion_service),
) -> Response:
    """
    Delete an upload and its rows. Entities it created keep existing.
    """

    with _translate_errors():
        ingestion_service.delete_upload(db=db, organization=organization, upload_id=upload_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{upload_id}/reprocess", response_model=ImportSummaryResponse)
def reprocess_upload(
    upload_id: uuid.UUID,
    body: ReprocessRequest,
    organization: Organization = Depends(get_current_organization),
    db: Session = Depends(get_db),
    ingestion_service: UploadIngestionService = Depends(get_upload_ingestion_service),
) -> ImportSummaryResponse:
    """
    Rebuild an upload's normalized rows from its raw data under a new mapping.
    """

    with _translate_errors():
        summary = ingestion_service.reprocess(
            db=db,
            organization=organization,
            upload_id=upload_id,
            mapping=body.mapping,
        )
    return _summary_response(summary)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@contextmanager
def _translate_errors() -> Iterator[None]:
    """
    Map service exceptions onto HTTP responses.
    """

    try:
        yield
    except ColumnMappingError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.to_dict()) from exc
    except UploadNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except OntologyNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.to_dict()) from exc
    except OntologyConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.to_dict()) from exc
    except (OntologyError, PropertyDefinitionError, PropertyValidationError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.to_dict()) from exc
    except UploadFormatError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except (UploadPersistenceError, OntologyPersistenceError) as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Unable to persist upload.",
        ) from exc


def _summary_response(summary: ImportSummary) -> ImportSummaryResponse:
    return ImportSummaryResponse.model_validate(summary)


def _stringify_row(row: dict[str, Any]) -> dict[str, str]:
    return {str(key): ("" if value is None else str(value)) for key, value in row.items()}


def _parse_mapping_form(raw: str | None) -> dict[str, str] | None:
    if raw is None or not raw.strip():
        return None
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="mapping must be a JSON object.",
        ) from exc
    if not isinstance(parsed, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="mapping must be a JSON object.",
        )
    return {str(key): str(value) for key, value in parsed.items() if value is not None}


def _parse_ontology_form(raw: str | None) -> OntologyConfigRequest | None:
    if raw is None or not raw.strip():
        return None
    try:
        return OntologyConfigRequest.model_validate_json(raw)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "Invalid ontology configuration.", "errors": exc.errors(include_url=False)},
        ) from exc


def _ontology_from_request(
    body: OntologyConfigRequest | None,
) -> tuple[OntologyConfig | None, NewEntityTypeDraft | None]:
    if body is None:
        return None, None
    if body.entity_type_id is None and body.new_entity_type is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Ontology configuration needs entityTypeId or newEntityType.",
        )

    draft = None
    if body.new_entity_type is not None:
        draft = NewEntityTypeDraft(
            name=body.new_entity_type.name,
            description=body.new_entity_type.description,
            icon=body.new_entity_type.icon,
            color=body.new_entity_type.color,
            properties=tuple(body.new_entity_type.properties),
        )

    config = OntologyConfig(
        name_column=body.name_column,
        entity_type_id=None if draft is not None else body.entity_type_id,
        column_to_property={
            column: key.strip()
            for column, key in body.column_to_property.items()
            if column and key and key.strip()
        },
        relationship_columns=tuple(
            RelationshipColumn(
                column=item.column,
                to_entity_type_id=item.to_entity_type_id,
                relationship_name=item.relationship_name.strip() or DEFAULT_RELATIONSHIP_NAME,
            )
            for item in body.relationship_columns
        ),
    )
    return config, draft
