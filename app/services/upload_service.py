"""
app/services/upload_service.py

Service layer for upload ingestion.

An import runs in this order:

    1. Resolve the column mapping (overrides + heuristic) and validate it.
       A rejected mapping raises before anything is written.
    2. Normalize every row (dates, numbers, dimension value).
    3. Persist the upload record and its rows in one transaction.
    4. Optionally project rows onto the ontology. Each row runs in its own
       savepoint, so partial projection is kept.

Rows whose date cannot be parsed are stored with a NULL date and reported
as row errors; they never reach the gap engine.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, replace
from functools import lru_cache
from typing import Any, Mapping, Sequence

from fastapi import UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import get_upload_settings
from app.domain.column_roles import ColumnRole, DataType
from app.domain.ingestion import (
    ImportRequest,
    ImportSummary,
    OntologyConfig,
    ProjectionSummary,
    RowValidationError,
)
from app.mappers.column_mapper import ColumnMapper, MappingResolution, NormalizationResult
from app.services.csv_reader import CSVFormatError, read_csv_stream
from app.services.ontology_projector import OntologyProjector
from app.services.ontology_service import OntologyService
from app.validators.mapping_validator import MappingErrorDetail
from db.models.organization import Organization
from db.models.upload import Upload, UploadStatus
from db.repositories.ontology_repository import OntologyRepository
from db.repositories.upload_repository import UploadRepository

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class UploadFormatError(ValueError):
    """
    Raised when an uploaded file or row payload is unusable.
    """


class UploadNotFoundError(LookupError):
    """
    Raised when an upload does not exist for the organization.
    """


class UploadPersistenceError(RuntimeError):
    """
    Raised when upload rows cannot be persisted.
    """


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NewEntityTypeDraft:
    """
    Entity type to create as part of an import, before projection.
    """

    name: str
    description: str | None = None
    icon: str | None = None
    color: str | None = None
    properties: Sequence[Mapping[str, Any]] = ()


@dataclass(frozen=True)
class DetectionResult:
    mapping: dict[str, ColumnRole]
    errors: list[MappingErrorDetail] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class UploadIngestionService:
    """
    Coordinates mapping, normalization, persistence and ontology projection.
    """

    def __init__(
        self,
        *,
        batch_size: int,
        max_reported_row_errors: int,
        max_file_bytes: int,
        mapper: ColumnMapper | None = None,
    ) -> None:
        self._batch_size = max(1, batch_size)
        self._max_reported_row_errors = max(1, max_reported_row_errors)
        self._max_file_bytes = max(1, max_file_bytes)
        self._mapper = mapper or ColumnMapper()

    def detect(self, headers: Sequence[str]) -> DetectionResult:
        """
        Suggest a role per header and report whether the suggestion is importable.
        """

        suggestion = self._mapper.suggest(headers)
        errors = self._mapper.check({header: role.value for header, role in suggestion.items()}, headers)
        return DetectionResult(mapping=suggestion, errors=errors)

    def import_rows(
        self,
        *,
        db: Session,
        organization: Organization,
        request: ImportRequest,
        new_entity_type: NewEntityTypeDraft | None = None,
    ) -> ImportSummary:
        """
        Validate, normalize and persist one upload, then project it if requested.

        ``new_entity_type`` is created in the same transaction as the upload
        and replaces ``request.ontology.entity_type_id``.
        """

        if not request.headers:
            raise UploadFormatError("Upload has no header row.")

        resolution = self._mapper.resolve_mapping(request.headers, overrides=request.mapping)
        normalized = self._mapper.normalize_rows(enumerate(request.rows, start=1), resolution=resolution)
        if not normalized.rows:
            raise UploadFormatError("Upload contains no data rows.")

        repository = UploadRepository(db)
        projection = None
        try:
            upload = repository.create_upload(
                org_id=organization.id,
                file_name=request.file_name,
                headers=list(resolution.source_headers),
                data_type=request.data_type.value,
                column_mapping=resolution.as_json(),
                file_size=request.file_size,
                uploaded_by=request.uploaded_by,
            )
            imported = repository.bulk_insert_rows(
                org_id=organization.id,
                upload_id=upload.id,
                data_type=request.data_type.value,
                rows=normalized.rows,
                batch_size=self._batch_size,
            )
            self._mark_ready(upload, imported, normalized)

            ontology = request.ontology
            if ontology is not None:
                if new_entity_type is not None:
                    entity_type = OntologyService(
                        db,
                        org_id=organization.id,
                        currency_code=organization.currency,
                    ).create_entity_type(
                        name=new_entity_type.name,
                        description=new_entity_type.description,
                        icon=new_entity_type.icon,
                        color=new_entity_type.color,
                        properties=new_entity_type.properties,
                        source_column=ontology.name_column,
                        commit=False,
                    )
                    ontology = replace(ontology, entity_type_id=entity_type.id)
                projection = self._project(
                    db=db,
                    organization=organization,
                    config=ontology,
                    resolution=resolution,
                    rows=[row.data for row in normalized.rows],
                    upload_id=upload.id,
                )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise UploadPersistenceError("Failed to persist upload rows.") from exc
        except Exception:
            db.rollback()
            raise

        row_errors = self._capture_errors(normalized.errors)
        logger.info(
            "Upload imported org_id=%s upload_id=%s rows=%d empty_rows=%d row_errors=%d",
            organization.id,
            upload.id,
            imported,
            normalized.empty_rows,
            len(normalized.errors),
        )
        return ImportSummary(
            upload_id=upload.id,
            mapping=resolution.header_to_role,
            rows_imported=imported,
            rows_skipped=normalized.empty_rows,
            rows_undated=sum(1 for row in normalized.rows if row.date is None),
            row_errors=row_errors,
            ontology=projection,
        )

    def import_csv(
        self,
        *,
        db: Session,
        organization: Organization,
        upload_file: UploadFile,
        data_type: DataType,
        mapping: Mapping[str, str] | None = None,
        ontology: OntologyConfig | None = None,
        new_entity_type: NewEntityTypeDraft | None = None,
        uploaded_by: uuid.UUID | None = None,
    ) -> ImportSummary:
        """
        Read one CSV upload and import it through ``import_rows``.
        """

        try:
            parsed = read_csv_stream(upload_file.file, max_bytes=self._max_file_bytes)
        except CSVFormatError as exc:
            raise UploadFormatError(str(exc)) from exc

        request = ImportRequest(
            file_name=upload_file.filename or "upload.csv",
            data_type=data_type,
            headers=parsed.headers,
            rows=tuple(parsed.rows),
            mapping=mapping,
            ontology=ontology,
            file_size=upload_file.size,
            uploaded_by=uploaded_by,
        )
        return self.import_rows(
            db=db,
            organization=organization,
            request=request,
            new_entity_type=new_entity_type,
        )

    def reprocess(
        self,
        *,
        db: Session,
        organization: Organization,
        upload_id: uuid.UUID,
        mapping: Mapping[str, str] | None = None,
    ) -> ImportSummary:
        """
        Re-normalize an upload's stored raw rows under a (possibly new) mapping.

        Previous normalized rows are deleted and re-created, never updated.
        """

        repository = UploadRepository(db)
        upload = self.get_upload(db=db, organization=organization, upload_id=upload_id)
        headers = list(upload.headers or upload.column_mapping.keys())
        overrides = mapping if mapping is not None else upload.column_mapping
        resolution = self._mapper.resolve_mapping(headers, overrides=overrides)

        raw_rows = repository.load_raw_rows(upload.id)
        normalized = self._mapper.normalize_rows(raw_rows, resolution=resolution)
        try:
            repository.delete_rows(upload.id)
            imported = repository.bulk_insert_rows(
                org_id=organization.id,
                upload_id=upload.id,
                data_type=upload.data_type,
                rows=normalized.rows,
                batch_size=self._batch_size,
            )
            upload.column_mapping = resolution.as_json()
            self._mark_ready(upload, imported, normalized, skipped=upload.skipped_row_count or 0)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            self._mark_failed(db, upload_id=upload.id, org_id=organization.id, message=str(exc))
            raise UploadPersistenceError("Failed to reprocess upload rows.") from exc

        logger.info(
            "Upload reprocessed org_id=%s upload_id=%s rows=%d",
            organization.id,
            upload.id,
            imported,
        )
        return ImportSummary(
            upload_id=upload.id,
            mapping=resolution.header_to_role,
            rows_imported=imported,
            rows_skipped=upload.skipped_row_count or 0,
            rows_undated=sum(1 for row in normalized.rows if row.date is None),
            row_errors=self._capture_errors(normalized.errors),
        )

    def list_uploads(self, *, db: Session, organization: Organization, limit: int = 100) -> list[Upload]:
        return UploadRepository(db).list_uploads(organization.id, limit=limit)

    def get_upload(self, *, db: Session, organization: Organization, upload_id: uuid.UUID) -> Upload:
        upload = UploadRepository(db).get_upload(organization.id, upload_id)
        if upload is None:
            raise UploadNotFoundError(f"Upload not found: {upload_id}")
        return upload

    def delete_upload(self, *, db: Session, organization: Organization, upload_id: uuid.UUID) -> None:
        upload = self.get_upload(db=db, organization=organization, upload_id=upload_id)
        try:
            UploadRepository(db).delete_upload(upload)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise UploadPersistenceError("Failed to delete upload.") from exc
        logger.info("Upload deleted org_id=%s upload_id=%s", organization.id, upload_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _project(
        self,
        *,
        db: Session,
        organization: Organization,
        config: OntologyConfig,
        resolution: MappingResolution,
        rows: list[Mapping[str, Any]],
        upload_id: uuid.UUID,
    ) -> ProjectionSummary:
        projector = OntologyProjector(
            OntologyRepository(db, organization.id),
            currency_code=organization.currency,
        )
        return projector.project(
            rows,
            config=config,
            headers=resolution.source_headers,
            source_upload_id=upload_id,
        )

    @staticmethod
    def _mark_ready(
        upload: Upload,
        imported: int,
        normalized: NormalizationResult,
        *,
        skipped: int | None = None,
    ) -> None:
        upload.row_count = imported
        upload.skipped_row_count = normalized.empty_rows if skipped is None else skipped
        upload.status = UploadStatus.READY
        upload.error_message = None

    @staticmethod
    def _mark_failed(db: Session, *, upload_id: uuid.UUID, org_id: uuid.UUID, message: str) -> None:
        try:
            upload = UploadRepository(db).get_upload(org_id, upload_id)
            if upload is not None:
                upload.status = UploadStatus.FAILED
                upload.error_message = message[:2000]
                db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Could not mark upload failed upload_id=%s", upload_id)

    def _capture_errors(self, errors: Sequence[RowValidationError]) -> list[RowValidationError]:
        for error in errors[: self._max_reported_row_errors]:
            logger.debug(
                "Upload row error row=%s column=%s message=%s value=%r",
                error.row_number,
                error.column,
                error.message,
                error.value,
            )
        if len(errors) > self._max_reported_row_errors:
            logger.warning(
                "Upload row errors truncated reported=%d total=%d",
                self._max_reported_row_errors,
                len(errors),
            )
        return list(errors[: self._max_reported_row_errors])


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def get_upload_ingestion_service() -> UploadIngestionService:
    """
    Build and cache the ingestion service with env-driven settings.
    """
    settings = get_upload_settings()
    return UploadIngestionService(
        batch_size=settings.batch_size,
        max_reported_row_errors=settings.max_reported_row_errors,
        max_file_bytes=settings.max_file_bytes,
    )
