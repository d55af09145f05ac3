"""
tests/test_upload_service.py

Pytest unit tests for UploadIngestionService.reprocess.

The upload repository is replaced with an in-memory fake; the session is
a MagicMock, so no database is needed.
"""

from __future__ import annotations

import uuid
from datetime import date
from types import SimpleNamespace
from typing import Any
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from app.domain.column_roles import ColumnRole
from app.services import upload_service
from app.services.upload_service import (
    UploadIngestionService,
    UploadNotFoundError,
    UploadPersistenceError,
)
from db.models.upload import UploadStatus


HEADERS = ["Week Start", "Location", "Instructor", "Revenue", "Target"]

STORED_MAPPING = {
    "Week Start": "date",
    "Location": "dimension",
    "Instructor": "skip",
    "Revenue": "revenue",
    "Target": "expected",
}

RAW_ROWS = [
    (1, {"Week Start": "2024-01-01", "Location": "Downtown", "Instructor": "Jo", "Revenue": "100", "Target": "120"}),
    (2, {"Week Start": "2024-01-08", "Location": "Uptown", "Instructor": "", "Revenue": "80", "Target": ""}),
]


class InMemoryUploadRepository:
    def __init__(self, upload: SimpleNamespace) -> None:
        self.upload = upload
        self.rows: list[Any] = ["previous row"]
        self.calls: list[str] = []
        self.fail_on_insert = False

    def get_upload(self, org_id: uuid.UUID, upload_id: uuid.UUID) -> SimpleNamespace | None:
        if org_id == self.upload.org_id and upload_id == self.upload.id:
            return self.upload
        return None

    def load_raw_rows(self, upload_id: uuid.UUID) -> list[tuple[int, dict[str, Any]]]:
        return [(row_number, dict(data)) for row_number, data in RAW_ROWS]

    def delete_rows(self, upload_id: uuid.UUID) -> int:
        self.calls.append("delete_rows")
        deleted = len(self.rows)
        self.rows = []
        return deleted

    def bulk_insert_rows(self, *, org_id, upload_id, data_type, rows, batch_size) -> int:
        self.calls.append("bulk_insert_rows")
        if self.fail_on_insert:
            raise OperationalError("INSERT INTO data_rows", {}, Exception("connection lost"))
        self.rows.extend(rows)
        return len(rows)


@pytest.fixture()
def organization() -> SimpleNamespace:
    return SimpleNamespace(id=uuid.uuid4(), currency="USD")


@pytest.fixture()
def upload(organization: SimpleNamespace) -> SimpleNamespace:
    return SimpleNamespace(
        id=uuid.uuid4(),
        org_id=organization.id,
        headers=list(HEADERS),
        column_mapping=dict(STORED_MAPPING),
        data_type="Revenue",
        row_count=2,
        skipped_row_count=1,
        status=UploadStatus.READY,
        error_message=None,
    )


@pytest.fixture()
def repository(monkeypatch: pytest.MonkeyPatch, upload: SimpleNamespace) -> InMemoryUploadRepository:
    repository = InMemoryUploadRepository(upload)
    monkeypatch.setattr(upload_service, "UploadRepository", lambda session: repository)
    return repository


@pytest.fixture()
def service() -> UploadIngestionService:
    return UploadIngestionService(batch_size=100, max_reported_row_errors=10, max_file_bytes=1024)


def test_reprocess_replaces_rows_under_new_mapping(service, repository, organization, upload) -> None:
    db = MagicMock()
    new_mapping = {**STORED_MAPPING, "Location": "skip", "Instructor": "dimension"}

    summary = service.reprocess(db=db, organization=organization, upload_id=upload.id, mapping=new_mapping)

    assert repository.calls == ["delete_rows", "bulk_insert_rows"]
    assert "previous row" not in repository.rows
    assert [(row.dimension_field, row.dimension_value) for row in repository.rows] == [
        ("Instructor", "Jo"),
        ("Instructor", "(blank)"),
    ]
    assert repository.rows[0].date == date(2024, 1, 1)
    assert repository.rows[1].expected is None
    assert upload.column_mapping["Instructor"] == "dimension"
    assert upload.status == UploadStatus.READY
    assert upload.row_count == 2
    assert summary.rows_imported == 2
    assert summary.rows_skipped == 1
    assert summary.mapping["Instructor"] == ColumnRole.DIMENSION
    db.commit.assert_called_once()


def test_reprocess_without_mapping_reuses_stored_mapping(service, repository, organization, upload) -> None:
    summary = service.reprocess(db=MagicMock(), organization=organization, upload_id=upload.id)

    assert [row.dimension_value for row in repository.rows] == ["Downtown", "Uptown"]
    assert upload.column_mapping == STORED_MAPPING
    assert summary.rows_undated == 0


def test_reprocess_failure_rolls_back_and_marks_upload_failed(service, repository, organization, upload) -> None:
    db = MagicMock()
    repository.fail_on_insert = True

    with pytest.raises(UploadPersistenceError):
        service.reprocess(db=db, organization=organization, upload_id=upload.id)

    db.rollback.assert_called_once()
    assert upload.status == UploadStatus.FAILED
    assert "connection lost" in upload.error_message


def test_reprocess_unknown_upload(service, repository, organization) -> None:
    with pytest.raises(UploadNotFoundError):
        service.reprocess(db=MagicMock(), organization=organization, upload_id=uuid.uuid4())
