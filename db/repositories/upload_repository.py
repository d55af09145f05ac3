"""
Upload repository: upload records and their normalized data rows.

Repositories never commit; the calling service owns the transaction.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from datetime import date, timedelta
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.orm import Session

from app.domain.gaps import MetricPoint, week_start
from app.domain.ingestion import NormalizedMetricRow
from db.models.data_row import DataRow
from db.models.upload import Upload, UploadStatus

_DEFAULT_BATCH_SIZE = 1000


class UploadRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_upload(
        self,
        *,
        org_id: uuid.UUID,
        file_name: str,
        headers: list[str],
        data_type: str,
        column_mapping: dict[str, str],
        file_size: int | None = None,
        uploaded_by: uuid.UUID | None = None,
    ) -> Upload:
        upload = Upload(
            org_id=org_id,
            file_name=file_name,
            headers=headers,
            data_type=data_type,
            column_mapping=column_mapping,
            file_size=file_size,
            uploaded_by=uploaded_by,
            status=UploadStatus.PROCESSING,
        )
        self._session.add(upload)
        self._session.flush()
        return upload

    def get_upload(self, org_id: uuid.UUID, upload_id: uuid.UUID) -> Upload | None:
        stmt = select(Upload).where(Upload.id == upload_id, Upload.org_id == org_id)
        return self._session.scalars(stmt).first()

    def list_uploads(self, org_id: uuid.UUID, *, limit: int = 100) -> list[Upload]:
        stmt = (
            select(Upload)
            .where(Upload.org_id == org_id)
            .order_by(Upload.created_at.desc())
            .limit(limit)
        )
        return list(self._session.scalars(stmt).all())

    def delete_upload(self, upload: Upload) -> None:
        self._session.delete(upload)

    def bulk_insert_rows(
        self,
        *,
        org_id: uuid.UUID,
        upload_id: uuid.UUID,
        data_type: str,
        rows: Sequence[NormalizedMetricRow],
        batch_size: int = _DEFAULT_BATCH_SIZE,
    ) -> int:
        """
        Insert normalized rows with chunked PostgreSQL INSERT.
        """

        if not rows:
            return 0

        size = max(1, batch_size)
        inserted = 0
        for start in range(0, len(rows), size):
            chunk = rows[start : start + size]
            values: list[dict[str, Any]] = [
                {
                    "id": uuid.uuid4(),
                    "org_id": org_id,
                    "upload_id": upload_id,
                    "data_type": data_type,
                    "row_number": row.row_number,
                    "data": dict(row.data),
                    "date": row.date,
                    "dimension_field": row.dimension_field,
                    "dimension_value": row.dimension_value,
                    "actual": row.actual,
                    "expected": row.expected,
                }
                for row in chunk
            ]
            self._session.execute(insert(DataRow), values)
            inserted += len(values)
        return inserted

    def delete_rows(self, upload_id: uuid.UUID) -> int:
        result = self._session.execute(delete(DataRow).where(DataRow.upload_id == upload_id))
        return result.rowcount or 0

    def load_raw_rows(self, upload_id: uuid.UUID) -> list[tuple[int, dict[str, Any]]]:
        stmt = (
            select(DataRow.row_number, DataRow.data)
            .where(DataRow.upload_id == upload_id)
            .order_by(DataRow.row_number)
        )
        return [(row_number, dict(data)) for row_number, data in self._session.execute(stmt)]

    def fetch_metric_points(
        self,
        org_id: uuid.UUID,
        *,
        start: date | None = None,
        end: date | None = None,
        dimension_fields: Sequence[str] | None = None,
        dimension_value: str | None = None,
    ) -> list[MetricPoint]:
        """
        Load dated rows of ready uploads as gap engine input.

        Bounds are widened to whole ISO weeks so the first and last weeks
        are complete.
        """

        stmt = (
            select(
                DataRow.date,
                DataRow.dimension_field,
                DataRow.dimension_value,
                DataRow.actual,
                DataRow.expected,
            )
            .join(Upload, Upload.id == DataRow.upload_id)
            .where(
                DataRow.org_id == org_id,
                DataRow.date.is_not(None),
                Upload.status == UploadStatus.READY,
            )
            .order_by(DataRow.date, Upload.created_at, DataRow.row_number)
        )
        if start is not None:
            stmt = stmt.where(DataRow.date >= week_start(start))
        if end is not None:
            stmt = stmt.where(DataRow.date <= week_start(end) + timedelta(days=6))
        if dimension_fields:
            stmt = stmt.where(DataRow.dimension_field.in_(list(dimension_fields)))
        if dimension_value is not None:
            stmt = stmt.where(DataRow.dimension_value == dimension_value)

        return [
            MetricPoint(
                date=row_date,
                dimension_field=dimension_field,
                dimension_value=dimension_value_,
                actual=float(actual or 0.0),
                expected=None if expected is None else float(expected),
            )
            for row_date, dimension_field, dimension_value_, actual, expected in self._session.execute(stmt)
        ]

    def latest_metric_date(self, org_id: uuid.UUID) -> date | None:
        stmt = (
            select(func.max(DataRow.date))
            .join(Upload, Upload.id == DataRow.upload_id)
            .where(DataRow.org_id == org_id, Upload.status == UploadStatus.READY)
        )
        return self._session.scalar(stmt)
