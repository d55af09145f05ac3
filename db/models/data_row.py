"""
db/models/data_row.py

One uploaded row: the raw cells plus its normalized metric columns.

Rows are written once at import time. Reprocessing an upload deletes and
re-creates them; they are never updated in place.
"""

from __future__ import annotations

import datetime as dt
import uuid
from typing import TYPE_CHECKING, Any

from sqlalchemy import Date, DateTime, Float, ForeignKey, Index, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, OrgScopedMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from db.models.upload import Upload


class DataRow(Base, UUIDPrimaryKeyMixin, OrgScopedMixin):
    __tablename__ = "data_rows"

    upload_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("uploads.id", ondelete="CASCADE"),
        nullable=False,
    )
    data_type: Mapped[str] = mapped_column(String(32), nullable=False)
    row_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="1-based position of the row in the upload (header excluded)",
    )
    data: Mapped[dict[str, Any]] = mapped_column(
        JSONB,
        nullable=False,
        comment="Raw cells keyed by original header",
    )
    date: Mapped[dt.date | None] = mapped_column(
        Date,
        nullable=True,
        comment="Parsed date-role value; NULL rows are excluded from aggregation",
    )
    dimension_field: Mapped[str] = mapped_column(String(255), nullable=False)
    dimension_value: Mapped[str] = mapped_column(String(255), nullable=False)
    actual: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    expected: Mapped[float | None] = mapped_column(Float, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    upload: Mapped["Upload"] = relationship("Upload", back_populates="rows")

    __table_args__ = (
        Index("ix_data_rows_upload_id", "upload_id"),
        Index("ix_data_rows_org_date", "org_id", "date"),
        Index("ix_data_rows_org_dimension", "org_id", "dimension_field", "dimension_value"),
    )
