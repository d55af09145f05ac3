"""
db/models/upload.py

Upload model: one imported tabular dataset and its column role mapping.
"""

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, OrgScopedMixin, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from db.models.data_row import DataRow


class UploadStatus:
    """Valid status transitions for an upload."""

    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


class Upload(Base, UUIDPrimaryKeyMixin, OrgScopedMixin, TimestampMixin):
    """
    Represents one imported file (or JSON row batch).

    ``column_mapping`` stores the confirmed header -> role assignment so the
    upload can be reprocessed from its raw rows with a corrected mapping.
    """

    __tablename__ = "uploads"

    uploaded_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        nullable=True,
        comment="Actor id supplied by the auth layer, if any",
    )

    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    headers: Mapped[list[str]] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
        comment="Original header order",
    )

    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)

    data_type: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="Revenue, Labor, Attendance, Inventory, Custom",
    )

    row_count: Mapped[int | None] = mapped_column(Integer, nullable=True)

    skipped_row_count: Mapped[int | None] = mapped_column(Integer, nullable=True)

    column_mapping: Mapped[dict[str, str]] = mapped_column(
        JSONB,
        nullable=False,
        default=dict,
        comment="Header -> column role",
    )

    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=UploadStatus.PROCESSING,
        comment="processing -> ready | failed",
    )

    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    rows: Mapped[list["DataRow"]] = relationship(
        "DataRow",
        back_populates="upload",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_uploads_org_id", "org_id"),
        Index("ix_uploads_org_status", "org_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Upload id={self.id} file_name={self.file_name!r} status={self.status!r}>"
