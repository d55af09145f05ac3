"""
app/api/dependencies.py

Shared FastAPI dependencies for request validation.
"""

from __future__ import annotations

import uuid

from fastapi import Depends, File, Header, HTTPException, UploadFile, status
from sqlalchemy.orm import Session

from db.models.organization import Organization
from db.repositories.errors import OrganizationInactiveError, OrganizationNotFoundError
from db.repositories.organization_repository import OrganizationRepository
from db.session import get_db

CSV_CONTENT_TYPES = {
    "text/csv",
    "application/csv",
    "application/vnd.ms-excel",
    "text/plain",
    "text/tab-separated-values",
}


def get_csv_upload(file: UploadFile = File(...)) -> UploadFile:
    """
    Validate that the uploaded file is a CSV by extension or MIME type.
    """

    filename = (file.filename or "").strip().lower()
    content_type = (file.content_type or "").strip().lower()

    is_csv_filename = filename.endswith((".csv", ".tsv", ".txt"))
    is_csv_content_type = content_type in CSV_CONTENT_TYPES

    if not is_csv_filename and not is_csv_content_type:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only CSV files are allowed.",
        )

    return file


def get_current_organization(
    x_org_id: str = Header(..., alias="X-Org-Id"),
    db: Session = Depends(get_db),
) -> Organization:
    """
    Resolve the tenant for this request from the ``X-Org-Id`` header.
    """

    try:
        org_id = uuid.UUID(x_org_id.strip())
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Org-Id must be a UUID.",
        ) from exc

    try:
        return OrganizationRepository(db).ensure_active(org_id)
    except (OrganizationNotFoundError, OrganizationInactiveError) as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
