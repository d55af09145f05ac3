"""
app/api/routers/gap_router.py

Gap matrix and weekly leakage endpoints.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api.dependencies import get_current_organization
from app.services.gap_service import GapQueryService, get_gap_query_service
from db.models.organization import Organization
from db.session import get_db

router = APIRouter(prefix="/metrics/gaps", tags=["gaps"])


@router.get("/matrix")
def get_gap_matrix(
    start: date | None = Query(default=None, description="Inclusive start date (truncated to its week)"),
    end: date | None = Query(default=None, description="Inclusive end date (truncated to its week)"),
    dimension: list[str] | None = Query(default=None, description="Dimension fields to include"),
    organization: Organization = Depends(get_current_organization),
    db: Session = Depends(get_db),
    gap_service: GapQueryService = Depends(get_gap_query_service),
) -> dict[str, Any]:
    """
    Expected-vs-actual matrix by dimension value and ISO week.
    """

    dimension_fields = [item.strip() for item in dimension or [] if item and item.strip()]
    try:
        result = gap_service.matrix(
            db=db,
            org_id=organization.id,
            start=start,
            end=end,
            dimension_fields=dimension_fields or None,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return result.to_dict()


@router.get("/weekly")
def get_weekly_leakage(
    organization: Organization = Depends(get_current_organization),
    db: Session = Depends(get_db),
    gap_service: GapQueryService = Depends(get_gap_query_service),
) -> dict[str, Any]:
    """
    Total leakage and largest leaks for the latest week with data.
    """

    return gap_service.weekly(db=db, org_id=organization.id).to_dict()
