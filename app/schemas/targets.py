"""
Schemas for action target endpoints.
"""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from pydantic import Field

from app.schemas.base import APIModel


class TargetCreateRequest(APIModel):
    dimension_field: str = Field(..., min_length=1, max_length=255)
    dimension_value: str = Field(..., min_length=1, max_length=255)
    target_type: str | None = None
    target_pct: float | None = Field(default=None, gt=0, le=100)
    target_value: float | None = None
    baseline_gap: float | None = None
    deadline: date | None = None
    title: str | None = Field(default=None, max_length=255)
    notes: str | None = None


class TargetUpdateRequest(APIModel):
    status: str | None = None
    title: str | None = Field(default=None, max_length=255)
    notes: str | None = None


class TargetResponse(APIModel):
    id: UUID
    dimension_field: str
    dimension_value: str
    target_type: str
    target_pct: float
    target_value: float | None = None
    baseline_gap: float
    deadline: date | None = None
    title: str | None = None
    notes: str | None = None
    status: str
    current_gap: float | None = None
    current_pct_change: float | None = None
    last_checked_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime


class TargetRefreshResponse(APIModel):
    refreshed: int = Field(..., ge=0)
