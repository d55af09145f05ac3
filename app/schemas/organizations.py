"""
Schemas for organization endpoints.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import Field

from app.schemas.base import APIModel


class OrganizationCreateRequest(APIModel):
    name: str = Field(..., min_length=1, max_length=255)
    slug: str | None = Field(default=None, max_length=120)
    industry: str | None = None
    timezone: str = "UTC"
    currency: str = Field(default="USD", min_length=3, max_length=3)


class OrganizationResponse(APIModel):
    id: UUID
    name: str
    slug: str
    industry: str | None = None
    timezone: str
    currency: str
    is_active: bool
    created_at: datetime
