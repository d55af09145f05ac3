"""
app/api/routers/organization_router.py

Organization (tenant) endpoints.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.domain.ontology import slug_from_name
from app.schemas.organizations import OrganizationCreateRequest, OrganizationResponse
from db.repositories.organization_repository import OrganizationRepository
from db.session import get_db

router = APIRouter(prefix="/organizations", tags=["organizations"])


@router.post(
    "",
    response_model=OrganizationResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_organization(
    body: OrganizationCreateRequest,
    db: Session = Depends(get_db),
) -> OrganizationResponse:
    """
    Create a new organization.

    Raises HTTP 409 if the slug is already taken.
    """
    slug = slug_from_name(body.slug or body.name)
    organization = OrganizationRepository(db).create(
        name=body.name.strip(),
        slug=slug,
        industry=body.industry,
        timezone=body.timezone,
        currency=body.currency.upper(),
    )
    try:
        db.commit()
        db.refresh(organization)
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"An organization with slug {slug!r} already exists.",
        )
    return OrganizationResponse.model_validate(organization)


@router.get("/{org_id}", response_model=OrganizationResponse)
def get_organization(org_id: uuid.UUID, db: Session = Depends(get_db)) -> OrganizationResponse:
    organization = OrganizationRepository(db).get(org_id)
    if organization is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found.")
    return OrganizationResponse.model_validate(organization)
