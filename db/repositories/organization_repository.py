"""
Organization repository: tenant lookup and creation.
"""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.organization import Organization
from db.repositories.errors import OrganizationInactiveError, OrganizationNotFoundError


class OrganizationRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, org_id: uuid.UUID) -> Organization | None:
        return self._session.get(Organization, org_id)

    def ensure_active(self, org_id: uuid.UUID) -> Organization:
        organization = self.get(org_id)
        if organization is None:
            raise OrganizationNotFoundError(f"Organization not found: {org_id}")
        if not organization.is_active:
            raise OrganizationInactiveError(f"Organization is inactive: {org_id}")
        return organization

    def get_by_slug(self, slug: str) -> Organization | None:
        return self._session.scalars(select(Organization).where(Organization.slug == slug)).first()

    def create(
        self,
        *,
        name: str,
        slug: str,
        industry: str | None = None,
        timezone: str = "UTC",
        currency: str = "USD",
    ) -> Organization:
        organization = Organization(
            name=name,
            slug=slug,
            industry=industry,
            timezone=timezone,
            currency=currency,
            is_active=True,
        )
        self._session.add(organization)
        return organization

    def list_active_ids(self) -> list[uuid.UUID]:
        stmt = select(Organization.id).where(Organization.is_active.is_(True)).order_by(Organization.created_at)
        return list(self._session.scalars(stmt).all())
