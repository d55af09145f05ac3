"""
db/models/organization.py

Organization model: the tenant root.
Uploads, normalized rows, ontology records, and targets are scoped to one
organization and removed with it.
"""

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Organization(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """
    One business or group of locations using the dashboard.

    ``currency`` is attached to currency-typed entity properties;
    ``timezone`` is informational for clients rendering week labels.
    """

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    slug: Mapped[str] = mapped_column(
        String(120),
        nullable=False,
        unique=True,
        comment="URL-safe unique handle derived from the name",
    )

    industry: Mapped[str | None] = mapped_column(String(100), nullable=True)

    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="USD",
        comment="ISO 4217 code applied to currency properties",
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        comment="Soft-disable a tenant without deletion",
    )

    __table_args__ = (Index("ix_organizations_is_active", "is_active"),)

    def __repr__(self) -> str:
        return f"<Organization id={self.id} slug={self.slug!r}>"
