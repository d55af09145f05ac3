"""
db/models/ontology.py

Tenant-defined ontology: entity types, entities, relationship types, and
entity relationships.

Cascades
--------
entity_types -> entities, relationship_types          (ON DELETE CASCADE)
entities     -> entity_relationships (from and to)     (ON DELETE CASCADE)
uploads      -> entities.source_upload_id              (ON DELETE SET NULL)
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, OrgScopedMixin, TimestampMixin, UUIDPrimaryKeyMixin


class EntityType(Base, UUIDPrimaryKeyMixin, OrgScopedMixin, TimestampMixin):
    """
    A business object category such as Instructor, Location, or Product.

    ``properties`` is the ordered list of property definitions:
    ``[{"key": "revenue", "label": "Revenue", "type": "currency", "visible": true}]``.
    """

    __tablename__ = "entity_types"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    icon: Mapped[str] = mapped_column(String(64), nullable=False, default="circle")
    color: Mapped[str] = mapped_column(String(16), nullable=False, default="#10B981")
    properties: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, nullable=False, default=list)
    source_column: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Upload header this type was projected from, if any",
    )

    entities: Mapped[list["Entity"]] = relationship(
        "Entity",
        back_populates="entity_type",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint("org_id", "slug", name="uq_entity_types_org_slug"),
        Index("ix_entity_types_org_id", "org_id"),
    )

    def __repr__(self) -> str:
        return f"<EntityType id={self.id} slug={self.slug!r}>"


class Entity(Base, UUIDPrimaryKeyMixin, OrgScopedMixin, TimestampMixin):
    __tablename__ = "entities"

    entity_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("entity_types.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    properties: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
    source_upload_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("uploads.id", ondelete="SET NULL"),
        nullable=True,
        comment="Provenance only; not an ownership relation",
    )

    entity_type: Mapped[EntityType] = relationship("EntityType", back_populates="entities")

    __table_args__ = (
        Index("ix_entities_org_type", "org_id", "entity_type_id"),
        Index("ix_entities_org_type_name", "org_id", "entity_type_id", "name"),
    )

    def __repr__(self) -> str:
        return f"<Entity id={self.id} name={self.name!r}>"


class RelationshipType(Base, UUIDPrimaryKeyMixin, OrgScopedMixin):
    __tablename__ = "relationship_types"

    name: Mapped[str] = mapped_column(String(120), nullable=False)
    from_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("entity_types.id", ondelete="CASCADE"),
        nullable=False,
    )
    to_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("entity_types.id", ondelete="CASCADE"),
        nullable=False,
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        UniqueConstraint(
            "org_id",
            "name",
            "from_type_id",
            "to_type_id",
            name="uq_relationship_types_org_name_types",
        ),
    )


class EntityRelationship(Base, UUIDPrimaryKeyMixin, OrgScopedMixin):
    __tablename__ = "entity_relationships"

    relationship_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("relationship_types.id", ondelete="CASCADE"),
        nullable=False,
    )
    from_entity_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("entities.id", ondelete="CASCADE"),
        nullable=False,
    )
    to_entity_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("entities.id", ondelete="CASCADE"),
        nullable=False,
    )
    properties: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        UniqueConstraint(
            "relationship_type_id",
            "from_entity_id",
            "to_entity_id",
            name="uq_entity_relationships_type_endpoints",
        ),
        Index("ix_entity_relationships_from", "from_entity_id"),
        Index("ix_entity_relationships_to", "to_entity_id"),
    )
