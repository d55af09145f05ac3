"""
Ontology repository: tenant-scoped reads and writes of entity types,
entities, relationship types, and entity relationships.

Also serves as the projector's store (``OntologyStore``): writes made
inside ``savepoint()`` are flushed there, and database errors surface as
``OntologyPersistenceError``.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.ontology import OntologyPersistenceError, entity_name_key
from db.models.ontology import Entity, EntityRelationship, EntityType, RelationshipType


class OntologyRepository:
    def __init__(self, session: Session, org_id: uuid.UUID) -> None:
        self._session = session
        self._org_id = org_id

    @property
    def org_id(self) -> uuid.UUID:
        return self._org_id

    @contextmanager
    def savepoint(self) -> Iterator[None]:
        try:
            with self._session.begin_nested():
                yield
        except SQLAlchemyError as exc:
            raise OntologyPersistenceError("Ontology write failed.") from exc

    # ------------------------------------------------------------------
    # Entity types
    # ------------------------------------------------------------------

    def list_entity_types(self) -> list[EntityType]:
        stmt = select(EntityType).where(EntityType.org_id == self._org_id).order_by(EntityType.created_at)
        return list(self._session.scalars(stmt).all())

    def get_entity_type(self, entity_type_id: uuid.UUID) -> EntityType | None:
        stmt = select(EntityType).where(EntityType.id == entity_type_id, EntityType.org_id == self._org_id)
        return self._session.scalars(stmt).first()

    def get_entity_type_by_slug(self, slug: str) -> EntityType | None:
        stmt = select(EntityType).where(EntityType.slug == slug, EntityType.org_id == self._org_id)
        return self._session.scalars(stmt).first()

    def add_entity_type(
        self,
        *,
        name: str,
        slug: str,
        description: str | None,
        icon: str,
        color: str,
        properties: list[dict[str, Any]],
        source_column: str | None = None,
    ) -> EntityType:
        entity_type = EntityType(
            org_id=self._org_id,
            name=name,
            slug=slug,
            description=description,
            icon=icon,
            color=color,
            properties=properties,
            source_column=source_column,
        )
        self._session.add(entity_type)
        self._session.flush()
        return entity_type

    def delete(self, record: Any) -> None:
        self._session.delete(record)
        self._session.flush()

    # ------------------------------------------------------------------
    # Entities
    # ------------------------------------------------------------------

    def list_entities(self, entity_type_id: uuid.UUID | None = None, *, limit: int = 500) -> list[Entity]:
        stmt = select(Entity).where(Entity.org_id == self._org_id)
        if entity_type_id is not None:
            stmt = stmt.where(Entity.entity_type_id == entity_type_id)
        stmt = stmt.order_by(Entity.name).limit(limit)
        return list(self._session.scalars(stmt).all())

    def get_entity(self, entity_id: uuid.UUID) -> Entity | None:
        stmt = select(Entity).where(Entity.id == entity_id, Entity.org_id == self._org_id)
        return self._session.scalars(stmt).first()

    def find_entity_by_name(self, entity_type_id: uuid.UUID, name: str) -> Entity | None:
        """
        Case-insensitive, whitespace-trimmed name lookup within one entity type.
        """

        stmt = (
            select(Entity)
            .where(
                Entity.org_id == self._org_id,
                Entity.entity_type_id == entity_type_id,
                func.lower(func.trim(Entity.name)) == entity_name_key(name),
            )
            .order_by(Entity.created_at)
        )
        return self._session.scalars(stmt).first()

    def create_entity(
        self,
        *,
        entity_type_id: uuid.UUID,
        name: str,
        properties: dict[str, Any],
        source_upload_id: uuid.UUID | None,
    ) -> Entity:
        entity = Entity(
            org_id=self._org_id,
            entity_type_id=entity_type_id,
            name=name,
            properties=properties,
            source_upload_id=source_upload_id,
        )
        self._session.add(entity)
        self._session.flush()
        return entity

    def update_entity_properties(self, entity: Entity, properties: dict[str, Any]) -> None:
        entity.properties = properties
        self._session.flush()

    # ------------------------------------------------------------------
    # Relationship types
    # ------------------------------------------------------------------

    def list_relationship_types(self) -> list[RelationshipType]:
        stmt = (
            select(RelationshipType)
            .where(RelationshipType.org_id == self._org_id)
            .order_by(RelationshipType.created_at)
        )
        return list(self._session.scalars(stmt).all())

    def get_relationship_type(self, relationship_type_id: uuid.UUID) -> RelationshipType | None:
        stmt = select(RelationshipType).where(
            RelationshipType.id == relationship_type_id,
            RelationshipType.org_id == self._org_id,
        )
        return self._session.scalars(stmt).first()

    def find_relationship_type(
        self,
        *,
        name: str,
        from_type_id: uuid.UUID,
        to_type_id: uuid.UUID,
    ) -> RelationshipType | None:
        stmt = select(RelationshipType).where(
            RelationshipType.org_id == self._org_id,
            RelationshipType.name == name,
            RelationshipType.from_type_id == from_type_id,
            RelationshipType.to_type_id == to_type_id,
        )
        return self._session.scalars(stmt).first()

    def create_relationship_type(
        self,
        *,
        name: str,
        from_type_id: uuid.UUID,
        to_type_id: uuid.UUID,
        description: str | None = None,
    ) -> RelationshipType:
        relationship_type = RelationshipType(
            org_id=self._org_id,
            name=name,
            from_type_id=from_type_id,
            to_type_id=to_type_id,
            description=description,
        )
        self._session.add(relationship_type)
        self._session.flush()
        return relationship_type

    def get_or_create_relationship_type(
        self,
        *,
        name: str,
        from_type_id: uuid.UUID,
        to_type_id: uuid.UUID,
    ) -> uuid.UUID:
        existing = self.find_relationship_type(name=name, from_type_id=from_type_id, to_type_id=to_type_id)
        if existing is not None:
            return existing.id
        return self.create_relationship_type(name=name, from_type_id=from_type_id, to_type_id=to_type_id).id

    # ------------------------------------------------------------------
    # Entity relationships
    # ------------------------------------------------------------------

    def list_relationships_for_entity(self, entity_id: uuid.UUID) -> list[EntityRelationship]:
        stmt = (
            select(EntityRelationship)
            .where(
                EntityRelationship.org_id == self._org_id,
                or_(
                    EntityRelationship.from_entity_id == entity_id,
                    EntityRelationship.to_entity_id == entity_id,
                ),
            )
            .order_by(EntityRelationship.created_at)
        )
        return list(self._session.scalars(stmt).all())

    def get_relationship(self, relationship_id: uuid.UUID) -> EntityRelationship | None:
        stmt = select(EntityRelationship).where(
            EntityRelationship.id == relationship_id,
            EntityRelationship.org_id == self._org_id,
        )
        return self._session.scalars(stmt).first()

    def relationship_exists(
        self,
        *,
        relationship_type_id: uuid.UUID,
        from_entity_id: uuid.UUID,
        to_entity_id: uuid.UUID,
    ) -> bool:
        stmt = select(EntityRelationship.id).where(
            EntityRelationship.relationship_type_id == relationship_type_id,
            EntityRelationship.from_entity_id == from_entity_id,
            EntityRelationship.to_entity_id == to_entity_id,
        )
        return self._session.scalars(stmt).first() is not None

    def create_relationship(
        self,
        *,
        relationship_type_id: uuid.UUID,
        from_entity_id: uuid.UUID,
        to_entity_id: uuid.UUID,
        properties: dict[str, Any] | None = None,
    ) -> EntityRelationship:
        relationship = EntityRelationship(
            org_id=self._org_id,
            relationship_type_id=relationship_type_id,
            from_entity_id=from_entity_id,
            to_entity_id=to_entity_id,
            properties=properties or {},
        )
        self._session.add(relationship)
        self._session.flush()
        return relationship
