"""
app/services/ontology_service.py

Tenant-scoped CRUD for entity types, entities, relationship types and
entity relationships.

Every mutating call commits on success and rolls back on failure unless
``commit=False`` is passed, in which case the caller owns the transaction
(used when an upload creates its entity type in the same import).
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Mapping, Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.ontology import (
    DEFAULT_ENTITY_TYPE_COLOR,
    DEFAULT_ENTITY_TYPE_ICON,
    OntologyConflictError,
    OntologyError,
    OntologyNotFoundError,
    OntologyPersistenceError,
    slug_from_name,
)
from app.domain.property_values import coerce_properties, parse_property_definitions
from db.models.ontology import Entity, EntityRelationship, EntityType, RelationshipType
from db.repositories.ontology_repository import OntologyRepository

logger = logging.getLogger(__name__)

_UNSET: Any = object()


class OntologyService:
    """
    Ontology management for one organization.
    """

    def __init__(
        self,
        db: Session,
        *,
        org_id: uuid.UUID,
        currency_code: str = "USD",
        repository: OntologyRepository | None = None,
    ) -> None:
        self._db = db
        self._repository = repository or OntologyRepository(db, org_id)
        self._currency_code = currency_code

    @property
    def repository(self) -> OntologyRepository:
        return self._repository

    # ------------------------------------------------------------------
    # Entity types
    # ------------------------------------------------------------------

    def list_entity_types(self) -> list[EntityType]:
        return self._repository.list_entity_types()

    def get_entity_type(self, entity_type_id: uuid.UUID) -> EntityType:
        entity_type = self._repository.get_entity_type(entity_type_id)
        if entity_type is None:
            raise OntologyNotFoundError.for_record("Entity type", entity_type_id)
        return entity_type

    def create_entity_type(
        self,
        *,
        name: str,
        description: str | None = None,
        icon: str | None = None,
        color: str | None = None,
        properties: Sequence[Mapping[str, Any]] | None = None,
        source_column: str | None = None,
        commit: bool = True,
    ) -> EntityType:
        clean_name = self._require_name(name, "Entity type")
        slug = slug_from_name(clean_name)
        definitions = parse_property_definitions(properties)
        if self._repository.get_entity_type_by_slug(slug) is not None:
            raise OntologyConflictError(
                f"An entity type with slug '{slug}' already exists.",
                context={"slug": slug},
            )

        def create() -> EntityType:
            return self._repository.add_entity_type(
                name=clean_name,
                slug=slug,
                description=description,
                icon=icon or DEFAULT_ENTITY_TYPE_ICON,
                color=color or DEFAULT_ENTITY_TYPE_COLOR,
                properties=[definition.to_dict() for definition in definitions],
                source_column=source_column,
            )

        entity_type = self._write(create, commit=commit)
        logger.info("Entity type created org_id=%s slug=%s", self._repository.org_id, slug)
        return entity_type

    def update_entity_type(
        self,
        entity_type_id: uuid.UUID,
        *,
        name: str | None = None,
        description: Any = _UNSET,
        icon: str | None = None,
        color: str | None = None,
        properties: Sequence[Mapping[str, Any]] | None = None,
    ) -> EntityType:
        """
        Apply a partial update. Renaming re-derives the slug.
        """

        entity_type = self.get_entity_type(entity_type_id)
        new_slug: str | None = None
        clean_name: str | None = None
        if name is not None:
            clean_name = self._require_name(name, "Entity type")
            new_slug = slug_from_name(clean_name)
            clash = self._repository.get_entity_type_by_slug(new_slug)
            if clash is not None and clash.id != entity_type.id:
                raise OntologyConflictError(
                    f"An entity type with slug '{new_slug}' already exists.",
                    context={"slug": new_slug},
                )
        definitions = parse_property_definitions(properties) if properties is not None else None

        def apply() -> EntityType:
            if clean_name is not None and new_slug is not None:
                entity_type.name = clean_name
                entity_type.slug = new_slug
            if description is not _UNSET:
                entity_type.description = description
            if icon:
                entity_type.icon = icon
            if color:
                entity_type.color = color
            if definitions is not None:
                entity_type.properties = [definition.to_dict() for definition in definitions]
            self._db.flush()
            return entity_type

        return self._write(apply)

    def delete_entity_type(self, entity_type_id: uuid.UUID) -> None:
        entity_type = self.get_entity_type(entity_type_id)
        self._write(lambda: self._repository.delete(entity_type))
        logger.info("Entity type deleted org_id=%s id=%s", self._repository.org_id, entity_type_id)

    # ------------------------------------------------------------------
    # Entities
    # ------------------------------------------------------------------

    def list_entities(self, entity_type_id: uuid.UUID | None = None) -> list[Entity]:
        if entity_type_id is not None:
            self.get_entity_type(entity_type_id)
        return self._repository.list_entities(entity_type_id)

    def get_entity(self, entity_id: uuid.UUID) -> Entity:
        entity = self._repository.get_entity(entity_id)
        if entity is None:
            raise OntologyNotFoundError.for_record("Entity", entity_id)
        return entity

    def create_entity(
        self,
        *,
        entity_type_id: uuid.UUID,
        name: str,
        properties: Mapping[str, Any] | None = None,
    ) -> Entity:
        entity_type = self.get_entity_type(entity_type_id)
        clean_name = self._require_name(name, "Entity")
        if self._repository.find_entity_by_name(entity_type_id, clean_name) is not None:
            raise OntologyConflictError(
                f"An entity named '{clean_name}' already exists for this type.",
                context={"name": clean_name},
            )
        coerced = self._coerce(entity_type, properties or {})
        return self._write(
            lambda: self._repository.create_entity(
                entity_type_id=entity_type_id,
                name=clean_name,
                properties=coerced,
                source_upload_id=None,
            )
        )

    def update_entity(
        self,
        entity_id: uuid.UUID,
        *,
        name: str | None = None,
        properties: Mapping[str, Any] | None = None,
    ) -> Entity:
        """
        Rename and/or merge properties; keys not supplied are left untouched.
        """

        entity = self.get_entity(entity_id)
        clean_name = self._require_name(name, "Entity") if name is not None else None
        if clean_name is not None:
            clash = self._repository.find_entity_by_name(entity.entity_type_id, clean_name)
            if clash is not None and clash.id != entity.id:
                raise OntologyConflictError(
                    f"An entity named '{clean_name}' already exists for this type.",
                    context={"name": clean_name},
                )
        coerced = self._coerce(entity.entity_type, properties) if properties else {}

        def apply() -> Entity:
            if clean_name is not None:
                entity.name = clean_name
            if coerced:
                self._repository.update_entity_properties(entity, {**(entity.properties or {}), **coerced})
            self._db.flush()
            return entity

        return self._write(apply)

    def delete_entity(self, entity_id: uuid.UUID) -> None:
        entity = self.get_entity(entity_id)
        self._write(lambda: self._repository.delete(entity))

    # ------------------------------------------------------------------
    # Relationship types
    # ------------------------------------------------------------------

    def list_relationship_types(self) -> list[RelationshipType]:
        return self._repository.list_relationship_types()

    def get_relationship_type(self, relationship_type_id: uuid.UUID) -> RelationshipType:
        relationship_type = self._repository.get_relationship_type(relationship_type_id)
        if relationship_type is None:
            raise OntologyNotFoundError.for_record("Relationship type", relationship_type_id)
        return relationship_type

    def create_relationship_type(
        self,
        *,
        name: str,
        from_type_id: uuid.UUID,
        to_type_id: uuid.UUID,
        description: str | None = None,
    ) -> RelationshipType:
        clean_name = self._require_name(name, "Relationship type")
        self.get_entity_type(from_type_id)
        self.get_entity_type(to_type_id)
        existing = self._repository.find_relationship_type(
            name=clean_name,
            from_type_id=from_type_id,
            to_type_id=to_type_id,
        )
        if existing is not None:
            raise OntologyConflictError(
                f"Relationship type '{clean_name}' already exists between these entity types.",
                context={"name": clean_name},
            )
        return self._write(
            lambda: self._repository.create_relationship_type(
                name=clean_name,
                from_type_id=from_type_id,
                to_type_id=to_type_id,
                description=description,
            )
        )

    def delete_relationship_type(self, relationship_type_id: uuid.UUID) -> None:
        relationship_type = self.get_relationship_type(relationship_type_id)
        self._write(lambda: self._repository.delete(relationship_type))

    # ------------------------------------------------------------------
    # Entity relationships
    # ------------------------------------------------------------------

    def list_relationships(self, entity_id: uuid.UUID) -> list[EntityRelationship]:
        self.get_entity(entity_id)
        return self._repository.list_relationships_for_entity(entity_id)

    def create_relationship(
        self,
        *,
        relationship_type_id: uuid.UUID,
        from_entity_id: uuid.UUID,
        to_entity_id: uuid.UUID,
        properties: Mapping[str, Any] | None = None,
    ) -> EntityRelationship:
        """
        Link two entities. Their types must match the relationship type's endpoints.
        """

        relationship_type = self.get_relationship_type(relationship_type_id)
        from_entity = self.get_entity(from_entity_id)
        to_entity = self.get_entity(to_entity_id)
        if (
            from_entity.entity_type_id != relationship_type.from_type_id
            or to_entity.entity_type_id != relationship_type.to_type_id
        ):
            raise OntologyError(
                "Entity types do not match the relationship type's endpoints.",
                context={
                    "relationship_type_id": str(relationship_type.id),
                    "expected_from_type_id": str(relationship_type.from_type_id),
                    "expected_to_type_id": str(relationship_type.to_type_id),
                },
            )
        if self._repository.relationship_exists(
            relationship_type_id=relationship_type_id,
            from_entity_id=from_entity_id,
            to_entity_id=to_entity_id,
        ):
            raise OntologyConflictError("These entities are already linked by this relationship type.")
        return self._write(
            lambda: self._repository.create_relationship(
                relationship_type_id=relationship_type_id,
                from_entity_id=from_entity_id,
                to_entity_id=to_entity_id,
                properties=dict(properties or {}),
            )
        )

    def delete_relationship(self, relationship_id: uuid.UUID) -> None:
        relationship = self._repository.get_relationship(relationship_id)
        if relationship is None:
            raise OntologyNotFoundError.for_record("Relationship", relationship_id)
        self._write(lambda: self._repository.delete(relationship))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _coerce(self, entity_type: EntityType, properties: Mapping[str, Any]) -> dict[str, Any]:
        definitions = parse_property_definitions(entity_type.properties)
        return coerce_properties(definitions, properties, currency_code=self._currency_code)

    def _write(self, operation: Any, *, commit: bool = True) -> Any:
        try:
            result = operation()
            if commit:
                self._db.commit()
        except IntegrityError as exc:
            self._db.rollback()
            raise OntologyConflictError("Ontology record conflicts with an existing record.") from exc
        except SQLAlchemyError as exc:
            self._db.rollback()
            raise OntologyPersistenceError("Failed to persist ontology changes.") from exc
        return result

    @staticmethod
    def _require_name(name: str | None, kind: str) -> str:
        clean = (name or "").strip()
        if not clean:
            raise OntologyError(f"{kind} name is required.")
        return clean
