"""
tests/test_ontology_service.py

Pytest unit tests for OntologyService against an in-memory repository.

Covers slug conflicts, duplicate entity names, property merging and
relationship endpoint checks. No database: the session is a MagicMock.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any
from unittest.mock import MagicMock

import pytest

from app.domain.ontology import (
    OntologyConflictError,
    OntologyError,
    OntologyNotFoundError,
    entity_name_key,
)
from app.domain.property_values import PropertyDefinitionError, PropertyValidationError
from app.services.ontology_service import OntologyService


# ---------------------------------------------------------------------------
# In-memory repository
# ---------------------------------------------------------------------------


@dataclass
class _EntityType:
    id: uuid.UUID
    name: str
    slug: str
    properties: list[dict[str, Any]]
    description: str | None = None
    icon: str | None = None
    color: str | None = None
    source_column: str | None = None


@dataclass
class _Entity:
    id: uuid.UUID
    entity_type_id: uuid.UUID
    entity_type: _EntityType
    name: str
    properties: dict[str, Any]


@dataclass
class _RelationshipType:
    id: uuid.UUID
    name: str
    from_type_id: uuid.UUID
    to_type_id: uuid.UUID


@dataclass
class _Relationship:
    id: uuid.UUID
    relationship_type_id: uuid.UUID
    from_entity_id: uuid.UUID
    to_entity_id: uuid.UUID
    properties: dict[str, Any]


@dataclass
class InMemoryOntologyRepository:
    org_id: uuid.UUID = field(default_factory=uuid.uuid4)
    entity_types: dict[uuid.UUID, _EntityType] = field(default_factory=dict)
    entities: dict[uuid.UUID, _Entity] = field(default_factory=dict)
    relationship_types: dict[uuid.UUID, _RelationshipType] = field(default_factory=dict)
    relationships: dict[uuid.UUID, _Relationship] = field(default_factory=dict)

    def get_entity_type(self, entity_type_id: uuid.UUID) -> _EntityType | None:
        return self.entity_types.get(entity_type_id)

    def get_entity_type_by_slug(self, slug: str) -> _EntityType | None:
        return next((item for item in self.entity_types.values() if item.slug == slug), None)

    def add_entity_type(self, **values: Any) -> _EntityType:
        entity_type = _EntityType(id=uuid.uuid4(), **values)
        self.entity_types[entity_type.id] = entity_type
        return entity_type

    def get_entity(self, entity_id: uuid.UUID) -> _Entity | None:
        return self.entities.get(entity_id)

    def find_entity_by_name(self, entity_type_id: uuid.UUID, name: str) -> _Entity | None:
        key = entity_name_key(name)
        for entity in self.entities.values():
            if entity.entity_type_id == entity_type_id and entity_name_key(entity.name) == key:
                return entity
        return None

    def create_entity(
        self,
        *,
        entity_type_id: uuid.UUID,
        name: str,
        properties: dict[str, Any],
        source_upload_id: uuid.UUID | None,
    ) -> _Entity:
        entity = _Entity(
            id=uuid.uuid4(),
            entity_type_id=entity_type_id,
            entity_type=self.entity_types[entity_type_id],
            name=name,
            properties=properties,
        )
        self.entities[entity.id] = entity
        return entity

    def update_entity_properties(self, entity: _Entity, properties: dict[str, Any]) -> None:
        entity.properties = properties

    def get_relationship_type(self, relationship_type_id: uuid.UUID) -> _RelationshipType | None:
        return self.relationship_types.get(relationship_type_id)

    def create_relationship_type(
        self,
        *,
        name: str,
        from_type_id: uuid.UUID,
        to_type_id: uuid.UUID,
        description: str | None = None,
    ) -> _RelationshipType:
        relationship_type = _RelationshipType(
            id=uuid.uuid4(),
            name=name,
            from_type_id=from_type_id,
            to_type_id=to_type_id,
        )
        self.relationship_types[relationship_type.id] = relationship_type
        return relationship_type

    def find_relationship_type(
        self,
        *,
        name: str,
        from_type_id: uuid.UUID,
        to_type_id: uuid.UUID,
    ) -> _RelationshipType | None:
        for item in self.relationship_types.values():
            if (item.name, item.from_type_id, item.to_type_id) == (name, from_type_id, to_type_id):
                return item
        return None

    def relationship_exists(
        self,
        *,
        relationship_type_id: uuid.UUID,
        from_entity_id: uuid.UUID,
        to_entity_id: uuid.UUID,
    ) -> bool:
        return any(
            (item.relationship_type_id, item.from_entity_id, item.to_entity_id)
            == (relationship_type_id, from_entity_id, to_entity_id)
            for item in self.relationships.values()
        )

    def create_relationship(
        self,
        *,
        relationship_type_id: uuid.UUID,
        from_entity_id: uuid.UUID,
        to_entity_id: uuid.UUID,
        properties: dict[str, Any] | None = None,
    ) -> _Relationship:
        relationship = _Relationship(
            id=uuid.uuid4(),
            relationship_type_id=relationship_type_id,
            from_entity_id=from_entity_id,
            to_entity_id=to_entity_id,
            properties=properties or {},
        )
        self.relationships[relationship.id] = relationship
        return relationship


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


INSTRUCTOR_PROPERTIES = [
    {"key": "email", "label": "Email", "type": "text"},
    {"key": "classes", "label": "Classes", "type": "number"},
]


@pytest.fixture()
def repository() -> InMemoryOntologyRepository:
    return InMemoryOntologyRepository()


@pytest.fixture()
def db() -> MagicMock:
    return MagicMock()


@pytest.fixture()
def service(db: MagicMock, repository: InMemoryOntologyRepository) -> OntologyService:
    return OntologyService(db, org_id=repository.org_id, repository=repository)


@pytest.fixture()
def instructor_type(service: OntologyService):
    return service.create_entity_type(name="Instructor", properties=INSTRUCTOR_PROPERTIES)


@pytest.fixture()
def location_type(service: OntologyService):
    return service.create_entity_type(name="Location")


# ---------------------------------------------------------------------------
# Entity types
# ---------------------------------------------------------------------------


def test_entity_type_slug_is_derived_and_committed(service: OntologyService, db: MagicMock) -> None:
    entity_type = service.create_entity_type(name="Sales Reps (EU)")

    assert entity_type.slug == "sales_reps_eu"
    assert entity_type.icon and entity_type.color
    db.commit.assert_called_once()


def test_entity_type_slug_conflict(service: OntologyService, instructor_type) -> None:
    with pytest.raises(OntologyConflictError) as exc_info:
        service.create_entity_type(name="  instructor!! ")

    assert exc_info.value.context == {"slug": "instructor"}


def test_rename_onto_another_slug_conflicts(service: OntologyService, instructor_type, location_type) -> None:
    with pytest.raises(OntologyConflictError):
        service.update_entity_type(location_type.id, name="Instructor")

    assert location_type.name == "Location"


def test_rename_keeping_own_slug_is_allowed(service: OntologyService, instructor_type) -> None:
    updated = service.update_entity_type(instructor_type.id, name="INSTRUCTOR")

    assert updated.name == "INSTRUCTOR"
    assert updated.slug == "instructor"


def test_duplicate_property_keys_are_rejected(service: OntologyService) -> None:
    with pytest.raises(PropertyDefinitionError):
        service.create_entity_type(
            name="Product",
            properties=[{"key": "sku"}, {"key": "sku", "type": "number"}],
        )


def test_unknown_entity_type_is_not_found(service: OntologyService) -> None:
    with pytest.raises(OntologyNotFoundError):
        service.get_entity_type(uuid.uuid4())


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


def test_duplicate_entity_name_conflicts(service: OntologyService, instructor_type) -> None:
    service.create_entity(entity_type_id=instructor_type.id, name="Jo Smith")

    with pytest.raises(OntologyConflictError):
        service.create_entity(entity_type_id=instructor_type.id, name="  jo smith ")


def test_same_name_in_another_type_is_allowed(service: OntologyService, instructor_type, location_type) -> None:
    service.create_entity(entity_type_id=instructor_type.id, name="Central")

    entity = service.create_entity(entity_type_id=location_type.id, name="Central")

    assert entity.entity_type_id == location_type.id


def test_update_merges_properties(service: OntologyService, instructor_type) -> None:
    entity = service.create_entity(
        entity_type_id=instructor_type.id,
        name="Jo",
        properties={"email": "jo@example.com", "classes": "3"},
    )

    updated = service.update_entity(entity.id, properties={"classes": "5"})

    assert updated.properties == {"email": "jo@example.com", "classes": 5.0}


def test_update_rejects_unknown_property(service: OntologyService, instructor_type) -> None:
    entity = service.create_entity(entity_type_id=instructor_type.id, name="Jo")

    with pytest.raises(PropertyValidationError):
        service.update_entity(entity.id, properties={"rating": "5"})

    assert entity.properties == {}


def test_rename_onto_existing_entity_conflicts(service: OntologyService, instructor_type) -> None:
    service.create_entity(entity_type_id=instructor_type.id, name="Jo")
    other = service.create_entity(entity_type_id=instructor_type.id, name="Sam")

    with pytest.raises(OntologyConflictError):
        service.update_entity(other.id, name="JO")


# ---------------------------------------------------------------------------
# Relationships
# ---------------------------------------------------------------------------


@pytest.fixture()
def teaches_at(service: OntologyService, instructor_type, location_type):
    return service.create_relationship_type(
        name="teaches_at",
        from_type_id=instructor_type.id,
        to_type_id=location_type.id,
    )


def test_relationship_links_matching_entity_types(
    service: OntologyService,
    instructor_type,
    location_type,
    teaches_at,
) -> None:
    jo = service.create_entity(entity_type_id=instructor_type.id, name="Jo")
    downtown = service.create_entity(entity_type_id=location_type.id, name="Downtown")

    relationship = service.create_relationship(
        relationship_type_id=teaches_at.id,
        from_entity_id=jo.id,
        to_entity_id=downtown.id,
    )

    assert (relationship.from_entity_id, relationship.to_entity_id) == (jo.id, downtown.id)


def test_relationship_rejects_mismatched_entity_types(
    service: OntologyService,
    repository: InMemoryOntologyRepository,
    instructor_type,
    location_type,
    teaches_at,
) -> None:
    jo = service.create_entity(entity_type_id=instructor_type.id, name="Jo")
    sam = service.create_entity(entity_type_id=instructor_type.id, name="Sam")

    with pytest.raises(OntologyError) as exc_info:
        service.create_relationship(
            relationship_type_id=teaches_at.id,
            from_entity_id=jo.id,
            to_entity_id=sam.id,
        )

    assert not isinstance(exc_info.value, (OntologyConflictError, OntologyNotFoundError))
    assert exc_info.value.context["expected_to_type_id"] == str(location_type.id)
    assert repository.relationships == {}


def test_relationship_reversed_endpoints_are_rejected(
    service: OntologyService,
    instructor_type,
    location_type,
    teaches_at,
) -> None:
    jo = service.create_entity(entity_type_id=instructor_type.id, name="Jo")
    downtown = service.create_entity(entity_type_id=location_type.id, name="Downtown")

    with pytest.raises(OntologyError):
        service.create_relationship(
            relationship_type_id=teaches_at.id,
            from_entity_id=downtown.id,
            to_entity_id=jo.id,
        )


def test_duplicate_relationship_conflicts(
    service: OntologyService,
    instructor_type,
    location_type,
    teaches_at,
) -> None:
    jo = service.create_entity(entity_type_id=instructor_type.id, name="Jo")
    downtown = service.create_entity(entity_type_id=location_type.id, name="Downtown")
    service.create_relationship(relationship_type_id=teaches_at.id, from_entity_id=jo.id, to_entity_id=downtown.id)

    with pytest.raises(OntologyConflictError):
        service.create_relationship(
            relationship_type_id=teaches_at.id,
            from_entity_id=jo.id,
            to_entity_id=downtown.id,
        )


def test_relationship_type_requires_known_entity_types(service: OntologyService, instructor_type) -> None:
    with pytest.raises(OntologyNotFoundError):
        service.create_relationship_type(
            name="teaches_at",
            from_type_id=instructor_type.id,
            to_type_id=uuid.uuid4(),
        )
