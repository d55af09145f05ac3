"""
tests/test_ontology_projector.py

Pytest unit tests for OntologyProjector against an in-memory store.
"""

from __future__ import annotations

import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator

import pytest

from app.domain.ingestion import OntologyConfig, RelationshipColumn
from app.domain.ontology import (
    OntologyConfigError,
    OntologyNotFoundError,
    OntologyPersistenceError,
    entity_name_key,
)
from app.services.ontology_projector import OntologyProjector


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------


@dataclass
class _EntityType:
    id: uuid.UUID
    properties: list[dict[str, Any]]


@dataclass
class _Entity:
    id: uuid.UUID
    entity_type_id: uuid.UUID
    name: str
    properties: dict[str, Any]
    source_upload_id: uuid.UUID | None = None


@dataclass
class InMemoryOntologyStore:
    entity_types: dict[uuid.UUID, _EntityType] = field(default_factory=dict)
    entities: list[_Entity] = field(default_factory=list)
    relationship_types: dict[tuple[str, uuid.UUID, uuid.UUID], uuid.UUID] = field(default_factory=dict)
    relationships: set[tuple[uuid.UUID, uuid.UUID, uuid.UUID]] = field(default_factory=set)
    fail_on_names: set[str] = field(default_factory=set)

    def add_type(self, properties: list[dict[str, Any]] | None = None) -> uuid.UUID:
        type_id = uuid.uuid4()
        self.entity_types[type_id] = _EntityType(id=type_id, properties=properties or [])
        return type_id

    def add_entity(self, entity_type_id: uuid.UUID, name: str, **properties: Any) -> _Entity:
        entity = _Entity(id=uuid.uuid4(), entity_type_id=entity_type_id, name=name, properties=properties)
        self.entities.append(entity)
        return entity

    def names(self, entity_type_id: uuid.UUID) -> list[str]:
        return [entity.name for entity in self.entities if entity.entity_type_id == entity_type_id]

    @contextmanager
    def savepoint(self) -> Iterator[None]:
        entity_count = len(self.entities)
        relationships = set(self.relationships)
        try:
            yield
        except OntologyPersistenceError:
            del self.entities[entity_count:]
            self.relationships = relationships
            raise

    def get_entity_type(self, entity_type_id: uuid.UUID) -> _EntityType | None:
        return self.entity_types.get(entity_type_id)

    def find_entity_by_name(self, entity_type_id: uuid.UUID, name: str) -> _Entity | None:
        key = entity_name_key(name)
        for entity in self.entities:
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
        if name in self.fail_on_names:
            raise OntologyPersistenceError(f"cannot write {name}")
        entity = self.add_entity(entity_type_id, name, **properties)
        entity.source_upload_id = source_upload_id
        return entity

    def update_entity_properties(self, entity: _Entity, properties: dict[str, Any]) -> None:
        entity.properties = properties

    def get_or_create_relationship_type(
        self,
        *,
        name: str,
        from_type_id: uuid.UUID,
        to_type_id: uuid.UUID,
    ) -> uuid.UUID:
        return self.relationship_types.setdefault((name, from_type_id, to_type_id), uuid.uuid4())

    def relationship_exists(
        self,
        *,
        relationship_type_id: uuid.UUID,
        from_entity_id: uuid.UUID,
        to_entity_id: uuid.UUID,
    ) -> bool:
        return (relationship_type_id, from_entity_id, to_entity_id) in self.relationships

    def create_relationship(
        self,
        *,
        relationship_type_id: uuid.UUID,
        from_entity_id: uuid.UUID,
        to_entity_id: uuid.UUID,
    ) -> None:
        self.relationships.add((relationship_type_id, from_entity_id, to_entity_id))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


HEADERS = ("Instructor", "Email", "Classes", "Location")


@pytest.fixture()
def store() -> InMemoryOntologyStore:
    return InMemoryOntologyStore()


@pytest.fixture()
def instructor_type(store: InMemoryOntologyStore) -> uuid.UUID:
    return store.add_type(
        [
            {"key": "email", "label": "Email", "type": "email"},
            {"key": "classes", "label": "Classes", "type": "number"},
        ]
    )


@pytest.fixture()
def location_type(store: InMemoryOntologyStore) -> uuid.UUID:
    location_type = store.add_type()
    store.add_entity(location_type, "Downtown")
    return location_type


def _config(instructor_type: uuid.UUID, *relationships: RelationshipColumn) -> OntologyConfig:
    return OntologyConfig(
        name_column="Instructor",
        entity_type_id=instructor_type,
        column_to_property={"Email": "email", "Classes": "classes"},
        relationship_columns=relationships,
    )


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


def test_creates_entities_with_typed_properties(store, instructor_type) -> None:
    upload_id = uuid.uuid4()
    rows = [
        {"Instructor": "Jane", "Email": "JANE@example.com", "Classes": "12", "Location": ""},
        {"Instructor": "Sam", "Email": "", "Classes": "4", "Location": ""},
    ]

    summary = OntologyProjector(store).project(
        rows,
        config=_config(instructor_type),
        headers=HEADERS,
        source_upload_id=upload_id,
    )

    assert summary.entities_created == 2
    assert summary.entities_updated == 0
    jane = store.find_entity_by_name(instructor_type, "jane")
    assert jane.properties == {"email": "jane@example.com", "classes": 12.0}
    assert jane.source_upload_id == upload_id
    assert store.find_entity_by_name(instructor_type, "Sam").properties == {"classes": 4.0}


def test_existing_entity_properties_are_merged(store, instructor_type) -> None:
    existing = store.add_entity(instructor_type, "Jane", email="jane@old.com", classes=3.0)

    summary = OntologyProjector(store).project(
        [{"Instructor": " jane ", "Email": "", "Classes": "9", "Location": ""}],
        config=_config(instructor_type),
        headers=HEADERS,
    )

    assert summary.entities_created == 0
    assert summary.entities_updated == 1
    assert existing.properties == {"email": "jane@old.com", "classes": 9.0}
    assert store.names(instructor_type) == ["Jane"]


def test_repeated_name_in_one_upload_is_created_once(store, instructor_type) -> None:
    rows = [
        {"Instructor": "Jane", "Email": "", "Classes": "1", "Location": ""},
        {"Instructor": "Jane", "Email": "", "Classes": "2", "Location": ""},
    ]

    summary = OntologyProjector(store).project(rows, config=_config(instructor_type), headers=HEADERS)

    assert summary.entities_created == 1
    assert summary.entities_updated == 0
    assert store.find_entity_by_name(instructor_type, "Jane").properties == {"classes": 2.0}


def test_invalid_property_value_is_rejected_not_fatal(store, instructor_type) -> None:
    summary = OntologyProjector(store).project(
        [{"Instructor": "Jane", "Email": "not-an-email", "Classes": "5", "Location": ""}],
        config=_config(instructor_type),
        headers=HEADERS,
    )

    assert summary.rejected_properties == 1
    assert store.find_entity_by_name(instructor_type, "Jane").properties == {"classes": 5.0}


def test_rows_without_name_are_skipped(store, instructor_type) -> None:
    summary = OntologyProjector(store).project(
        [{"Instructor": "  ", "Email": "", "Classes": "5", "Location": ""}],
        config=_config(instructor_type),
        headers=HEADERS,
    )

    assert summary.rows_skipped == 1
    assert store.names(instructor_type) == []


def test_relationships_resolve_by_name(store, instructor_type, location_type) -> None:
    relationship = RelationshipColumn(column="Location", to_entity_type_id=location_type, relationship_name="teaches_at")
    rows = [
        {"Instructor": "Jane", "Email": "", "Classes": "", "Location": "downtown"},
        {"Instructor": "Sam", "Email": "", "Classes": "", "Location": "Downtown"},
        {"Instructor": "Jane", "Email": "", "Classes": "", "Location": "Downtown"},
    ]

    summary = OntologyProjector(store).project(
        rows,
        config=_config(instructor_type, relationship),
        headers=HEADERS,
    )

    assert summary.relationships_created == 2
    assert summary.relationships_skipped == 0
    assert list(store.relationship_types) == [("teaches_at", instructor_type, location_type)]


def test_unresolved_relationship_is_skipped_but_entity_kept(store, instructor_type, location_type) -> None:
    relationship = RelationshipColumn(column="Location", to_entity_type_id=location_type)
    rows = [{"Instructor": "Unknown Person", "Email": "", "Classes": "", "Location": "Nowhere"}]

    summary = OntologyProjector(store).project(
        rows,
        config=_config(instructor_type, relationship),
        headers=HEADERS,
    )

    assert summary.entities_created == 1
    assert summary.relationships_created == 0
    assert summary.relationships_skipped == 1
    assert store.relationship_types == {}
    assert store.names(instructor_type) == ["Unknown Person"]


def test_self_reference_resolves_once_target_exists(store, instructor_type) -> None:
    relationship = RelationshipColumn(
        column="Mentor",
        to_entity_type_id=instructor_type,
        relationship_name="mentored_by",
    )
    headers = ("Instructor", "Mentor")
    config = OntologyConfig(
        name_column="Instructor",
        entity_type_id=instructor_type,
        relationship_columns=(relationship,),
    )
    rows = [
        {"Instructor": "Jane", "Mentor": "Sam"},
        {"Instructor": "Sam", "Mentor": ""},
        {"Instructor": "Lee", "Mentor": "Sam"},
    ]

    summary = OntologyProjector(store).project(rows, config=config, headers=headers)

    assert summary.entities_created == 3
    assert summary.relationships_skipped == 1
    assert summary.relationships_created == 1


def test_failed_row_is_rolled_back_and_others_kept(store, instructor_type) -> None:
    store.fail_on_names.add("Broken")
    rows = [
        {"Instructor": "Jane", "Email": "", "Classes": "", "Location": ""},
        {"Instructor": "Broken", "Email": "", "Classes": "", "Location": ""},
        {"Instructor": "Sam", "Email": "", "Classes": "", "Location": ""},
    ]

    summary = OntologyProjector(store).project(rows, config=_config(instructor_type), headers=HEADERS)

    assert summary.rows_failed == 1
    assert summary.entities_created == 2
    assert store.names(instructor_type) == ["Jane", "Sam"]


# ---------------------------------------------------------------------------
# Configuration validation
# ---------------------------------------------------------------------------


def test_missing_name_column_is_rejected(store, instructor_type) -> None:
    config = OntologyConfig(name_column="Coach", entity_type_id=instructor_type)

    with pytest.raises(OntologyConfigError):
        OntologyProjector(store).project([], config=config, headers=HEADERS)


def test_unknown_property_key_is_rejected_before_writes(store, instructor_type) -> None:
    config = OntologyConfig(
        name_column="Instructor",
        entity_type_id=instructor_type,
        column_to_property={"Email": "phone"},
    )

    with pytest.raises(OntologyConfigError) as exc_info:
        OntologyProjector(store).project(
            [{"Instructor": "Jane", "Email": "x"}],
            config=config,
            headers=HEADERS,
        )

    assert exc_info.value.context == {"column": "Email", "property": "phone"}
    assert store.names(instructor_type) == []


def test_unknown_entity_type_is_not_found(store) -> None:
    config = OntologyConfig(name_column="Instructor", entity_type_id=uuid.uuid4())

    with pytest.raises(OntologyNotFoundError):
        OntologyProjector(store).project([], config=config, headers=HEADERS)


def test_missing_entity_type_id_is_rejected(store) -> None:
    with pytest.raises(OntologyConfigError):
        OntologyProjector(store).project([], config=OntologyConfig(name_column="Instructor"), headers=HEADERS)
