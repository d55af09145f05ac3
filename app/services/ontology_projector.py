"""
app/services/ontology_projector.py

Projects mapped upload rows onto entities and entity relationships.

Rows are processed one at a time, each inside its own savepoint: a row
that fails to persist is logged and skipped while earlier rows stay
written. A relationship cell that names no existing entity of the target
type is skipped for that relationship only; the row's entity is still
created or updated.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import AbstractContextManager
from dataclasses import dataclass, replace
from typing import Any, Iterable, Mapping, Protocol, Sequence

from app.domain.ingestion import OntologyConfig, ProjectionSummary, RelationshipColumn
from app.domain.ontology import (
    DEFAULT_RELATIONSHIP_NAME,
    OntologyConfigError,
    OntologyNotFoundError,
    OntologyPersistenceError,
    entity_name_key,
)
from app.domain.property_values import (
    PropertyDefinition,
    PropertyValidationError,
    coerce_property_value,
    parse_property_definitions,
)

logger = logging.getLogger(__name__)


class EntityTypeRecord(Protocol):
    id: uuid.UUID
    properties: list[dict[str, Any]]


class EntityRecord(Protocol):
    id: uuid.UUID
    name: str
    properties: dict[str, Any]


class OntologyStore(Protocol):
    """
    Tenant-bound persistence used by the projector.
    """

    def savepoint(self) -> AbstractContextManager[Any]:
        ...

    def get_entity_type(self, entity_type_id: uuid.UUID) -> EntityTypeRecord | None:
        ...

    def find_entity_by_name(self, entity_type_id: uuid.UUID, name: str) -> EntityRecord | None:
        ...

    def create_entity(
        self,
        *,
        entity_type_id: uuid.UUID,
        name: str,
        properties: dict[str, Any],
        source_upload_id: uuid.UUID | None,
    ) -> EntityRecord:
        ...

    def update_entity_properties(self, entity: EntityRecord, properties: dict[str, Any]) -> None:
        ...

    def get_or_create_relationship_type(
        self,
        *,
        name: str,
        from_type_id: uuid.UUID,
        to_type_id: uuid.UUID,
    ) -> uuid.UUID:
        ...

    def relationship_exists(
        self,
        *,
        relationship_type_id: uuid.UUID,
        from_entity_id: uuid.UUID,
        to_entity_id: uuid.UUID,
    ) -> bool:
        ...

    def create_relationship(
        self,
        *,
        relationship_type_id: uuid.UUID,
        from_entity_id: uuid.UUID,
        to_entity_id: uuid.UUID,
    ) -> None:
        ...


@dataclass
class _Counters:
    entities_created: int = 0
    entities_updated: int = 0
    relationships_created: int = 0
    relationships_skipped: int = 0
    rejected_properties: int = 0
    rows_skipped: int = 0
    rows_failed: int = 0


class OntologyProjector:
    """
    Creates or merges one entity per named row and links it to referenced entities.
    """

    def __init__(self, store: OntologyStore, *, currency_code: str = "USD") -> None:
        self._store = store
        self._currency_code = currency_code

    def validate_config(self, config: OntologyConfig, headers: Sequence[str]) -> list[PropertyDefinition]:
        """
        Check the configuration against the upload headers and the tenant's types.

        Returns the entity type's property definitions.
        """

        if config.entity_type_id is None:
            raise OntologyConfigError("An entity type is required for ontology projection.")
        header_set = set(headers)
        if config.name_column not in header_set:
            raise OntologyConfigError(
                "Name column does not exist in the upload headers.",
                context={"column": config.name_column},
            )

        entity_type = self._store.get_entity_type(config.entity_type_id)
        if entity_type is None:
            raise OntologyNotFoundError.for_record("Entity type", config.entity_type_id)
        definitions = parse_property_definitions(entity_type.properties)
        known_keys = {definition.key for definition in definitions}

        for column, property_key in config.column_to_property.items():
            if column not in header_set:
                raise OntologyConfigError(
                    "Mapped property column does not exist in the upload headers.",
                    context={"column": column},
                )
            if property_key not in known_keys:
                raise OntologyConfigError(
                    f"Entity type has no property '{property_key}'.",
                    context={"column": column, "property": property_key},
                )

        for relationship in config.relationship_columns:
            if relationship.column not in header_set:
                raise OntologyConfigError(
                    "Relationship column does not exist in the upload headers.",
                    context={"column": relationship.column},
                )
            if self._store.get_entity_type(relationship.to_entity_type_id) is None:
                raise OntologyNotFoundError.for_record("Entity type", relationship.to_entity_type_id)

        return definitions

    def project(
        self,
        rows: Iterable[Mapping[str, Any]],
        *,
        config: OntologyConfig,
        headers: Sequence[str],
        source_upload_id: uuid.UUID | None = None,
    ) -> ProjectionSummary:
        definitions = self.validate_config(config, headers)
        by_key = {definition.key: definition for definition in definitions}
        relationship_columns = tuple(
            replace(column, relationship_name=column.relationship_name.strip() or DEFAULT_RELATIONSHIP_NAME)
            for column in config.relationship_columns
        )

        counters = _Counters()
        created_ids: set[uuid.UUID] = set()
        updated_ids: set[uuid.UUID] = set()
        relationship_type_ids: dict[tuple[str, uuid.UUID], uuid.UUID] = {}
        targets: dict[tuple[uuid.UUID, str], EntityRecord] = {}

        for row_number, row in enumerate(rows, start=1):
            name = str(row.get(config.name_column) or "").strip()
            if not name:
                counters.rows_skipped += 1
                continue

            properties = self._row_properties(row, config, by_key, counters, row_number)
            try:
                with self._store.savepoint():
                    entity = self._upsert_entity(
                        config=config,
                        name=name,
                        properties=properties,
                        source_upload_id=source_upload_id,
                        created_ids=created_ids,
                        updated_ids=updated_ids,
                    )
                    for relationship in relationship_columns:
                        self._link(
                            row=row,
                            row_number=row_number,
                            entity=entity,
                            from_type_id=config.entity_type_id,
                            relationship=relationship,
                            relationship_type_ids=relationship_type_ids,
                            targets=targets,
                            counters=counters,
                        )
            except OntologyPersistenceError as exc:
                counters.rows_failed += 1
                relationship_type_ids.clear()
                targets.clear()
                logger.warning("Ontology projection failed row=%s name=%r: %s", row_number, name, exc)

        summary = ProjectionSummary(
            entities_created=len(created_ids),
            entities_updated=len(updated_ids - created_ids),
            relationships_created=counters.relationships_created,
            relationships_skipped=counters.relationships_skipped,
            rejected_properties=counters.rejected_properties,
            rows_skipped=counters.rows_skipped,
            rows_failed=counters.rows_failed,
        )
        logger.info(
            "Ontology projection complete entity_type_id=%s created=%d updated=%d "
            "relationships=%d skipped_relationships=%d",
            config.entity_type_id,
            summary.entities_created,
            summary.entities_updated,
            summary.relationships_created,
            summary.relationships_skipped,
        )
        return summary

    def _row_properties(
        self,
        row: Mapping[str, Any],
        config: OntologyConfig,
        definitions: Mapping[str, PropertyDefinition],
        counters: _Counters,
        row_number: int,
    ) -> dict[str, Any]:
        properties: dict[str, Any] = {}
        for column, property_key in config.column_to_property.items():
            if column == config.name_column:
                continue
            raw_value = row.get(column)
            if raw_value is None or str(raw_value).strip() == "":
                continue
            try:
                properties[property_key] = coerce_property_value(
                    definitions[property_key],
                    raw_value,
                    currency_code=self._currency_code,
                )
            except PropertyValidationError as exc:
                counters.rejected_properties += 1
                logger.warning(
                    "Rejected property value row=%s property=%s value=%r: %s",
                    row_number,
                    property_key,
                    raw_value,
                    exc.message,
                )
        return properties

    def _upsert_entity(
        self,
        *,
        config: OntologyConfig,
        name: str,
        properties: dict[str, Any],
        source_upload_id: uuid.UUID | None,
        created_ids: set[uuid.UUID],
        updated_ids: set[uuid.UUID],
    ) -> EntityRecord:
        existing = self._store.find_entity_by_name(config.entity_type_id, name)
        if existing is None:
            entity = self._store.create_entity(
                entity_type_id=config.entity_type_id,
                name=name,
                properties=properties,
                source_upload_id=source_upload_id,
            )
            created_ids.add(entity.id)
            return entity

        if properties:
            merged = {**(existing.properties or {}), **properties}
            if merged != existing.properties:
                self._store.update_entity_properties(existing, merged)
        updated_ids.add(existing.id)
        return existing

    def _link(
        self,
        *,
        row: Mapping[str, Any],
        row_number: int,
        entity: EntityRecord,
        from_type_id: uuid.UUID,
        relationship: RelationshipColumn,
        relationship_type_ids: dict[tuple[str, uuid.UUID], uuid.UUID],
        targets: dict[tuple[uuid.UUID, str], EntityRecord],
        counters: _Counters,
    ) -> None:
        target_name = str(row.get(relationship.column) or "").strip()
        if not target_name:
            return

        cache_key = (relationship.to_entity_type_id, entity_name_key(target_name))
        target = targets.get(cache_key)
        if target is None:
            target = self._store.find_entity_by_name(relationship.to_entity_type_id, target_name)
            if target is not None:
                targets[cache_key] = target
        if target is None:
            counters.relationships_skipped += 1
            logger.debug(
                "Unresolved relationship value row=%s column=%s value=%r",
                row_number,
                relationship.column,
                target_name,
            )
            return

        type_key = (relationship.relationship_name, relationship.to_entity_type_id)
        if type_key not in relationship_type_ids:
            relationship_type_ids[type_key] = self._store.get_or_create_relationship_type(
                name=relationship.relationship_name,
                from_type_id=from_type_id,
                to_type_id=relationship.to_entity_type_id,
            )
        relationship_type_id = relationship_type_ids[type_key]

        if self._store.relationship_exists(
            relationship_type_id=relationship_type_id,
            from_entity_id=entity.id,
            to_entity_id=target.id,
        ):
            return
        self._store.create_relationship(
            relationship_type_id=relationship_type_id,
            from_entity_id=entity.id,
            to_entity_id=target.id,
        )
        counters.relationships_created += 1
