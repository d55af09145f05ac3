"""
app/api/routers/ontology_router.py

CRUD endpoints for entity types, entities, relationship types, and relationships.
"""

from __future__ import annotations

import uuid
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from app.api.dependencies import get_current_organization
from app.domain.ontology import (
    OntologyConflictError,
    OntologyError,
    OntologyNotFoundError,
    OntologyPersistenceError,
)
from app.domain.property_values import PropertyDefinitionError, PropertyValidationError
from app.schemas.ontology import (
    EntityCreateRequest,
    EntityResponse,
    EntityTypeCreateRequest,
    EntityTypeResponse,
    EntityTypeUpdateRequest,
    EntityUpdateRequest,
    RelationshipCreateRequest,
    RelationshipResponse,
    RelationshipTypeCreateRequest,
    RelationshipTypeResponse,
)
from app.services.ontology_service import OntologyService
from db.models.organization import Organization
from db.session import get_db

router = APIRouter(prefix="/ontology", tags=["ontology"])

_HANDLED = (
    OntologyError,
    OntologyPersistenceError,
    PropertyDefinitionError,
    PropertyValidationError,
)


def get_ontology_service(
    organization: Organization = Depends(get_current_organization),
    db: Session = Depends(get_db),
) -> OntologyService:
    return OntologyService(db, org_id=organization.id, currency_code=organization.currency)


def _raise_for(exc: Exception) -> NoReturn:
    if isinstance(exc, OntologyNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.to_dict()) from exc
    if isinstance(exc, OntologyConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.to_dict()) from exc
    if isinstance(exc, (OntologyError, PropertyDefinitionError, PropertyValidationError)):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.to_dict()) from exc
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Unable to persist ontology changes.",
    ) from exc


# ---------------------------------------------------------------------------
# Entity types
# ---------------------------------------------------------------------------


@router.get("/entity-types", response_model=list[EntityTypeResponse])
def list_entity_types(service: OntologyService = Depends(get_ontology_service)) -> list[EntityTypeResponse]:
    return [EntityTypeResponse.model_validate(item) for item in service.list_entity_types()]


@router.get("/entity-types/{entity_type_id}", response_model=EntityTypeResponse)
def get_entity_type(
    entity_type_id: uuid.UUID,
    service: OntologyService = Depends(get_ontology_service),
) -> EntityTypeResponse:
    try:
        entity_type = service.get_entity_type(entity_type_id)
    except _HANDLED as exc:
        _raise_for(exc)
    return EntityTypeResponse.model_validate(entity_type)


@router.post("/entity-types", response_model=EntityTypeResponse, status_code=status.HTTP_201_CREATED)
def create_entity_type(
    body: EntityTypeCreateRequest,
    service: OntologyService = Depends(get_ontology_service),
) -> EntityTypeResponse:
    try:
        entity_type = service.create_entity_type(
            name=body.name,
            description=body.description,
            icon=body.icon,
            color=body.color,
            properties=[item.model_dump(mode="json") for item in body.properties],
        )
    except _HANDLED as exc:
        _raise_for(exc)
    return EntityTypeResponse.model_validate(entity_type)


@router.patch("/entity-types/{entity_type_id}", response_model=EntityTypeResponse)
def update_entity_type(
    entity_type_id: uuid.UUID,
    body: EntityTypeUpdateRequest,
    service: OntologyService = Depends(get_ontology_service),
) -> EntityTypeResponse:
    """
    Partial update. An explicit ``description: null`` clears the description.
    """

    changes = {}
    if "description" in body.model_fields_set:
        changes["description"] = body.description
    if body.properties is not None:
        changes["properties"] = [item.model_dump(mode="json") for item in body.properties]
    try:
        entity_type = service.update_entity_type(
            entity_type_id,
            name=body.name,
            icon=body.icon,
            color=body.color,
            **changes,
        )
    except _HANDLED as exc:
        _raise_for(exc)
    return EntityTypeResponse.model_validate(entity_type)


@router.delete("/entity-types/{entity_type_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_entity_type(
    entity_type_id: uuid.UUID,
    service: OntologyService = Depends(get_ontology_service),
) -> Response:
    """
    Delete an entity type with its entities and relationship types.
    """

    try:
        service.delete_entity_type(entity_type_id)
    except _HANDLED as exc:
        _raise_for(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


@router.get("/entities", response_model=list[EntityResponse])
def list_entities(
    entity_type_id: uuid.UUID | None = Query(default=None, alias="entityTypeId"),
    service: OntologyService = Depends(get_ontology_service),
) -> list[EntityResponse]:
    try:
        entities = service.list_entities(entity_type_id)
    except _HANDLED as exc:
        _raise_for(exc)
    return [EntityResponse.model_validate(item) for item in entities]


@router.get("/entities/{entity_id}", response_model=EntityResponse)
def get_entity(entity_id: uuid.UUID, service: OntologyService = Depends(get_ontology_service)) -> EntityResponse:
    try:
        entity = service.get_entity(entity_id)
    except _HANDLED as exc:
        _raise_for(exc)
    return EntityResponse.model_validate(entity)


@router.post("/entities", response_model=EntityResponse, status_code=status.HTTP_201_CREATED)
def create_entity(
    body: EntityCreateRequest,
    service: OntologyService = Depends(get_ontology_service),
) -> EntityResponse:
    try:
        entity = service.create_entity(
            entity_type_id=body.entity_type_id,
            name=body.name,
            properties=body.properties,
        )
    except _HANDLED as exc:
        _raise_for(exc)
    return EntityResponse.model_validate(entity)


@router.patch("/entities/{entity_id}", response_model=EntityResponse)
def update_entity(
    entity_id: uuid.UUID,
    body: EntityUpdateRequest,
    service: OntologyService = Depends(get_ontology_service),
) -> EntityResponse:
    try:
        entity = service.update_entity(entity_id, name=body.name, properties=body.properties)
    except _HANDLED as exc:
        _raise_for(exc)
    return EntityResponse.model_validate(entity)


@router.delete("/entities/{entity_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_entity(entity_id: uuid.UUID, service: OntologyService = Depends(get_ontology_service)) -> Response:
    try:
        service.delete_entity(entity_id)
    except _HANDLED as exc:
        _raise_for(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/entities/{entity_id}/relationships", response_model=list[RelationshipResponse])
def list_entity_relationships(
    entity_id: uuid.UUID,
    service: OntologyService = Depends(get_ontology_service),
) -> list[RelationshipResponse]:
    """
    Relationships where the entity is either endpoint.
    """

    try:
        relationships = service.list_relationships(entity_id)
    except _HANDLED as exc:
        _raise_for(exc)
    return [RelationshipResponse.model_validate(item) for item in relationships]


# ---------------------------------------------------------------------------
# Relationship types and relationships
# ---------------------------------------------------------------------------


@router.get("/relationship-types", response_model=list[RelationshipTypeResponse])
def list_relationship_types(
    service: OntologyService = Depends(get_ontology_service),
) -> list[RelationshipTypeResponse]:
    return [RelationshipTypeResponse.model_validate(item) for item in service.list_relationship_types()]


@router.post(
    "/relationship-types",
    response_model=RelationshipTypeResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_relationship_type(
    body: RelationshipTypeCreateRequest,
    service: OntologyService = Depends(get_ontology_service),
) -> RelationshipTypeResponse:
    try:
        relationship_type = service.create_relationship_type(
            name=body.name,
            from_type_id=body.from_type_id,
            to_type_id=body.to_type_id,
            description=body.description,
        )
    except _HANDLED as exc:
        _raise_for(exc)
    return RelationshipTypeResponse.model_validate(relationship_type)


@router.delete("/relationship-types/{relationship_type_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_relationship_type(
    relationship_type_id: uuid.UUID,
    service: OntologyService = Depends(get_ontology_service),
) -> Response:
    try:
        service.delete_relationship_type(relationship_type_id)
    except _HANDLED as exc:
        _raise_for(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/relationships", response_model=RelationshipResponse, status_code=status.HTTP_201_CREATED)
def create_relationship(
    body: RelationshipCreateRequest,
    service: OntologyService = Depends(get_ontology_service),
) -> RelationshipResponse:
    try:
        relationship = service.create_relationship(
            relationship_type_id=body.relationship_type_id,
            from_entity_id=body.from_entity_id,
            to_entity_id=body.to_entity_id,
            properties=body.properties,
        )
    except _HANDLED as exc:
        _raise_for(exc)
    return RelationshipResponse.model_validate(relationship)


@router.delete("/relationships/{relationship_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_relationship(
    relationship_id: uuid.UUID,
    service: OntologyService = Depends(get_ontology_service),
) -> Response:
    try:
        service.delete_relationship(relationship_id)
    except _HANDLED as exc:
        _raise_for(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
