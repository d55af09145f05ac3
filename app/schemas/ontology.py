"""
Schemas for ontology management endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import Field

from app.domain.property_values import PropertyType
from app.schemas.base import APIModel


class PropertyDefinitionSchema(APIModel):
    key: str = Field(..., min_length=1, max_length=120)
    label: str | None = None
    type: PropertyType = PropertyType.TEXT
    visible: bool = True


class EntityTypeCreateRequest(APIModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    icon: str | None = None
    color: str | None = None
    properties: list[PropertyDefinitionSchema] = Field(default_factory=list)


class EntityTypeUpdateRequest(APIModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    icon: str | None = None
    color: str | None = None
    properties: list[PropertyDefinitionSchema] | None = None


class EntityTypeResponse(APIModel):
    id: UUID
    name: str
    slug: str
    description: str | None = None
    icon: str
    color: str
    properties: list[PropertyDefinitionSchema] = Field(default_factory=list)
    source_column: str | None = None
    created_at: datetime


class EntityCreateRequest(APIModel):
    entity_type_id: UUID
    name: str = Field(..., min_length=1, max_length=255)
    properties: dict[str, Any] = Field(default_factory=dict)


class EntityUpdateRequest(APIModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    properties: dict[str, Any] | None = None


class EntityResponse(APIModel):
    id: UUID
    entity_type_id: UUID
    name: str
    properties: dict[str, Any] = Field(default_factory=dict)
    source_upload_id: UUID | None = None
    created_at: datetime


class RelationshipTypeCreateRequest(APIModel):
    name: str = Field(..., min_length=1, max_length=120)
    from_type_id: UUID
    to_type_id: UUID
    description: str | None = None


class RelationshipTypeResponse(APIModel):
    id: UUID
    name: str
    from_type_id: UUID
    to_type_id: UUID
    description: str | None = None


class RelationshipCreateRequest(APIModel):
    relationship_type_id: UUID
    from_entity_id: UUID
    to_entity_id: UUID
    properties: dict[str, Any] = Field(default_factory=dict)


class RelationshipResponse(APIModel):
    id: UUID
    relationship_type_id: UUID
    from_entity_id: UUID
    to_entity_id: UUID
    properties: dict[str, Any] = Field(default_factory=dict)
