"""
db/models package.

Import every model here so Alembic autogenerate and metadata.create_all
see the full schema.
"""

from db.models.action_target import ActionTarget, TargetStatus
from db.models.data_row import DataRow
from db.models.ontology import Entity, EntityRelationship, EntityType, RelationshipType
from db.models.organization import Organization
from db.models.upload import Upload, UploadStatus

__all__ = [
    "ActionTarget",
    "DataRow",
    "Entity",
    "EntityRelationship",
    "EntityType",
    "Organization",
    "RelationshipType",
    "TargetStatus",
    "Upload",
    "UploadStatus",
]
