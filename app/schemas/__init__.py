"""
app/schemas package marker.
"""

from app.schemas.base import APIModel
from app.schemas.ontology import EntityResponse, EntityTypeResponse, RelationshipResponse, RelationshipTypeResponse
from app.schemas.organizations import OrganizationResponse
from app.schemas.targets import TargetResponse
from app.schemas.uploads import DetectResponse, ImportSummaryResponse, UploadResponse

__all__ = [
    "APIModel",
    "DetectResponse",
    "EntityResponse",
    "EntityTypeResponse",
    "ImportSummaryResponse",
    "OrganizationResponse",
    "RelationshipResponse",
    "RelationshipTypeResponse",
    "TargetResponse",
    "UploadResponse",
]
