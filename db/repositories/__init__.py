"""
Repository layer exports.
"""

from db.repositories.errors import (
    DuplicateRecordError,
    OrganizationInactiveError,
    OrganizationNotFoundError,
    RecordNotFoundError,
    RepositoryError,
)
from db.repositories.ontology_repository import OntologyRepository
from db.repositories.organization_repository import OrganizationRepository
from db.repositories.target_repository import ActionTargetRepository
from db.repositories.upload_repository import UploadRepository

__all__ = [
    "ActionTargetRepository",
    "DuplicateRecordError",
    "OntologyRepository",
    "OrganizationInactiveError",
    "OrganizationNotFoundError",
    "OrganizationRepository",
    "RecordNotFoundError",
    "RepositoryError",
    "UploadRepository",
]
