"""
app/services package marker.
"""

from app.services.gap_engine import GapEngine, GapQuery
from app.services.gap_service import GapQueryService, get_gap_query_service
from app.services.ontology_projector import OntologyProjector
from app.services.ontology_service import OntologyService
from app.services.target_service import (
    ActionTargetService,
    TargetNotFoundError,
    TargetPersistenceError,
    TargetValidationError,
    get_action_target_service,
)
from app.services.upload_service import (
    UploadFormatError,
    UploadIngestionService,
    UploadNotFoundError,
    UploadPersistenceError,
    get_upload_ingestion_service,
)

__all__ = [
    "ActionTargetService",
    "GapEngine",
    "GapQuery",
    "GapQueryService",
    "OntologyProjector",
    "OntologyService",
    "TargetNotFoundError",
    "TargetPersistenceError",
    "TargetValidationError",
    "UploadFormatError",
    "UploadIngestionService",
    "UploadNotFoundError",
    "UploadPersistenceError",
    "get_action_target_service",
    "get_gap_query_service",
    "get_upload_ingestion_service",
]
