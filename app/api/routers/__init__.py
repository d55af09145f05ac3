"""
app/api/routers package marker.
"""

from app.api.routers.gap_router import router as gap_router
from app.api.routers.ontology_router import router as ontology_router
from app.api.routers.organization_router import router as organization_router
from app.api.routers.target_router import router as target_router
from app.api.routers.upload_router import router as upload_router

__all__ = [
    "gap_router",
    "ontology_router",
    "organization_router",
    "target_router",
    "upload_router",
]
