"""
app/domain package marker.
"""

from app.domain.column_roles import ColumnRole, DataType, suggest_column_roles
from app.domain.gaps import GapMatrixResult, MetricPoint, SeverityBand, severity_band, week_start
from app.domain.ingestion import (
    ImportRequest,
    ImportSummary,
    NormalizedMetricRow,
    OntologyConfig,
    ProjectionSummary,
    RelationshipColumn,
    RowValidationError,
)

__all__ = [
    "ColumnRole",
    "DataType",
    "GapMatrixResult",
    "ImportRequest",
    "ImportSummary",
    "MetricPoint",
    "NormalizedMetricRow",
    "OntologyConfig",
    "ProjectionSummary",
    "RelationshipColumn",
    "RowValidationError",
    "SeverityBand",
    "severity_band",
    "suggest_column_roles",
    "week_start",
]
