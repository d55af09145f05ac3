"""
app/mappers package marker.
"""

from app.mappers.column_mapper import (
    ColumnMapper,
    MappingResolution,
    NormalizationResult,
    normalize_column_mapping,
)

__all__ = [
    "ColumnMapper",
    "MappingResolution",
    "NormalizationResult",
    "normalize_column_mapping",
]
