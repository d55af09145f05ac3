"""
app/validators package marker.
"""

from app.validators.mapping_validator import ColumnMappingError, ColumnMappingValidator, MappingErrorDetail
from app.validators.row_validator import MetricRowValidator, parse_date, parse_number

__all__ = [
    "ColumnMappingError",
    "ColumnMappingValidator",
    "MappingErrorDetail",
    "MetricRowValidator",
    "parse_date",
    "parse_number",
]
