"""
app/validators/mapping_validator.py

Validation for column role mappings.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from app.domain.column_roles import ColumnRole, parse_role

REVENUE_UNMAPPED_MESSAGE = "At least one column must be mapped to Revenue."
DIMENSION_UNMAPPED_MESSAGE = "Exactly one column must be mapped to Dimension (Group by)."
DIMENSION_AMBIGUOUS_MESSAGE = (
    "Only one column can be mapped to Dimension. Please map the others to a different role."
)
DATE_UNMAPPED_MESSAGE = "At least one column must be mapped to Date for weekly grouping."


@dataclass(frozen=True)
class MappingErrorDetail:
    """
    Structured mapping error detail.
    """

    code: str
    message: str
    role: str | None = None
    source_column: str | None = None
    context: dict[str, Any] | None = None


class ColumnMappingError(ValueError):
    """
    Raised when a column mapping cannot be used for import.
    """

    def __init__(self, *, message: str, errors: Sequence[MappingErrorDetail]) -> None:
        super().__init__(message)
        self.message = message
        self.errors = tuple(errors)

    @property
    def codes(self) -> tuple[str, ...]:
        return tuple(error.code for error in self.errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "errors": [
                {
                    "code": error.code,
                    "message": error.message,
                    "role": error.role,
                    "source_column": error.source_column,
                    "context": error.context,
                }
                for error in self.errors
            ],
        }


class ColumnMappingValidator:
    """
    Validates a header -> role mapping against the import cardinality rules.

    Rules are checked in a fixed order (revenue, dimension, date) and the
    raised error's message is the first violated rule's message.
    """

    def validate(
        self,
        *,
        mapping: Mapping[str, str],
        source_headers: Sequence[str],
    ) -> dict[str, ColumnRole]:
        """
        Validate mapping and return it with parsed roles, or raise ColumnMappingError.
        """

        errors = self.collect_errors(mapping=mapping, source_headers=source_headers)
        if errors:
            raise ColumnMappingError(message=errors[0].message, errors=errors)
        return {header: ColumnRole(role) for header, role in mapping.items()}

    def collect_errors(
        self,
        *,
        mapping: Mapping[str, str],
        source_headers: Sequence[str],
    ) -> list[MappingErrorDetail]:
        """
        Return every problem with the mapping, rule violations first.
        """

        structural: list[MappingErrorDetail] = []
        headers_set = set(source_headers)
        roles: dict[str, ColumnRole] = {}

        for header, raw_role in mapping.items():
            if header not in headers_set:
                structural.append(
                    MappingErrorDetail(
                        code="unknown_source_column",
                        message="Mapped column does not exist in the upload headers.",
                        role=str(raw_role),
                        source_column=header,
                    )
                )
                continue
            role = parse_role(str(raw_role))
            if role is None:
                structural.append(
                    MappingErrorDetail(
                        code="invalid_role",
                        message=f"Unknown column role '{raw_role}'.",
                        role=str(raw_role),
                        source_column=header,
                        context={"allowed_roles": [item.value for item in ColumnRole]},
                    )
                )
                continue
            roles[header] = role

        return self._rule_errors(roles) + structural

    def _rule_errors(self, roles: Mapping[str, ColumnRole]) -> list[MappingErrorDetail]:
        errors: list[MappingErrorDetail] = []

        def columns_with(role: ColumnRole) -> list[str]:
            return [header for header, assigned in roles.items() if assigned == role]

        if not columns_with(ColumnRole.REVENUE):
            errors.append(
                MappingErrorDetail(
                    code="revenue_unmapped",
                    message=REVENUE_UNMAPPED_MESSAGE,
                    role=ColumnRole.REVENUE.value,
                )
            )

        dimension_columns = columns_with(ColumnRole.DIMENSION)
        if not dimension_columns:
            errors.append(
                MappingErrorDetail(
                    code="dimension_unmapped",
                    message=DIMENSION_UNMAPPED_MESSAGE,
                    role=ColumnRole.DIMENSION.value,
                )
            )
        elif len(dimension_columns) > 1:
            errors.append(
                MappingErrorDetail(
                    code="dimension_ambiguous",
                    message=DIMENSION_AMBIGUOUS_MESSAGE,
                    role=ColumnRole.DIMENSION.value,
                    context={"columns": dimension_columns},
                )
            )

        if not columns_with(ColumnRole.DATE):
            errors.append(
                MappingErrorDetail(
                    code="date_unmapped",
                    message=DATE_UNMAPPED_MESSAGE,
                    role=ColumnRole.DATE.value,
                )
            )

        return errors
