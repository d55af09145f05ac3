from __future__ import annotations

import unittest

from app.domain.column_roles import ColumnRole
from app.validators.mapping_validator import (
    DATE_UNMAPPED_MESSAGE,
    DIMENSION_AMBIGUOUS_MESSAGE,
    DIMENSION_UNMAPPED_MESSAGE,
    REVENUE_UNMAPPED_MESSAGE,
    ColumnMappingError,
    ColumnMappingValidator,
)


class TestColumnMappingValidator(unittest.TestCase):
    def setUp(self) -> None:
        self.validator = ColumnMappingValidator()
        self.headers = ("Week Start", "Location", "Revenue", "Target", "Notes")

    def test_accepts_minimal_valid_mapping(self) -> None:
        resolved = self.validator.validate(
            mapping={
                "Week Start": "date",
                "Location": "dimension",
                "Revenue": "revenue",
                "Target": "expected",
                "Notes": "skip",
            },
            source_headers=self.headers,
        )

        self.assertEqual(resolved["Location"], ColumnRole.DIMENSION)
        self.assertEqual(resolved["Notes"], ColumnRole.SKIP)

    def test_revenue_rule_is_reported_first(self) -> None:
        with self.assertRaises(ColumnMappingError) as ctx:
            self.validator.validate(
                mapping={"Week Start": "custom", "Location": "custom", "Revenue": "custom"},
                source_headers=self.headers,
            )

        self.assertEqual(ctx.exception.message, REVENUE_UNMAPPED_MESSAGE)
        self.assertEqual(
            ctx.exception.codes,
            ("revenue_unmapped", "dimension_unmapped", "date_unmapped"),
        )

    def test_missing_dimension_message(self) -> None:
        with self.assertRaises(ColumnMappingError) as ctx:
            self.validator.validate(
                mapping={"Week Start": "date", "Location": "location", "Revenue": "revenue"},
                source_headers=self.headers,
            )

        self.assertEqual(str(ctx.exception), DIMENSION_UNMAPPED_MESSAGE)

    def test_two_dimension_columns_are_rejected(self) -> None:
        with self.assertRaises(ColumnMappingError) as ctx:
            self.validator.validate(
                mapping={
                    "Week Start": "date",
                    "Location": "dimension",
                    "Notes": "dimension",
                    "Revenue": "revenue",
                },
                source_headers=self.headers,
            )

        self.assertEqual(ctx.exception.message, DIMENSION_AMBIGUOUS_MESSAGE)
        detail = ctx.exception.errors[0]
        self.assertEqual(detail.code, "dimension_ambiguous")
        self.assertEqual(detail.context, {"columns": ["Location", "Notes"]})

    def test_missing_date_message(self) -> None:
        with self.assertRaises(ColumnMappingError) as ctx:
            self.validator.validate(
                mapping={"Location": "dimension", "Revenue": "revenue"},
                source_headers=self.headers,
            )

        self.assertEqual(ctx.exception.message, DATE_UNMAPPED_MESSAGE)

    def test_structural_errors_follow_rule_errors(self) -> None:
        errors = self.validator.collect_errors(
            mapping={
                "Week Start": "date",
                "Location": "dimension",
                "Revenue": "revenue",
                "Target": "bogus",
                "Missing": "cost",
            },
            source_headers=self.headers,
        )

        self.assertEqual([error.code for error in errors], ["invalid_role", "unknown_source_column"])
        self.assertEqual(errors[0].source_column, "Target")
        self.assertEqual(errors[1].source_column, "Missing")

    def test_to_dict_lists_every_error(self) -> None:
        with self.assertRaises(ColumnMappingError) as ctx:
            self.validator.validate(mapping={}, source_headers=self.headers)

        payload = ctx.exception.to_dict()
        self.assertEqual(payload["message"], REVENUE_UNMAPPED_MESSAGE)
        self.assertEqual(len(payload["errors"]), 3)


if __name__ == "__main__":
    unittest.main()
