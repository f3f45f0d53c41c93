"""
stateimport/validators/row_validator.py

Row-level presence and type parsing for staged CSV rows.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from stateimport.domain.csv_import import MappedRow, MultiCategoryRow, ValidationIssue
from stateimport.failure_codes import FailureCategory

MIN_YEAR = 1800
MAX_YEAR = 2200


@dataclass(frozen=True)
class ParsedFields:
    """
    Typed values extracted from one mapped row.
    """

    state_name: str
    year: int
    value: float
    category_name: str | None = None
    statistic_name: str | None = None


class CSVRowValidator:
    """
    Checks required fields and parses year/value for one mapped row.
    """

    def validate(self, row: MappedRow) -> tuple[ParsedFields | None, list[ValidationIssue]]:
        errors: list[ValidationIssue] = []

        state_name = self._required(row.state, field_name="State", row_number=row.row_number, errors=errors)
        category_name: str | None = None
        statistic_name: str | None = None
        if isinstance(row, MultiCategoryRow):
            category_name = self._required(
                row.category, field_name="Category", row_number=row.row_number, errors=errors
            )
            statistic_name = self._required(
                row.measure, field_name="Measure", row_number=row.row_number, errors=errors
            )

        year = self._parse_year(row.year, row_number=row.row_number, errors=errors)
        value = self._parse_value(row.value, row_number=row.row_number, errors=errors)

        if errors or year is None or value is None:
            return None, errors
        return (
            ParsedFields(
                state_name=state_name,
                year=year,
                value=value,
                category_name=category_name,
                statistic_name=statistic_name,
            ),
            [],
        )

    def _required(
        self,
        value: str,
        *,
        field_name: str,
        row_number: int,
        errors: list[ValidationIssue],
    ) -> str:
        stripped = value.strip()
        if not stripped:
            errors.append(
                ValidationIssue(
                    message=f"Missing required value for {field_name}",
                    failure_category=FailureCategory.MISSING_REQUIRED,
                    row_number=row_number,
                    field_name=field_name,
                )
            )
        return stripped

    def _parse_year(
        self,
        raw: str,
        *,
        row_number: int,
        errors: list[ValidationIssue],
    ) -> int | None:
        stripped = raw.strip()
        if not stripped:
            errors.append(
                ValidationIssue(
                    message="Missing required value for Year",
                    failure_category=FailureCategory.MISSING_REQUIRED,
                    row_number=row_number,
                    field_name="Year",
                )
            )
            return None
        try:
            year = int(stripped)
        except ValueError:
            errors.append(
                ValidationIssue(
                    message=f'Year "{stripped}" is not a whole number',
                    failure_category=FailureCategory.DATA_TYPE,
                    row_number=row_number,
                    field_name="Year",
                    field_value=stripped,
                )
            )
            return None
        if not MIN_YEAR <= year <= MAX_YEAR:
            errors.append(
                ValidationIssue(
                    message=f"Year {year} is outside {MIN_YEAR}-{MAX_YEAR}",
                    failure_category=FailureCategory.DATA_TYPE,
                    row_number=row_number,
                    field_name="Year",
                    field_value=stripped,
                )
            )
            return None
        return year

    def _parse_value(
        self,
        raw: str,
        *,
        row_number: int,
        errors: list[ValidationIssue],
    ) -> float | None:
        stripped = raw.strip()
        if not stripped:
            errors.append(
                ValidationIssue(
                    message="Missing required value for Value",
                    failure_category=FailureCategory.MISSING_REQUIRED,
                    row_number=row_number,
                    field_name="Value",
                )
            )
            return None

        # Thousands separators are common in spreadsheet exports.
        candidate = stripped.replace(",", "")
        try:
            parsed = float(Decimal(candidate))
        except (InvalidOperation, ValueError):
            parsed = None
        if parsed is None or math.isnan(parsed) or math.isinf(parsed):
            errors.append(
                ValidationIssue(
                    message=f'Value "{stripped}" is not a number',
                    failure_category=FailureCategory.DATA_TYPE,
                    row_number=row_number,
                    field_name="Value",
                    field_value=stripped,
                )
            )
            return None
        return parsed
