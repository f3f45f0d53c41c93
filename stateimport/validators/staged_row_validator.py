"""
stateimport/validators/staged_row_validator.py

Business-rule checks over rows that were staged as valid.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Collection, Mapping

from db.models.csv_import import CSVImportStaging
from db.models.data_point import DataPoint
from db.repositories.types import FactKey
from stateimport.domain.csv_import import ValidationIssue
from stateimport.failure_codes import FailureCategory


@dataclass
class RowCheckContext:
    """
    Per-chunk lookups plus state carried across chunks of one attempt.
    """

    active_facts: Mapping[FactKey, DataPoint]
    known_state_ids: Collection[int]
    known_statistic_ids: Collection[int]
    seen_keys: dict[FactKey, int] = field(default_factory=dict)


class StagedRowValidator:
    """
    Produces hard errors (broken references) and warnings (overwrites,
    implausible values, in-file duplicates) for one staged row.
    """

    def __init__(self, *, implausible_value_threshold: float) -> None:
        self._threshold = implausible_value_threshold

    def check(
        self,
        row: CSVImportStaging,
        context: RowCheckContext,
    ) -> tuple[list[ValidationIssue], list[ValidationIssue]]:
        errors = self._reference_errors(row, context)
        if errors:
            return errors, []
        if row.year is None or row.value is None:
            return [
                ValidationIssue(
                    message="Staged row is missing its year or value",
                    failure_category=FailureCategory.MISSING_REQUIRED,
                    row_number=row.row_number,
                    field_name="Year" if row.year is None else "Value",
                )
            ], []

        warnings: list[ValidationIssue] = []
        key: FactKey = (int(row.state_id), int(row.statistic_id), int(row.year))

        first_row = context.seen_keys.get(key)
        if first_row is None:
            context.seen_keys[key] = row.row_number
        else:
            warnings.append(
                ValidationIssue(
                    message=(
                        f"Duplicate entry for {row.state_name} / {row.statistic_name} / {row.year}; "
                        f"row {first_row} has the same key and this row will win"
                    ),
                    failure_category=FailureCategory.BUSINESS_RULE,
                    row_number=row.row_number,
                    field_name="State",
                    field_value=row.state_name,
                )
            )

        existing = context.active_facts.get(key)
        if existing is not None:
            warnings.append(
                ValidationIssue(
                    message=(
                        f"Data already exists for {row.state_name} {row.year} "
                        f"(current value {existing.value:g}); it will be overwritten"
                    ),
                    failure_category=FailureCategory.BUSINESS_RULE,
                    row_number=row.row_number,
                    field_name="Value",
                    field_value=_format_value(row.value),
                )
            )

        if row.value < 0:
            warnings.append(
                ValidationIssue(
                    message="Negative value",
                    failure_category=FailureCategory.BUSINESS_RULE,
                    row_number=row.row_number,
                    field_name="Value",
                    field_value=_format_value(row.value),
                )
            )
        elif row.value > self._threshold:
            warnings.append(
                ValidationIssue(
                    message="Unusually large value",
                    failure_category=FailureCategory.BUSINESS_RULE,
                    row_number=row.row_number,
                    field_name="Value",
                    field_value=_format_value(row.value),
                )
            )
        return [], warnings

    def _reference_errors(
        self,
        row: CSVImportStaging,
        context: RowCheckContext,
    ) -> list[ValidationIssue]:
        errors: list[ValidationIssue] = []
        if row.state_id is None or row.state_id not in context.known_state_ids:
            errors.append(
                ValidationIssue(
                    message=f'State "{row.state_name or ""}" has no valid reference',
                    failure_category=FailureCategory.INVALID_REFERENCE,
                    row_number=row.row_number,
                    field_name="State",
                    field_value=row.state_name,
                )
            )
        if row.statistic_id is None or row.statistic_id not in context.known_statistic_ids:
            errors.append(
                ValidationIssue(
                    message=f'Statistic "{row.statistic_name or ""}" has no valid reference',
                    failure_category=FailureCategory.INVALID_REFERENCE,
                    row_number=row.row_number,
                    field_name="Measure",
                    field_value=row.statistic_name,
                )
            )
        return errors


def _format_value(value: float) -> str:
    return f"{value:g}"
