"""
stateimport/domain/csv_import.py

Domain models used by the CSV import pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Union

from stateimport.failure_codes import FailureCategory


@dataclass(frozen=True)
class MultiCategoryRow:
    """
    Row whose category and statistic come from the CSV itself.

    Produced by the multi-category and legacy-export templates.
    """

    row_number: int
    state: str
    year: str
    category: str
    measure: str
    value: str
    raw: dict[str, str]
    kind: Literal["multi"] = "multi"


@dataclass(frozen=True)
class SingleCategoryRow:
    """
    Row whose category and statistic come from the attempt metadata.
    """

    row_number: int
    state: str
    year: str
    value: str
    raw: dict[str, str]
    kind: Literal["single"] = "single"


MappedRow = Union[MultiCategoryRow, SingleCategoryRow]


@dataclass(frozen=True)
class SingleCategoryContext:
    """
    Category/statistic resolved once per attempt for single-category uploads.
    """

    category_name: str
    statistic_name: str
    category_id: int | None = None
    statistic_id: int | None = None


@dataclass(frozen=True)
class ValidationIssue:
    """
    One error or warning detail, row-scoped when ``row_number`` is set.
    """

    message: str
    failure_category: FailureCategory
    row_number: int | None = None
    field_name: str | None = None
    field_value: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "row_number": self.row_number,
            "field_name": self.field_name,
            "field_value": self.field_value,
            "failure_category": self.failure_category.value,
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "ValidationIssue":
        return cls(
            message=str(payload.get("message", "")),
            failure_category=FailureCategory(payload.get("failure_category", FailureCategory.DATA_TYPE.value)),
            row_number=payload.get("row_number"),
            field_name=payload.get("field_name"),
            field_value=payload.get("field_value"),
        )


@dataclass(frozen=True)
class HeaderValidationResult:
    ok: bool
    missing: list[str] = field(default_factory=list)
    unexpected: list[str] = field(default_factory=list)

    def to_issues(self) -> list[ValidationIssue]:
        issues = [
            ValidationIssue(
                message=f'Missing required column "{header}"',
                failure_category=FailureCategory.CSV_PARSING,
                field_name=header,
            )
            for header in self.missing
        ]
        issues.extend(
            ValidationIssue(
                message=f'Unexpected column "{header}"',
                failure_category=FailureCategory.CSV_PARSING,
                field_name=header,
            )
            for header in self.unexpected
        )
        return issues


@dataclass(frozen=True)
class StagingStats:
    total_rows: int
    valid_rows: int
    invalid_rows: int

    def to_dict(self) -> dict[str, int]:
        return {
            "total_rows": self.total_rows,
            "valid_rows": self.valid_rows,
            "invalid_rows": self.invalid_rows,
        }


@dataclass(frozen=True)
class CSVImportResult:
    """
    Outcome of an upload or retry. Expected failures are reported here
    rather than raised.
    """

    success: bool
    message: str
    import_id: int | None = None
    errors: list[ValidationIssue] = field(default_factory=list)
    stats: StagingStats | None = None
    duplicate_of: int | None = None


@dataclass(frozen=True)
class ValidationStats:
    total_rows: int
    valid_rows: int
    error_rows: int
    invalid_rows: int
    warning_count: int
    failure_breakdown: dict[str, int]
    validation_time_ms: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_rows": self.total_rows,
            "valid_rows": self.valid_rows,
            "error_rows": self.error_rows,
            "invalid_rows": self.invalid_rows,
            "warning_count": self.warning_count,
            "failure_breakdown": dict(self.failure_breakdown),
            "validation_time_ms": self.validation_time_ms,
        }


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    message: str
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)
    stats: ValidationStats | None = None


@dataclass(frozen=True)
class PromotionResult:
    success: bool
    message: str
    published_rows: int = 0
    inserted_rows: int = 0
    updated_rows: int = 0
    import_session_id: int | None = None
    errors: list[ValidationIssue] = field(default_factory=list)


@dataclass(frozen=True)
class RollbackResult:
    success: bool
    message: str
    rolled_back_rows: int = 0
    errors: list[ValidationIssue] = field(default_factory=list)


@dataclass(frozen=True)
class DuplicateCheckResult:
    is_duplicate: bool
    can_retry: bool
    reason: str | None = None
    original_import_id: int | None = None
    original_uploaded_at: datetime | None = None
    original_status: str | None = None


@dataclass(frozen=True)
class FailedRow:
    """
    A staged row rejected at staging time with its decoded reasons.
    """

    row_number: int
    raw_data: dict[str, Any]
    errors: list[ValidationIssue]
