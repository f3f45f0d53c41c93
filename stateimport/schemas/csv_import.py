"""
stateimport/schemas/csv_import.py

Response schemas for CSV import endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from stateimport.domain.csv_import import (
    CSVImportResult,
    DuplicateCheckResult,
    FailedRow,
    PromotionResult,
    RollbackResult,
    ValidationIssue,
    ValidationResult,
)


class ValidationIssueResponse(BaseModel):
    """
    API response model for one error or warning.
    """

    row_number: int | None = Field(default=None, ge=1)
    field_name: str | None = None
    field_value: str | None = None
    failure_category: str
    message: str

    @classmethod
    def from_domain(cls, issue: ValidationIssue) -> "ValidationIssueResponse":
        return cls(**issue.to_dict())


class StagingStatsResponse(BaseModel):
    total_rows: int = Field(..., ge=0)
    valid_rows: int = Field(..., ge=0)
    invalid_rows: int = Field(..., ge=0)


class CSVImportResultResponse(BaseModel):
    success: bool
    message: str
    import_id: int | None = None
    duplicate_of: int | None = None
    errors: list[ValidationIssueResponse] = Field(default_factory=list)
    stats: StagingStatsResponse | None = None

    @classmethod
    def from_domain(cls, result: CSVImportResult) -> "CSVImportResultResponse":
        return cls(
            success=result.success,
            message=result.message,
            import_id=result.import_id,
            duplicate_of=result.duplicate_of,
            errors=[ValidationIssueResponse.from_domain(issue) for issue in result.errors],
            stats=StagingStatsResponse(**result.stats.to_dict()) if result.stats else None,
        )


class ValidationStatsResponse(BaseModel):
    total_rows: int
    valid_rows: int
    error_rows: int
    invalid_rows: int
    warning_count: int
    failure_breakdown: dict[str, int] = Field(default_factory=dict)
    validation_time_ms: float


class ValidationResultResponse(BaseModel):
    is_valid: bool
    message: str
    errors: list[ValidationIssueResponse] = Field(default_factory=list)
    warnings: list[ValidationIssueResponse] = Field(default_factory=list)
    stats: ValidationStatsResponse | None = None

    @classmethod
    def from_domain(cls, result: ValidationResult) -> "ValidationResultResponse":
        return cls(
            is_valid=result.is_valid,
            message=result.message,
            errors=[ValidationIssueResponse.from_domain(issue) for issue in result.errors],
            warnings=[ValidationIssueResponse.from_domain(issue) for issue in result.warnings],
            stats=ValidationStatsResponse(**result.stats.to_dict()) if result.stats else None,
        )


class PromotionResultResponse(BaseModel):
    success: bool
    message: str
    published_rows: int = 0
    inserted_rows: int = 0
    updated_rows: int = 0
    import_session_id: int | None = None
    errors: list[ValidationIssueResponse] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, result: PromotionResult) -> "PromotionResultResponse":
        return cls(
            success=result.success,
            message=result.message,
            published_rows=result.published_rows,
            inserted_rows=result.inserted_rows,
            updated_rows=result.updated_rows,
            import_session_id=result.import_session_id,
            errors=[ValidationIssueResponse.from_domain(issue) for issue in result.errors],
        )


class RollbackResultResponse(BaseModel):
    success: bool
    message: str
    rolled_back_rows: int = 0
    errors: list[ValidationIssueResponse] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, result: RollbackResult) -> "RollbackResultResponse":
        return cls(
            success=result.success,
            message=result.message,
            rolled_back_rows=result.rolled_back_rows,
            errors=[ValidationIssueResponse.from_domain(issue) for issue in result.errors],
        )


class DuplicateCheckResponse(BaseModel):
    is_duplicate: bool
    can_retry: bool
    reason: str | None = None
    original_import_id: int | None = None
    original_uploaded_at: datetime | None = None
    original_status: str | None = None

    @classmethod
    def from_domain(cls, result: DuplicateCheckResult) -> "DuplicateCheckResponse":
        return cls(
            is_duplicate=result.is_duplicate,
            can_retry=result.can_retry,
            reason=result.reason,
            original_import_id=result.original_import_id,
            original_uploaded_at=result.original_uploaded_at,
            original_status=result.original_status,
        )


class DuplicateCheckRequest(BaseModel):
    fingerprint: str = Field(..., min_length=64, max_length=64)


class CSVImportResponse(BaseModel):
    """
    API response model for one import attempt record.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    filename: str
    file_size: int
    file_hash: str
    template_id: int | None = None
    status: str
    uploaded_by: int
    uploaded_at: datetime
    validated_at: datetime | None = None
    published_at: datetime | None = None
    published_by: int | None = None
    rolled_back_at: datetime | None = None
    rolled_back_by: int | None = None
    error_message: str | None = None
    duplicate_of: int | None = None
    import_session_id: int | None = None
    total_rows: int | None = None
    valid_rows: int | None = None
    error_rows: int | None = None
    validation_summary: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = Field(default=None, validation_alias="metadata_json")


class FailedRowResponse(BaseModel):
    row_number: int
    raw_data: dict[str, Any]
    errors: list[ValidationIssueResponse]

    @classmethod
    def from_domain(cls, row: FailedRow) -> "FailedRowResponse":
        return cls(
            row_number=row.row_number,
            raw_data=row.raw_data,
            errors=[ValidationIssueResponse.from_domain(issue) for issue in row.errors],
        )


class ImportLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    log_level: str
    row_number: int | None = None
    field_name: str | None = None
    field_value: str | None = None
    failure_category: str
    message: str
    created_at: datetime | None = None


class CSVTemplateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    kind: str
    description: str | None = None
    expected_headers: list[str]
    sample_data: str | None = None
