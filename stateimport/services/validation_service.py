"""
stateimport/services/validation_service.py

Business-rule validation over an attempt's staged rows.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from dataclasses import dataclass, field

from db.models.csv_import import CSVImportStaging, ValidationStatus
from db.models.import_log import ImportLogLevel
from db.repositories.catalog_repository import CatalogRepository
from db.repositories.data_point_repository import DataPointRepository
from db.repositories.import_log_repository import ImportLogRepository
from db.repositories.staging_repository import StagingRepository
from db.repositories.types import FactKey, ImportLogCreate
from stateimport.domain.csv_import import ValidationIssue, ValidationStats
from stateimport.failure_codes import FailureCategory
from stateimport.validators.staged_row_validator import RowCheckContext, StagedRowValidator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationRun:
    """
    Raw output of one validation pass, before any status change.
    """

    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)
    stats: ValidationStats | None = None

    @property
    def passed(self) -> bool:
        return self.stats is not None and self.stats.error_rows == 0 and self.stats.valid_rows > 0


class ValidationService:
    """
    Checks rows staged ``valid`` in chunks. Rows rejected at staging are
    counted but not re-checked; row validation status is never changed.

    The caller controls commit/rollback.
    """

    def __init__(
        self,
        *,
        catalog: CatalogRepository,
        staging_repository: StagingRepository,
        data_point_repository: DataPointRepository,
        import_log_repository: ImportLogRepository,
        row_validator: StagedRowValidator,
        chunk_size: int,
        max_validation_errors: int,
        log_validation_errors: bool,
    ) -> None:
        self._catalog = catalog
        self._staging = staging_repository
        self._data_points = data_point_repository
        self._logs = import_log_repository
        self._row_validator = row_validator
        self._chunk_size = max(1, chunk_size)
        self._max_validation_errors = max(1, max_validation_errors)
        self._log_validation_errors = log_validation_errors

    def run(self, csv_import_id: int) -> ValidationRun:
        started = time.perf_counter()

        errors: list[ValidationIssue] = []
        warnings: list[ValidationIssue] = []
        breakdown: Counter[str] = Counter()
        seen_keys: dict[FactKey, int] = {}

        total_rows = 0
        invalid_rows = 0
        valid_rows = 0
        error_rows = 0
        warning_count = 0

        for chunk in self._staging.iter_row_chunks(csv_import_id, chunk_size=self._chunk_size):
            total_rows += len(chunk)
            candidates: list[CSVImportStaging] = []
            for row in chunk:
                if row.validation_status == ValidationStatus.VALID.value:
                    candidates.append(row)
                else:
                    invalid_rows += 1
                    for payload in row.validation_errors or []:
                        breakdown[str(payload.get("failure_category", FailureCategory.DATA_TYPE.value))] += 1
            if not candidates:
                continue

            context = self._build_context(candidates, seen_keys)
            for row in candidates:
                row_errors, row_warnings = self._row_validator.check(row, context)
                if row_errors:
                    error_rows += 1
                    for issue in row_errors:
                        breakdown[issue.failure_category.value] += 1
                        self._capture(errors, issue, level=logging.WARNING)
                else:
                    valid_rows += 1
                warning_count += len(row_warnings)
                for issue in row_warnings:
                    self._capture(warnings, issue, level=logging.INFO)

        if total_rows - invalid_rows == 0:
            error = ValidationIssue(
                message="No valid rows were staged for this import",
                failure_category=FailureCategory.MISSING_REQUIRED,
            )
            breakdown[error.failure_category.value] += 1
            errors.append(error)

        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        stats = ValidationStats(
            total_rows=total_rows,
            valid_rows=valid_rows,
            error_rows=error_rows,
            invalid_rows=invalid_rows,
            warning_count=warning_count,
            failure_breakdown=dict(breakdown),
            validation_time_ms=elapsed_ms,
        )

        self._logs.add_many(
            csv_import_id,
            [self._to_log(issue, ImportLogLevel.VALIDATION_ERROR) for issue in errors]
            + [self._to_log(issue, ImportLogLevel.WARNING) for issue in warnings],
        )
        logger.info(
            "Validated staged rows import_id=%s total=%s valid=%s errors=%s invalid=%s warnings=%s elapsed_ms=%s",
            csv_import_id,
            total_rows,
            valid_rows,
            error_rows,
            invalid_rows,
            warning_count,
            elapsed_ms,
        )
        return ValidationRun(errors=errors, warnings=warnings, stats=stats)

    def _build_context(
        self,
        rows: list[CSVImportStaging],
        seen_keys: dict[FactKey, int],
    ) -> RowCheckContext:
        keys = {
            (row.state_id, row.statistic_id, row.year)
            for row in rows
            if row.state_id is not None and row.statistic_id is not None and row.year is not None
        }
        return RowCheckContext(
            active_facts=self._data_points.find_active_facts(keys),
            known_state_ids=self._catalog.existing_state_ids(
                row.state_id for row in rows if row.state_id is not None
            ),
            known_statistic_ids=self._catalog.existing_statistic_ids(
                row.statistic_id for row in rows if row.statistic_id is not None
            ),
            seen_keys=seen_keys,
        )

    def _capture(self, bucket: list[ValidationIssue], issue: ValidationIssue, *, level: int) -> None:
        if len(bucket) < self._max_validation_errors:
            bucket.append(issue)
        if self._log_validation_errors:
            logger.log(
                level,
                "CSV validation issue row=%s field=%s category=%s message=%s",
                issue.row_number,
                issue.field_name,
                issue.failure_category.value,
                issue.message,
            )

    @staticmethod
    def _to_log(issue: ValidationIssue, level: ImportLogLevel) -> ImportLogCreate:
        return ImportLogCreate(
            log_level=level,
            failure_category=issue.failure_category.value,
            message=issue.message,
            row_number=issue.row_number,
            field_name=issue.field_name,
            field_value=issue.field_value,
        )
