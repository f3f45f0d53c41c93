"""
stateimport/services/staging_service.py

CSV parsing and the staging loader: maps rows per template, resolves
names against the reference catalog and bulk-inserts one staged row per
input row.
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Sequence

from db.models.csv_import import TemplateKind, ValidationStatus
from db.models.import_log import ImportLogLevel
from db.repositories.catalog_repository import ReferenceCatalog
from db.repositories.import_log_repository import ImportLogRepository
from db.repositories.staging_repository import StagingRepository
from db.repositories.types import ImportLogCreate, StagedRowCreate
from stateimport.domain.csv_import import (
    MappedRow,
    MultiCategoryRow,
    SingleCategoryContext,
    StagingStats,
    ValidationIssue,
)
from stateimport.failure_codes import FailureCategory
from stateimport.mappers.row_mapper import RowMapper
from stateimport.validators.row_validator import CSVRowValidator, ParsedFields

logger = logging.getLogger(__name__)

RawRow = tuple[int, Mapping[str | None, object]]


class CSVParsingError(ValueError):
    """
    Raised when the uploaded content cannot be read as CSV.
    """


@dataclass(frozen=True)
class ParsedCSV:
    headers: list[str]
    rows: list[RawRow]


def parse_csv(text: str) -> ParsedCSV:
    """
    Read CSV text into headers and ``(row_number, row)`` pairs.

    Row numbers follow the file: the header is row 1. Rows whose cells are
    all blank are dropped.
    """

    reader = csv.DictReader(io.StringIO(text.replace("\ufeff", ""), newline=""))
    try:
        headers = [header.strip() for header in (reader.fieldnames or [])]
        if not any(headers):
            raise CSVParsingError("CSV header row is missing.")
        rows: list[RawRow] = []
        for row_number, raw_row in enumerate(reader, start=2):
            if RowMapper.is_completely_empty_row(raw_row):
                continue
            rows.append((row_number, raw_row))
    except csv.Error as exc:
        raise CSVParsingError(f"Invalid CSV format: {exc}") from exc
    return ParsedCSV(headers=headers, rows=rows)


@dataclass(frozen=True)
class StagingOutcome:
    stats: StagingStats
    errors: list[ValidationIssue] = field(default_factory=list)


class _NameResolver:
    """
    Memoizes catalog lookups so each distinct name is queried once per run.
    """

    def __init__(self, catalog: ReferenceCatalog) -> None:
        self._catalog = catalog
        self._states: dict[str, int | None] = {}
        self._categories: dict[str, int | None] = {}
        self._statistics: dict[tuple[int, str], int | None] = {}

    def state_id(self, name: str) -> int | None:
        key = name.strip().lower()
        if key not in self._states:
            state = self._catalog.find_state(name)
            self._states[key] = state.id if state is not None else None
        return self._states[key]

    def category_id(self, name: str) -> int | None:
        key = name.strip().lower()
        if key not in self._categories:
            category = self._catalog.find_category(name)
            self._categories[key] = category.id if category is not None else None
        return self._categories[key]

    def statistic_id(self, category_id: int, name: str) -> int | None:
        key = (category_id, name.strip().lower())
        if key not in self._statistics:
            statistic = self._catalog.find_statistic(category_id=category_id, name=name)
            self._statistics[key] = statistic.id if statistic is not None else None
        return self._statistics[key]


class StagingService:
    """
    Stages one attempt's rows. Rows are written in bulk after every row has
    been mapped and resolved; nothing is written to production here.

    The caller controls commit/rollback.
    """

    def __init__(
        self,
        *,
        catalog: ReferenceCatalog,
        staging_repository: StagingRepository,
        import_log_repository: ImportLogRepository,
        batch_size: int,
        max_validation_errors: int,
        log_validation_errors: bool,
        mapper: RowMapper | None = None,
        validator: CSVRowValidator | None = None,
    ) -> None:
        self._catalog = catalog
        self._staging = staging_repository
        self._logs = import_log_repository
        self._batch_size = max(1, batch_size)
        self._max_validation_errors = max(1, max_validation_errors)
        self._log_validation_errors = log_validation_errors
        self._mapper = mapper or RowMapper()
        self._validator = validator or CSVRowValidator()

    def stage(
        self,
        *,
        csv_import_id: int,
        headers: Sequence[str],
        rows: Iterable[RawRow],
        kind: TemplateKind,
        single_category: SingleCategoryContext | None = None,
    ) -> StagingOutcome:
        if kind is TemplateKind.SINGLE_CATEGORY and single_category is None:
            raise ValueError("single-category staging requires category context")

        mapping = self._mapper.resolve_columns(headers, kind)
        resolver = _NameResolver(self._catalog)

        staged: list[StagedRowCreate] = []
        captured: list[ValidationIssue] = []
        valid_rows = 0

        for row_number, raw_row in rows:
            mapped = self._mapper.map_row(raw_row=raw_row, row_number=row_number, mapping=mapping)
            record, issues = self._stage_row(
                csv_import_id=csv_import_id,
                row=mapped,
                resolver=resolver,
                single_category=single_category,
            )
            staged.append(record)
            if issues:
                for issue in issues:
                    self._record_error(captured, issue)
            else:
                valid_rows += 1

        self._staging.bulk_insert(staged, batch_size=self._batch_size)
        self._logs.add_many(
            csv_import_id,
            [
                ImportLogCreate(
                    log_level=ImportLogLevel.VALIDATION_ERROR,
                    failure_category=issue.failure_category.value,
                    message=issue.message,
                    row_number=issue.row_number,
                    field_name=issue.field_name,
                    field_value=issue.field_value,
                )
                for issue in captured
            ],
        )

        stats = StagingStats(
            total_rows=len(staged),
            valid_rows=valid_rows,
            invalid_rows=len(staged) - valid_rows,
        )
        logger.info(
            "Staged CSV rows import_id=%s total=%s valid=%s invalid=%s",
            csv_import_id,
            stats.total_rows,
            stats.valid_rows,
            stats.invalid_rows,
        )
        return StagingOutcome(stats=stats, errors=captured)

    def _stage_row(
        self,
        *,
        csv_import_id: int,
        row: MappedRow,
        resolver: _NameResolver,
        single_category: SingleCategoryContext | None,
    ) -> tuple[StagedRowCreate, list[ValidationIssue]]:
        if isinstance(row, MultiCategoryRow):
            category_name = row.category or None
            statistic_name = row.measure or None
        else:
            category_name = single_category.category_name if single_category else None
            statistic_name = single_category.statistic_name if single_category else None

        parsed, issues = self._validator.validate(row)
        if parsed is None:
            return (
                StagedRowCreate(
                    csv_import_id=csv_import_id,
                    row_number=row.row_number,
                    raw_data=row.raw,
                    validation_status=ValidationStatus.INVALID,
                    state_name=row.state or None,
                    category_name=category_name,
                    statistic_name=statistic_name,
                    validation_errors=[issue.to_dict() for issue in issues],
                ),
                issues,
            )

        state_id, statistic_id, issues = self._resolve(
            row_number=row.row_number,
            parsed=parsed,
            resolver=resolver,
            single_category=single_category,
        )
        status = ValidationStatus.INVALID if issues else ValidationStatus.VALID
        return (
            StagedRowCreate(
                csv_import_id=csv_import_id,
                row_number=row.row_number,
                raw_data=row.raw,
                validation_status=status,
                state_name=parsed.state_name,
                state_id=state_id,
                year=parsed.year,
                category_name=category_name,
                statistic_name=statistic_name,
                statistic_id=statistic_id,
                value=parsed.value,
                validation_errors=[issue.to_dict() for issue in issues] or None,
            ),
            issues,
        )

    def _resolve(
        self,
        *,
        row_number: int,
        parsed: ParsedFields,
        resolver: _NameResolver,
        single_category: SingleCategoryContext | None,
    ) -> tuple[int | None, int | None, list[ValidationIssue]]:
        issues: list[ValidationIssue] = []

        state_id = resolver.state_id(parsed.state_name)
        if state_id is None:
            issues.append(
                ValidationIssue(
                    message=f'State "{parsed.state_name}" not found',
                    failure_category=FailureCategory.INVALID_REFERENCE,
                    row_number=row_number,
                    field_name="State",
                    field_value=parsed.state_name,
                )
            )

        if single_category is not None:
            return state_id, single_category.statistic_id, issues

        category_name = parsed.category_name or ""
        statistic_name = parsed.statistic_name or ""
        statistic_id: int | None = None
        category_id = resolver.category_id(category_name)
        if category_id is None:
            issues.append(
                ValidationIssue(
                    message=f'Category "{category_name}" not found',
                    failure_category=FailureCategory.INVALID_REFERENCE,
                    row_number=row_number,
                    field_name="Category",
                    field_value=category_name,
                )
            )
        else:
            statistic_id = resolver.statistic_id(category_id, statistic_name)
            if statistic_id is None:
                issues.append(
                    ValidationIssue(
                        message=f'Statistic "{statistic_name}" not found in category "{category_name}"',
                        failure_category=FailureCategory.INVALID_REFERENCE,
                        row_number=row_number,
                        field_name="Measure",
                        field_value=statistic_name,
                    )
                )
        return state_id, statistic_id, issues

    def _record_error(self, captured: list[ValidationIssue], issue: ValidationIssue) -> None:
        if len(captured) < self._max_validation_errors:
            captured.append(issue)
        if self._log_validation_errors:
            logger.warning(
                "CSV staging error row=%s field=%s category=%s message=%s",
                issue.row_number,
                issue.field_name,
                issue.failure_category.value,
                issue.message,
            )
