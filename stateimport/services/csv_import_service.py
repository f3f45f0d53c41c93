"""
stateimport/services/csv_import_service.py

Service layer for the CSV import pipeline: upload and staging, validation,
promotion, rollback, retry and the read operations around them.

Every operation returns a result object; expected failures (bad template,
unreadable file, duplicate content, wrong status) never raise. Persistence
failures roll the session back, mark the attempt ``failed`` where the
attempt would otherwise be left mid-step, and come back as a
``database_error`` result.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Mapping

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.models.csv_import import (
    RETRYABLE_STATUSES,
    CSVImport,
    CSVImportTemplate,
    ImportStatus,
    TemplateKind,
)
from db.models.import_log import ImportLog, ImportLogLevel
from db.repositories.catalog_repository import CatalogRepository
from db.repositories.csv_import_repository import CSVImportRepository
from db.repositories.data_point_repository import DataPointRepository
from db.repositories.errors import TemplateNotFoundError
from db.repositories.import_log_repository import ImportLogRepository
from db.repositories.national_average_repository import NationalAverageRepository
from db.repositories.staging_repository import StagingRepository
from db.repositories.template_repository import TemplateRepository
from db.repositories.types import ImportLogCreate
from stateimport.config import CSVImportSettings, get_csv_import_settings
from stateimport.domain.csv_import import (
    CSVImportResult,
    DuplicateCheckResult,
    FailedRow,
    PromotionResult,
    RollbackResult,
    SingleCategoryContext,
    ValidationIssue,
    ValidationResult,
)
from stateimport.failure_codes import FailureCategory
from stateimport.services.cache import TTLCache, evict_national_averages
from stateimport.services.fingerprint_service import FingerprintGuard, compute_fingerprint, decode_content
from stateimport.services.promotion_service import PromotionService
from stateimport.services.staging_service import CSVParsingError, RawRow, StagingService, parse_csv
from stateimport.services.template_registry import TemplateRegistry
from stateimport.services.validation_service import ValidationService
from stateimport.validators.staged_row_validator import StagedRowValidator

logger = logging.getLogger(__name__)

CATEGORY_METADATA_KEYS = ("categoryName", "category_name", "category")
STATISTIC_METADATA_KEYS = ("statisticName", "statistic_name", "statistic", "measure")

VALIDATABLE_STATUSES = frozenset({ImportStatus.STAGED, ImportStatus.VALIDATED})


class _UploadRejected(Exception):
    """
    Internal signal carrying a failure result out of upload preparation.
    """

    def __init__(self, result: CSVImportResult) -> None:
        super().__init__(result.message)
        self.result = result


@dataclass
class _Repositories:
    catalog: CatalogRepository
    imports: CSVImportRepository
    templates: TemplateRepository
    staging: StagingRepository
    data_points: DataPointRepository
    averages: NationalAverageRepository
    logs: ImportLogRepository

    @classmethod
    def for_session(cls, db: Session) -> "_Repositories":
        return cls(
            catalog=CatalogRepository(db),
            imports=CSVImportRepository(db),
            templates=TemplateRepository(db),
            staging=StagingRepository(db),
            data_points=DataPointRepository(db),
            averages=NationalAverageRepository(db),
            logs=ImportLogRepository(db),
        )


def _failure(message: str, category: FailureCategory, **kwargs: Any) -> CSVImportResult:
    return CSVImportResult(
        success=False,
        message=message,
        errors=[ValidationIssue(message=message, failure_category=category)],
        **kwargs,
    )


def _database_issue(message: str) -> ValidationIssue:
    return ValidationIssue(message=message, failure_category=FailureCategory.DATABASE_ERROR)


class CSVImportService:
    """
    Coordinates fingerprinting, template resolution, staging, validation,
    promotion, rollback and retry for CSV imports.
    """

    def __init__(
        self,
        *,
        settings: CSVImportSettings,
        cache: TTLCache,
    ) -> None:
        self._settings = settings
        self._cache = cache

    @property
    def max_file_size_bytes(self) -> int:
        return self._settings.max_file_size_bytes

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    def upload_and_stage(
        self,
        *,
        db: Session,
        content: bytes,
        filename: str,
        template_id: int,
        uploaded_by: int,
        metadata: Mapping[str, Any] | None = None,
        name: str | None = None,
        description: str | None = None,
    ) -> CSVImportResult:
        """
        Validate the file shape, guard against duplicate content, create the
        attempt and stage every row.

        Header and shape failures are reported before any attempt record
        exists.
        """

        repos = _Repositories.for_session(db)
        registry = TemplateRegistry(repos.templates)
        metadata_dict = dict(metadata or {})

        try:
            template, text, headers, rows, single_category = self._prepare_upload(
                repos=repos,
                registry=registry,
                content=content,
                template_id=template_id,
                metadata=metadata_dict,
            )
        except _UploadRejected as rejected:
            logger.info("CSV upload rejected filename=%r reason=%s", filename, rejected.result.message)
            return rejected.result

        fingerprint = compute_fingerprint(content)
        if single_category is not None:
            metadata_dict.update(
                {
                    "categoryName": single_category.category_name,
                    "statisticName": single_category.statistic_name,
                    "categoryId": single_category.category_id,
                    "statisticId": single_category.statistic_id,
                }
            )

        try:
            repos.imports.lock_fingerprint(fingerprint)
            duplicate = FingerprintGuard(repos.imports).check(fingerprint)
            if duplicate.is_duplicate and not duplicate.can_retry:
                db.rollback()
                return CSVImportResult(
                    success=False,
                    message=duplicate.reason or "Duplicate file",
                    errors=[
                        ValidationIssue(
                            message=duplicate.reason or "Duplicate file",
                            failure_category=FailureCategory.BUSINESS_RULE,
                        )
                    ],
                    duplicate_of=duplicate.original_import_id,
                )

            attempt = repos.imports.create_attempt(
                name=name or filename,
                description=description,
                filename=filename,
                file_size=len(content),
                file_hash=fingerprint,
                template_id=template.id,
                uploaded_by=uploaded_by,
                metadata=metadata_dict or None,
                duplicate_of=duplicate.original_import_id if duplicate.is_duplicate else None,
                source_content=text,
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to create CSV import attempt filename=%r error=%s", filename, exc)
            return _failure("Failed to record the upload", FailureCategory.DATABASE_ERROR)

        logger.info(
            "Created CSV import attempt import_id=%s filename=%r template=%r duplicate_of=%s",
            attempt.id,
            filename,
            template.name,
            attempt.duplicate_of,
        )
        return self._stage_attempt(
            db=db,
            repos=repos,
            attempt=attempt,
            template=template,
            headers=headers,
            rows=rows,
            single_category=single_category,
        )

    def _prepare_upload(
        self,
        *,
        repos: _Repositories,
        registry: TemplateRegistry,
        content: bytes,
        template_id: int,
        metadata: Mapping[str, Any],
    ) -> tuple[CSVImportTemplate, str, list[str], list[RawRow], SingleCategoryContext | None]:
        if not content:
            raise _UploadRejected(_failure("Uploaded file is empty.", FailureCategory.CSV_PARSING))
        if len(content) > self._settings.max_file_size_bytes:
            raise _UploadRejected(
                _failure(
                    f"Uploaded file exceeds the maximum size of {self._settings.max_file_size_bytes} bytes.",
                    FailureCategory.CSV_PARSING,
                )
            )

        try:
            template = registry.resolve(template_id)
        except TemplateNotFoundError:
            raise _UploadRejected(_failure("Template not found", FailureCategory.INVALID_REFERENCE)) from None

        try:
            text = decode_content(content)
            parsed = parse_csv(text)
        except UnicodeDecodeError:
            raise _UploadRejected(_failure("CSV must be UTF-8 encoded.", FailureCategory.CSV_PARSING)) from None
        except CSVParsingError as exc:
            raise _UploadRejected(_failure(str(exc), FailureCategory.CSV_PARSING)) from None

        header_check = registry.validate_headers(parsed.headers, template)
        if not header_check.ok:
            raise _UploadRejected(
                CSVImportResult(
                    success=False,
                    message=f'CSV headers do not match template "{template.name}"',
                    errors=header_check.to_issues(),
                )
            )
        if not parsed.rows:
            raise _UploadRejected(_failure("CSV file contains no data rows.", FailureCategory.CSV_PARSING))

        single_category = None
        if template.template_kind is TemplateKind.SINGLE_CATEGORY:
            single_category = self._resolve_single_category(repos.catalog, metadata)
        return template, text, parsed.headers, parsed.rows, single_category

    @staticmethod
    def _resolve_single_category(
        catalog: CatalogRepository,
        metadata: Mapping[str, Any],
    ) -> SingleCategoryContext:
        category_name = _first_metadata_value(metadata, CATEGORY_METADATA_KEYS)
        statistic_name = _first_metadata_value(metadata, STATISTIC_METADATA_KEYS)
        if not category_name or not statistic_name:
            raise _UploadRejected(
                _failure(
                    "Single-category imports require categoryName and statisticName metadata.",
                    FailureCategory.MISSING_REQUIRED,
                )
            )

        category = catalog.find_category(category_name)
        if category is None:
            raise _UploadRejected(
                _failure(f'Category "{category_name}" not found', FailureCategory.INVALID_REFERENCE)
            )
        statistic = catalog.find_statistic(category_id=category.id, name=statistic_name)
        if statistic is None:
            raise _UploadRejected(
                _failure(
                    f'Statistic "{statistic_name}" not found in category "{category_name}"',
                    FailureCategory.INVALID_REFERENCE,
                )
            )
        return SingleCategoryContext(
            category_name=category.name,
            statistic_name=statistic.name,
            category_id=category.id,
            statistic_id=statistic.id,
        )

    def _stage_attempt(
        self,
        *,
        db: Session,
        repos: _Repositories,
        attempt: CSVImport,
        template: CSVImportTemplate,
        headers: list[str],
        rows: list[RawRow],
        single_category: SingleCategoryContext | None,
    ) -> CSVImportResult:
        staging = StagingService(
            catalog=repos.catalog,
            staging_repository=repos.staging,
            import_log_repository=repos.logs,
            batch_size=self._settings.batch_size,
            max_validation_errors=self._settings.max_validation_errors,
            log_validation_errors=self._settings.log_validation_errors,
        )
        attempt_id = attempt.id
        started = time.perf_counter()
        try:
            outcome = staging.stage(
                csv_import_id=attempt_id,
                headers=headers,
                rows=rows,
                kind=template.template_kind,
                single_category=single_category,
            )
            repos.imports.mark_staged(
                attempt,
                total_rows=outcome.stats.total_rows,
                valid_rows=outcome.stats.valid_rows,
                error_rows=outcome.stats.invalid_rows,
                processing_time_ms=int((time.perf_counter() - started) * 1000),
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to stage CSV rows import_id=%s error=%s", attempt_id, exc)
            self._mark_failed(db, repos, attempt_id, "Failed to stage CSV rows")
            return CSVImportResult(
                success=False,
                message="Failed to stage CSV rows",
                import_id=attempt_id,
                errors=[_database_issue("Failed to stage CSV rows")],
                duplicate_of=attempt.duplicate_of,
            )

        return CSVImportResult(
            success=True,
            message=(
                f"Staged {outcome.stats.total_rows} rows: "
                f"{outcome.stats.valid_rows} valid, {outcome.stats.invalid_rows} invalid"
            ),
            import_id=attempt_id,
            errors=outcome.errors,
            stats=outcome.stats,
            duplicate_of=attempt.duplicate_of,
        )

    # ------------------------------------------------------------------
    # Validate / promote / rollback
    # ------------------------------------------------------------------

    def validate(self, *, db: Session, import_id: int) -> ValidationResult:
        repos = _Repositories.for_session(db)
        attempt = repos.imports.get(import_id)
        if attempt is None:
            return ValidationResult(is_valid=False, message="Import not found")
        if attempt.import_status not in VALIDATABLE_STATUSES:
            return ValidationResult(
                is_valid=False,
                message=f"Import must be staged before validation (current status: {attempt.status})",
            )

        service = ValidationService(
            catalog=repos.catalog,
            staging_repository=repos.staging,
            data_point_repository=repos.data_points,
            import_log_repository=repos.logs,
            row_validator=StagedRowValidator(
                implausible_value_threshold=self._settings.implausible_value_threshold
            ),
            chunk_size=self._settings.validation_chunk_size,
            max_validation_errors=self._settings.max_validation_errors,
            log_validation_errors=self._settings.log_validation_errors,
        )

        try:
            repos.imports.mark_validating(attempt)
            db.commit()

            run = service.run(import_id)
            stats = run.stats
            if run.passed:
                message = f"Validation passed: {stats.valid_rows} rows ready to publish"
            else:
                message = f"Validation failed: {stats.error_rows} rows with errors"
                if stats.valid_rows == 0 and stats.error_rows == 0:
                    message = "Validation failed: no valid rows to publish"
            repos.imports.mark_validation_result(
                attempt,
                passed=run.passed,
                summary={
                    **stats.to_dict(),
                    "errors": len(run.errors),
                    "warnings": len(run.warnings),
                },
                error_message=None if run.passed else message,
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to validate CSV import import_id=%s error=%s", import_id, exc)
            self._mark_failed(db, repos, import_id, "Validation failed due to a database error")
            return ValidationResult(
                is_valid=False,
                message="Validation failed due to a database error",
                errors=[_database_issue("Validation failed due to a database error")],
            )

        logger.info("Validation finished import_id=%s passed=%s", import_id, run.passed)
        return ValidationResult(
            is_valid=run.passed,
            message=message,
            errors=run.errors,
            warnings=run.warnings,
            stats=stats,
        )

    def promote(self, *, db: Session, import_id: int, actor_id: int) -> PromotionResult:
        """
        Publish a validated attempt. On any persistence failure nothing is
        written and the attempt stays ``validated``.
        """

        repos = _Repositories.for_session(db)
        attempt = repos.imports.get(import_id)
        if attempt is None:
            return PromotionResult(success=False, message="Import not found")

        service = self._promotion_service(repos)
        try:
            outcome = service.promote(attempt, actor_id=actor_id)
            if not outcome.result.success:
                db.rollback()
                return outcome.result
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to promote CSV import import_id=%s error=%s", import_id, exc)
            self._record_system_error(db, repos, import_id, "Promotion failed due to a database error")
            return PromotionResult(
                success=False,
                message="Promotion failed due to a database error",
                errors=[_database_issue("Promotion failed due to a database error")],
            )

        evict_national_averages(self._cache, outcome.affected_averages)
        return outcome.result

    def rollback(self, *, db: Session, import_id: int, actor_id: int) -> RollbackResult:
        """
        Reverse a published attempt. On any persistence failure nothing is
        deleted and the attempt stays ``published``.
        """

        repos = _Repositories.for_session(db)
        attempt = repos.imports.get(import_id)
        if attempt is None:
            return RollbackResult(success=False, message="Import not found")

        service = self._promotion_service(repos)
        try:
            outcome = service.rollback(attempt, actor_id=actor_id)
            if not outcome.result.success:
                db.rollback()
                return outcome.result
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to roll back CSV import import_id=%s error=%s", import_id, exc)
            self._record_system_error(db, repos, import_id, "Rollback failed due to a database error")
            return RollbackResult(
                success=False,
                message="Rollback failed due to a database error",
                errors=[_database_issue("Rollback failed due to a database error")],
            )

        evict_national_averages(self._cache, outcome.affected_averages)
        return outcome.result

    def _promotion_service(self, repos: _Repositories) -> PromotionService:
        return PromotionService(
            import_repository=repos.imports,
            staging_repository=repos.staging,
            data_point_repository=repos.data_points,
            national_average_repository=repos.averages,
            batch_size=self._settings.batch_size,
        )

    # ------------------------------------------------------------------
    # Retry / duplicate check
    # ------------------------------------------------------------------

    def retry(self, *, db: Session, import_id: int, actor_id: int) -> CSVImportResult:
        """
        Re-run a failed attempt as a new attempt that points back at it.

        Rows are re-parsed from the original upload text, or rebuilt from the
        original attempt's staged payloads for attempts stored without it.
        The new attempt is recorded even when neither source yields rows; it
        is then marked ``failed`` straight away. The original attempt is not
        modified.
        """

        repos = _Repositories.for_session(db)
        original = repos.imports.get(import_id)
        if original is None:
            return _failure("Import not found", FailureCategory.INVALID_REFERENCE)
        if original.import_status not in RETRYABLE_STATUSES:
            return _failure(
                f"Only failed imports can be retried (current status: {original.status})",
                FailureCategory.BUSINESS_RULE,
            )
        if original.template_id is None:
            return _failure("Template not found", FailureCategory.INVALID_REFERENCE)

        registry = TemplateRegistry(repos.templates)
        try:
            template = registry.resolve(original.template_id)
        except TemplateNotFoundError:
            return _failure("Template not found", FailureCategory.INVALID_REFERENCE)

        metadata = dict(original.metadata_json or {})
        single_category = None
        if template.template_kind is TemplateKind.SINGLE_CATEGORY:
            try:
                single_category = self._resolve_single_category(repos.catalog, metadata)
            except _UploadRejected as rejected:
                return rejected.result

        source_error: str | None = None
        headers: list[str] = []
        rows: list[RawRow] = []
        try:
            headers, rows = self._rows_for_retry(repos, registry, original, template)
        except CSVParsingError as exc:
            source_error = str(exc)

        try:
            repos.imports.lock_fingerprint(original.file_hash)
            duplicate = FingerprintGuard(repos.imports).check(original.file_hash)
            if duplicate.is_duplicate and not duplicate.can_retry:
                db.rollback()
                return _failure(
                    duplicate.reason or "Duplicate file",
                    FailureCategory.BUSINESS_RULE,
                    duplicate_of=duplicate.original_import_id,
                )

            attempt = repos.imports.create_attempt(
                name=original.name,
                description=original.description,
                filename=original.filename,
                file_size=original.file_size,
                file_hash=original.file_hash,
                template_id=original.template_id,
                uploaded_by=actor_id,
                metadata=metadata or None,
                duplicate_of=original.id,
                source_content=original.source_content,
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to create retry attempt import_id=%s error=%s", import_id, exc)
            return _failure("Failed to record the retry", FailureCategory.DATABASE_ERROR)

        logger.info("Retrying CSV import original_id=%s new_id=%s actor=%s", original.id, attempt.id, actor_id)
        if source_error is not None:
            attempt_id = attempt.id
            self._mark_failed(db, repos, attempt_id, source_error, category=FailureCategory.CSV_PARSING)
            return CSVImportResult(
                success=False,
                message=source_error,
                import_id=attempt_id,
                errors=[ValidationIssue(message=source_error, failure_category=FailureCategory.CSV_PARSING)],
                duplicate_of=original.id,
            )

        return self._stage_attempt(
            db=db,
            repos=repos,
            attempt=attempt,
            template=template,
            headers=headers,
            rows=rows,
            single_category=single_category,
        )

    @staticmethod
    def _rows_for_retry(
        repos: _Repositories,
        registry: TemplateRegistry,
        original: CSVImport,
        template: CSVImportTemplate,
    ) -> tuple[list[str], list[RawRow]]:
        """
        Raises CSVParsingError when no usable rows can be recovered.
        """

        if original.source_content:
            parsed = parse_csv(original.source_content)
            if not registry.validate_headers(parsed.headers, template).ok:
                raise CSVParsingError(f'CSV headers do not match template "{template.name}"')
            if not parsed.rows:
                raise CSVParsingError("CSV file contains no data rows.")
            return parsed.headers, parsed.rows

        staged_rows = repos.staging.list_rows(original.id)
        if not staged_rows:
            raise CSVParsingError("The original import kept no file content or staged rows; upload the file again.")
        rows: list[RawRow] = [(row.row_number, dict(row.raw_data or {})) for row in staged_rows]
        headers = [key for key in rows[0][1].keys() if key != "_extra"]
        return headers, rows

    def check_duplicate(self, *, db: Session, fingerprint: str) -> DuplicateCheckResult:
        return FingerprintGuard(CSVImportRepository(db)).check(fingerprint)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_import(self, *, db: Session, import_id: int) -> CSVImport | None:
        return CSVImportRepository(db).get(import_id)

    def list_imports(
        self,
        *,
        db: Session,
        limit: int = 100,
        status: ImportStatus | None = None,
    ) -> list[CSVImport]:
        return CSVImportRepository(db).list_imports(limit=limit, status=status)

    def list_failed_rows(self, *, db: Session, import_id: int) -> list[FailedRow]:
        rows = StagingRepository(db).list_invalid(import_id, limit=self._settings.max_validation_errors)
        return [
            FailedRow(
                row_number=row.row_number,
                raw_data=dict(row.raw_data or {}),
                errors=[ValidationIssue.from_dict(payload) for payload in row.validation_errors or []],
            )
            for row in rows
        ]

    def list_import_logs(
        self,
        *,
        db: Session,
        import_id: int,
        level: ImportLogLevel | None = None,
    ) -> list[ImportLog]:
        return ImportLogRepository(db).list_for_import(import_id, level=level)

    # ------------------------------------------------------------------
    # Failure bookkeeping
    # ------------------------------------------------------------------

    def _mark_failed(
        self,
        db: Session,
        repos: _Repositories,
        import_id: int,
        message: str,
        *,
        category: FailureCategory = FailureCategory.DATABASE_ERROR,
    ) -> None:
        level = (
            ImportLogLevel.SYSTEM_ERROR
            if category is FailureCategory.DATABASE_ERROR
            else ImportLogLevel.VALIDATION_ERROR
        )
        try:
            repos.imports.mark_failed(import_id=import_id, error_message=message)
            repos.logs.add_many(
                import_id,
                [
                    ImportLogCreate(
                        log_level=level,
                        failure_category=category.value,
                        message=message,
                    )
                ],
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to mark CSV import as failed import_id=%s error=%s", import_id, exc)

    def _record_system_error(self, db: Session, repos: _Repositories, import_id: int, message: str) -> None:
        try:
            repos.logs.add_many(
                import_id,
                [
                    ImportLogCreate(
                        log_level=ImportLogLevel.SYSTEM_ERROR,
                        failure_category=FailureCategory.DATABASE_ERROR.value,
                        message=message,
                    )
                ],
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to record import system error import_id=%s error=%s", import_id, exc)


def _first_metadata_value(metadata: Mapping[str, Any], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = metadata.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


def build_csv_import_service(cache: TTLCache, settings: CSVImportSettings | None = None) -> CSVImportService:
    """
    Build the import service with env-driven settings unless given.
    """

    return CSVImportService(settings=settings or get_csv_import_settings(), cache=cache)
