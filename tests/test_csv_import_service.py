"""
tests/test_csv_import_service.py

End-to-end tests for the CSV import pipeline against an in-memory
database: upload and staging, validation, promotion, rollback, retry and
duplicate protection.

Coverage
--------
- Upload rejections that never create an attempt
- Multi-category and single-category staging
- Validation errors, warnings and status transitions
- Promotion upserts and the import session it creates
- Rollback scope and cache eviction
- Retry and duplicate fingerprints
- Database failures leave consistent state
"""

from __future__ import annotations

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from db.models.csv_import import CSVImport, CSVImportStaging, ImportStatus
from db.models.data_point import DataPoint, ImportSession
from db.models.import_log import ImportLog, ImportLogLevel
from db.repositories.csv_import_repository import CSVImportRepository
from db.repositories.data_point_repository import DataPointRepository
from db.repositories.staging_repository import StagingRepository
from stateimport.failure_codes import FailureCategory
from stateimport.services.aggregation_service import AggregationService

HEADER = "State,Year,Category,Measure,Value"


def multi_csv(*rows: str) -> bytes:
    return ("\n".join([HEADER, *rows]) + "\n").encode("utf-8")


def single_csv(*rows: str) -> bytes:
    return ("\n".join(["State,Year,Value", *rows]) + "\n").encode("utf-8")


def upload(service, db, content: bytes, template_id: int, **kwargs):
    kwargs.setdefault("filename", "upload.csv")
    kwargs.setdefault("uploaded_by", 1)
    return service.upload_and_stage(db=db, content=content, template_id=template_id, **kwargs)


def publish(service, db, content: bytes, template_id: int, **kwargs):
    staged = upload(service, db, content, template_id, **kwargs)
    assert staged.success, staged.message
    validation = service.validate(db=db, import_id=staged.import_id)
    assert validation.is_valid, validation.message
    promotion = service.promote(db=db, import_id=staged.import_id, actor_id=7)
    assert promotion.success, promotion.message
    return staged.import_id, promotion


def attempt_count(db) -> int:
    return int(db.scalar(select(func.count(CSVImport.id))))


def active_value(db, state_id: int, statistic_id: int, year: int) -> float | None:
    stmt = (
        select(DataPoint.value)
        .join(ImportSession, ImportSession.id == DataPoint.import_session_id)
        .where(
            ImportSession.is_active.is_(True),
            DataPoint.state_id == state_id,
            DataPoint.statistic_id == statistic_id,
            DataPoint.year == year,
        )
    )
    return db.scalar(stmt)


GDP_ROWS = ("California,2023,Economy,GDP,100", "Texas,2023,Economy,GDP,200")


# ---------------------------------------------------------------------------
# Upload and staging
# ---------------------------------------------------------------------------


class TestUploadAndStage:
    def test_stages_every_row(self, db, catalog, import_service) -> None:
        result = upload(import_service, db, multi_csv(*GDP_ROWS), catalog.multi_template)

        assert result.success is True
        assert result.import_id is not None
        assert result.stats.to_dict() == {"total_rows": 2, "valid_rows": 2, "invalid_rows": 0}
        assert result.duplicate_of is None

        attempt = import_service.get_import(db=db, import_id=result.import_id)
        assert attempt.import_status is ImportStatus.STAGED
        assert attempt.total_rows == 2
        assert attempt.valid_rows == 2
        assert attempt.error_rows == 0
        assert attempt.name == "upload.csv"
        assert len(attempt.file_hash) == 64

        rows = StagingRepository(db).list_rows(result.import_id)
        assert [row.row_number for row in rows] == [2, 3]
        assert {row.state_id for row in rows} == {catalog.california, catalog.texas}
        assert {row.statistic_id for row in rows} == {catalog.gdp}
        assert rows[0].raw_data["State"] == "California"

    def test_unknown_state_marks_row_invalid(self, db, catalog, import_service) -> None:
        result = upload(
            import_service,
            db,
            multi_csv("California,2023,Economy,GDP,100", "Texass,2023,Economy,GDP,200"),
            catalog.multi_template,
        )

        assert result.success is True
        assert result.stats.valid_rows == 1
        assert result.stats.invalid_rows == 1
        assert len(result.errors) == 1
        assert "not found" in result.errors[0].message
        assert result.errors[0].row_number == 3
        assert result.errors[0].failure_category is FailureCategory.INVALID_REFERENCE

        failed = import_service.list_failed_rows(db=db, import_id=result.import_id)
        assert [row.row_number for row in failed] == [3]
        assert failed[0].raw_data["State"] == "Texass"
        assert "not found" in failed[0].errors[0].message

        logs = import_service.list_import_logs(
            db=db,
            import_id=result.import_id,
            level=ImportLogLevel.VALIDATION_ERROR,
        )
        assert [log.row_number for log in logs] == [3]

    def test_unknown_category_and_statistic_are_reported(self, db, catalog, import_service) -> None:
        result = upload(
            import_service,
            db,
            multi_csv("California,2023,Econ,GDP,1", "Texas,2023,Economy,Population,2"),
            catalog.multi_template,
        )

        messages = [issue.message for issue in result.errors]
        assert 'Category "Econ" not found' in messages
        assert 'Statistic "Population" not found in category "Economy"' in messages
        assert result.stats.invalid_rows == 2

    def test_state_abbreviations_and_case_resolve(self, db, catalog, import_service) -> None:
        result = upload(
            import_service,
            db,
            multi_csv("ca,2023,economy,gdp,1", "TX,2023,ECONOMY,Gdp,2"),
            catalog.multi_template,
        )
        assert result.stats.valid_rows == 2

    def test_blank_rows_are_skipped(self, db, catalog, import_service) -> None:
        result = upload(
            import_service,
            db,
            multi_csv("California,2023,Economy,GDP,1", ",,,,", "Texas,2023,Economy,GDP,2"),
            catalog.multi_template,
        )

        assert result.stats.total_rows == 2
        rows = StagingRepository(db).list_rows(result.import_id)
        assert [row.row_number for row in rows] == [2, 4]

    def test_legacy_export_template(self, db, catalog, import_service) -> None:
        content = (
            "ID,State,Year,Category,Measure Name,Value,state_id,category_id,measure_id\n"
            "1,California,2022,Economy,GDP,3400000,99,99,99\n"
        ).encode("utf-8")

        result = upload(import_service, db, content, catalog.legacy_template)

        assert result.success is True
        row = StagingRepository(db).list_rows(result.import_id)[0]
        assert row.state_id == catalog.california
        assert row.statistic_id == catalog.gdp
        assert row.value == 3400000.0

    def test_single_category_uses_metadata(self, db, catalog, import_service) -> None:
        result = upload(
            import_service,
            db,
            single_csv("California,2023,90.5", "Texas,2023,85"),
            catalog.single_template,
            metadata={"categoryName": "Education", "statisticName": "Graduation Rate", "source": "survey"},
        )

        assert result.success is True
        assert result.stats.valid_rows == 2
        attempt = import_service.get_import(db=db, import_id=result.import_id)
        assert attempt.metadata_json["statisticId"] == catalog.graduation_rate
        assert attempt.metadata_json["categoryId"] == catalog.education
        assert attempt.metadata_json["source"] == "survey"
        rows = StagingRepository(db).list_rows(result.import_id)
        assert {row.statistic_id for row in rows} == {catalog.graduation_rate}
        assert {row.category_name for row in rows} == {"Education"}

    def test_single_category_without_metadata_is_rejected(self, db, catalog, import_service) -> None:
        result = upload(import_service, db, single_csv("California,2023,1"), catalog.single_template)

        assert result.success is False
        assert result.import_id is None
        assert result.errors[0].failure_category is FailureCategory.MISSING_REQUIRED
        assert attempt_count(db) == 0

    def test_single_category_unknown_statistic_is_rejected(self, db, catalog, import_service) -> None:
        result = upload(
            import_service,
            db,
            single_csv("California,2023,1"),
            catalog.single_template,
            metadata={"category": "Education", "statistic": "GDP"},
        )

        assert result.success is False
        assert result.message == 'Statistic "GDP" not found in category "Education"'
        assert attempt_count(db) == 0

    @pytest.mark.parametrize(
        ("content", "message"),
        [
            (b"", "Uploaded file is empty."),
            (b"\xff\xfe\x00bad", "CSV must be UTF-8 encoded."),
            (f"{HEADER}\n\n".encode("utf-8"), "CSV file contains no data rows."),
        ],
    )
    def test_unreadable_files_are_rejected_before_any_attempt(
        self, db, catalog, import_service, content: bytes, message: str
    ) -> None:
        result = upload(import_service, db, content, catalog.multi_template)

        assert result.success is False
        assert result.message == message
        assert result.import_id is None
        assert attempt_count(db) == 0

    def test_oversized_file_is_rejected(self, db, catalog, import_service, import_settings) -> None:
        filler = "California,2023,Economy,GDP,1\n" * (import_settings.max_file_size_bytes // 20)
        result = upload(import_service, db, (HEADER + "\n" + filler).encode("utf-8"), catalog.multi_template)

        assert result.success is False
        assert "maximum size" in result.message
        assert attempt_count(db) == 0

    def test_header_mismatch_lists_every_problem(self, db, catalog, import_service) -> None:
        content = b"State,Year,Category,Value,Notes\nCalifornia,2023,Economy,1,x\n"

        result = upload(import_service, db, content, catalog.multi_template)

        assert result.success is False
        assert result.import_id is None
        assert [issue.message for issue in result.errors] == [
            'Missing required column "Measure"',
            'Unexpected column "Notes"',
        ]
        assert attempt_count(db) == 0

    def test_unknown_template_is_rejected(self, db, catalog, import_service) -> None:
        result = upload(import_service, db, multi_csv(*GDP_ROWS), 4242)

        assert result.success is False
        assert result.message == "Template not found"
        assert attempt_count(db) == 0

    def test_staging_database_error_marks_attempt_failed(self, db, catalog, import_service, monkeypatch) -> None:
        def boom(self, rows, *, batch_size):
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr(StagingRepository, "bulk_insert", boom)

        result = upload(import_service, db, multi_csv(*GDP_ROWS), catalog.multi_template)

        assert result.success is False
        assert result.import_id is not None
        assert result.errors[0].failure_category is FailureCategory.DATABASE_ERROR
        attempt = import_service.get_import(db=db, import_id=result.import_id)
        assert attempt.import_status is ImportStatus.FAILED
        logs = import_service.list_import_logs(
            db=db,
            import_id=result.import_id,
            level=ImportLogLevel.SYSTEM_ERROR,
        )
        assert len(logs) == 1


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidate:
    def test_clean_import_validates(self, db, catalog, import_service) -> None:
        staged = upload(import_service, db, multi_csv(*GDP_ROWS), catalog.multi_template)

        result = import_service.validate(db=db, import_id=staged.import_id)

        assert result.is_valid is True
        assert result.errors == []
        assert result.stats.total_rows == 2
        assert result.stats.valid_rows == 2
        assert result.stats.error_rows == 0
        attempt = import_service.get_import(db=db, import_id=staged.import_id)
        assert attempt.import_status is ImportStatus.VALIDATED
        assert attempt.validated_at is not None
        assert attempt.validation_summary["valid_rows"] == 2

    def test_invalid_staged_rows_do_not_fail_validation(self, db, catalog, import_service) -> None:
        staged = upload(
            import_service,
            db,
            multi_csv("California,2023,Economy,GDP,100", "Texass,2023,Economy,GDP,200"),
            catalog.multi_template,
        )

        result = import_service.validate(db=db, import_id=staged.import_id)

        assert result.is_valid is True
        assert result.stats.invalid_rows == 1
        assert result.stats.valid_rows == 1
        assert result.stats.failure_breakdown == {"invalid_reference": 1}

    def test_nothing_valid_fails_validation(self, db, catalog, import_service) -> None:
        staged = upload(import_service, db, multi_csv("Nowhere,2023,Economy,GDP,1"), catalog.multi_template)

        result = import_service.validate(db=db, import_id=staged.import_id)

        assert result.is_valid is False
        assert [issue.message for issue in result.errors] == ["No valid rows were staged for this import"]
        attempt = import_service.get_import(db=db, import_id=staged.import_id)
        assert attempt.import_status is ImportStatus.VALIDATION_FAILED
        assert attempt.error_message

    def test_warnings_do_not_block(self, db, catalog, import_service) -> None:
        publish(import_service, db, multi_csv("California,2023,Economy,GDP,100"), catalog.multi_template)
        staged = upload(
            import_service,
            db,
            multi_csv(
                "California,2023,Economy,GDP,150",
                "Texas,2023,Economy,GDP,-5",
                "New York,2023,Economy,GDP,2000000",
                "Texas,2023,Economy,GDP,7",
            ),
            catalog.multi_template,
        )

        result = import_service.validate(db=db, import_id=staged.import_id)

        assert result.is_valid is True
        messages = [issue.message for issue in result.warnings]
        assert any("will be overwritten" in message for message in messages)
        assert "Negative value" in messages
        assert "Unusually large value" in messages
        assert any(message.startswith("Duplicate entry") for message in messages)
        assert result.stats.warning_count == 4
        assert all(issue.failure_category is FailureCategory.BUSINESS_RULE for issue in result.warnings)

        warning_logs = import_service.list_import_logs(
            db=db,
            import_id=staged.import_id,
            level=ImportLogLevel.WARNING,
        )
        assert len(warning_logs) == 4

    def test_revalidating_a_validated_import_is_allowed(self, db, catalog, import_service) -> None:
        staged = upload(import_service, db, multi_csv(*GDP_ROWS), catalog.multi_template)
        import_service.validate(db=db, import_id=staged.import_id)

        assert import_service.validate(db=db, import_id=staged.import_id).is_valid is True

    def test_published_import_cannot_be_validated(self, db, catalog, import_service) -> None:
        import_id, _ = publish(import_service, db, multi_csv(*GDP_ROWS), catalog.multi_template)

        result = import_service.validate(db=db, import_id=import_id)

        assert result.is_valid is False
        assert "current status: published" in result.message

    def test_unknown_import(self, db, catalog, import_service) -> None:
        assert import_service.validate(db=db, import_id=999).message == "Import not found"


# ---------------------------------------------------------------------------
# Promotion and rollback
# ---------------------------------------------------------------------------


class TestPromoteAndRollback:
    def test_end_to_end_national_average(self, db, catalog, import_service, cache, aggregation_settings) -> None:
        import_id, promotion = publish(import_service, db, multi_csv(*GDP_ROWS), catalog.multi_template)

        assert promotion.published_rows == 2
        assert promotion.inserted_rows == 2
        assert promotion.updated_rows == 0

        attempt = import_service.get_import(db=db, import_id=import_id)
        assert attempt.import_status is ImportStatus.PUBLISHED
        assert attempt.published_by == 7
        assert attempt.import_session_id == promotion.import_session_id

        session = DataPointRepository(db).get_session(promotion.import_session_id)
        assert session.name == f"CSV Import #{import_id}: upload.csv"
        assert session.record_count == 2
        assert session.data_year == 2023

        average = AggregationService(db, cache=cache, settings=aggregation_settings).national_average(
            catalog.gdp, 2023
        )
        assert average.value == 150
        assert average.state_count == 2

        assert StagingRepository(db).list_promotable(import_id) == []

    def test_promote_requires_validation(self, db, catalog, import_service) -> None:
        staged = upload(import_service, db, multi_csv(*GDP_ROWS), catalog.multi_template)

        result = import_service.promote(db=db, import_id=staged.import_id, actor_id=1)

        assert result.success is False
        assert result.message == "Import must be validated before publishing (current status: staged)"

    def test_existing_fact_is_updated_in_place(self, db, catalog, import_service) -> None:
        _, first = publish(import_service, db, multi_csv("California,2023,Economy,GDP,100"), catalog.multi_template)
        _, second = publish(
            import_service,
            db,
            multi_csv(
                "California,2023,Economy,GDP,150",
                "Texas,2023,Economy,GDP,-5",
                "Texas,2023,Economy,GDP,7",
            ),
            catalog.multi_template,
        )

        assert second.published_rows == 3
        assert second.updated_rows == 1
        assert second.inserted_rows == 1
        assert active_value(db, catalog.california, catalog.gdp, 2023) == 150
        assert active_value(db, catalog.texas, catalog.gdp, 2023) == 7
        assert DataPointRepository(db).count_for_session(first.import_session_id) == 1
        assert DataPointRepository(db).count_for_session(second.import_session_id) == 1

    def test_rollback_removes_only_the_session_facts(self, db, catalog, import_service) -> None:
        publish(import_service, db, multi_csv("California,2023,Economy,GDP,100"), catalog.multi_template)
        second_id, _ = publish(
            import_service,
            db,
            multi_csv("California,2023,Economy,GDP,150", "Texas,2023,Economy,GDP,7"),
            catalog.multi_template,
        )

        result = import_service.rollback(db=db, import_id=second_id, actor_id=9)

        assert result.success is True
        assert result.rolled_back_rows == 1
        assert active_value(db, catalog.texas, catalog.gdp, 2023) is None
        # Updated in place, so it belongs to the first session and survives.
        assert active_value(db, catalog.california, catalog.gdp, 2023) == 150

        attempt = import_service.get_import(db=db, import_id=second_id)
        assert attempt.import_status is ImportStatus.ROLLED_BACK
        assert attempt.rolled_back_by == 9
        assert "Rolled back by user 9" in attempt.error_message
        assert DataPointRepository(db).get_session(attempt.import_session_id).is_active is False

    def test_rollback_evicts_cached_average(self, db, catalog, import_service, cache, aggregation_settings) -> None:
        publish(import_service, db, multi_csv("California,2023,Economy,GDP,100"), catalog.multi_template)
        second_id, _ = publish(import_service, db, multi_csv("Texas,2023,Economy,GDP,300"), catalog.multi_template)
        aggregation = AggregationService(db, cache=cache, settings=aggregation_settings)
        assert aggregation.national_average(catalog.gdp, 2023).value == 200

        import_service.rollback(db=db, import_id=second_id, actor_id=1)

        assert aggregation.national_average(catalog.gdp, 2023).value == 100

    def test_rollback_requires_published(self, db, catalog, import_service) -> None:
        staged = upload(import_service, db, multi_csv(*GDP_ROWS), catalog.multi_template)

        result = import_service.rollback(db=db, import_id=staged.import_id, actor_id=1)

        assert result.success is False
        assert result.message.startswith("Cannot rollback non-published session")

    def test_rolled_back_import_cannot_be_rolled_back_again(self, db, catalog, import_service) -> None:
        import_id, _ = publish(import_service, db, multi_csv(*GDP_ROWS), catalog.multi_template)
        import_service.rollback(db=db, import_id=import_id, actor_id=1)

        assert import_service.rollback(db=db, import_id=import_id, actor_id=1).success is False

    def test_promotion_database_error_keeps_validated_status(self, db, catalog, import_service, monkeypatch) -> None:
        staged = upload(import_service, db, multi_csv(*GDP_ROWS), catalog.multi_template)
        import_service.validate(db=db, import_id=staged.import_id)

        def boom(self, facts, *, batch_size):
            raise SQLAlchemyError("connection lost")

        monkeypatch.setattr(DataPointRepository, "insert_facts", boom)

        result = import_service.promote(db=db, import_id=staged.import_id, actor_id=1)

        assert result.success is False
        assert result.errors[0].failure_category is FailureCategory.DATABASE_ERROR
        attempt = import_service.get_import(db=db, import_id=staged.import_id)
        assert attempt.import_status is ImportStatus.VALIDATED
        assert int(db.scalar(select(func.count(ImportSession.id)))) == 0
        processed = db.scalar(
            select(func.count(CSVImportStaging.id)).where(CSVImportStaging.is_processed.is_(True))
        )
        assert processed == 0
        system_errors = db.scalars(
            select(ImportLog).where(ImportLog.log_level == ImportLogLevel.SYSTEM_ERROR.value)
        ).all()
        assert len(system_errors) == 1


# ---------------------------------------------------------------------------
# Duplicates and retry
# ---------------------------------------------------------------------------


class TestDuplicatesAndRetry:
    def test_published_content_cannot_be_uploaded_again(self, db, catalog, import_service) -> None:
        import_id, _ = publish(import_service, db, multi_csv(*GDP_ROWS), catalog.multi_template)
        reupload = multi_csv(*GDP_ROWS).replace(b"\n", b"\r\n")

        result = upload(import_service, db, reupload, catalog.multi_template, filename="again.csv")

        assert result.success is False
        assert result.duplicate_of == import_id
        assert f"#{import_id}" in result.message
        assert attempt_count(db) == 1

        check = import_service.check_duplicate(
            db=db,
            fingerprint=import_service.get_import(db=db, import_id=import_id).file_hash,
        )
        assert check.is_duplicate is True
        assert check.can_retry is False

    def test_failed_content_can_be_uploaded_again(self, db, catalog, import_service) -> None:
        content = multi_csv("Nowhere,2023,Economy,GDP,1")
        first = upload(import_service, db, content, catalog.multi_template)
        import_service.validate(db=db, import_id=first.import_id)

        second = upload(import_service, db, content, catalog.multi_template)

        assert second.success is True
        assert second.duplicate_of == first.import_id

    def test_rolled_back_content_can_be_uploaded_again(self, db, catalog, import_service) -> None:
        import_id, _ = publish(import_service, db, multi_csv(*GDP_ROWS), catalog.multi_template)
        import_service.rollback(db=db, import_id=import_id, actor_id=1)

        result = upload(import_service, db, multi_csv(*GDP_ROWS), catalog.multi_template)

        assert result.success is True
        assert result.duplicate_of == import_id

    def test_retry_creates_new_attempt(self, db, catalog, import_service) -> None:
        original = upload(
            import_service,
            db,
            multi_csv("Nowhere,2023,Economy,GDP,1"),
            catalog.multi_template,
            filename="retry.csv",
            metadata={"source": "census"},
        )
        import_service.validate(db=db, import_id=original.import_id)

        result = import_service.retry(db=db, import_id=original.import_id, actor_id=3)

        assert result.success is True
        assert result.import_id != original.import_id
        assert result.duplicate_of == original.import_id
        assert result.stats.total_rows == 1

        retried = import_service.get_import(db=db, import_id=result.import_id)
        source = import_service.get_import(db=db, import_id=original.import_id)
        assert retried.filename == "retry.csv"
        assert retried.file_hash == source.file_hash
        assert retried.metadata_json == {"source": "census"}
        assert retried.uploaded_by == 3
        assert source.import_status is ImportStatus.VALIDATION_FAILED

    def test_retry_picks_up_catalog_fixes(self, db, catalog, import_service) -> None:
        from db.models.catalog import State

        original = upload(import_service, db, multi_csv("Ohio,2023,Economy,GDP,5"), catalog.multi_template)
        import_service.validate(db=db, import_id=original.import_id)
        db.add(State(name="Ohio", abbreviation="OH", is_active=True))
        db.commit()

        result = import_service.retry(db=db, import_id=original.import_id, actor_id=1)

        assert result.stats.valid_rows == 1
        assert import_service.validate(db=db, import_id=result.import_id).is_valid is True

    def test_retry_requires_failed_status(self, db, catalog, import_service) -> None:
        staged = upload(import_service, db, multi_csv(*GDP_ROWS), catalog.multi_template)

        result = import_service.retry(db=db, import_id=staged.import_id, actor_id=1)

        assert result.success is False
        assert "current status: staged" in result.message

    def test_retry_after_staging_database_error_restages_upload(
        self, db, catalog, import_service, monkeypatch
    ) -> None:
        def boom(self, rows, *, batch_size):
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr(StagingRepository, "bulk_insert", boom)
        failed = upload(import_service, db, multi_csv(*GDP_ROWS), catalog.multi_template)
        monkeypatch.undo()
        assert failed.success is False

        result = import_service.retry(db=db, import_id=failed.import_id, actor_id=2)

        assert result.success is True, result.message
        assert result.duplicate_of == failed.import_id
        assert result.stats.total_rows == 2
        assert result.stats.valid_rows == 2
        assert attempt_count(db) == 2
        retried = import_service.get_import(db=db, import_id=result.import_id)
        assert retried.import_status is ImportStatus.STAGED
        assert retried.source_content == multi_csv(*GDP_ROWS).decode("utf-8")
        original = import_service.get_import(db=db, import_id=failed.import_id)
        assert original.import_status is ImportStatus.FAILED

    def test_retry_without_recoverable_rows_still_records_attempt(self, db, catalog, import_service) -> None:
        repository = CSVImportRepository(db)
        original = repository.create_attempt(
            name="legacy.csv",
            filename="legacy.csv",
            file_size=10,
            file_hash="a" * 64,
            template_id=catalog.multi_template,
            uploaded_by=1,
        )
        repository.mark_failed(import_id=original.id, error_message="Failed to stage CSV rows")
        db.commit()

        result = import_service.retry(db=db, import_id=original.id, actor_id=4)

        assert result.success is False
        assert result.import_id is not None
        assert result.import_id != original.id
        assert result.duplicate_of == original.id
        assert result.errors[0].failure_category is FailureCategory.CSV_PARSING
        retried = import_service.get_import(db=db, import_id=result.import_id)
        assert retried.import_status is ImportStatus.FAILED
        assert retried.duplicate_of == original.id
        assert "upload the file again" in retried.error_message

    def test_list_imports_filters_by_status(self, db, catalog, import_service) -> None:
        publish(import_service, db, multi_csv(*GDP_ROWS), catalog.multi_template)
        upload(import_service, db, multi_csv("Texas,2020,Economy,GDP,1"), catalog.multi_template)

        assert len(import_service.list_imports(db=db)) == 2
        published = import_service.list_imports(db=db, status=ImportStatus.PUBLISHED)
        assert [attempt.import_status for attempt in published] == [ImportStatus.PUBLISHED]
