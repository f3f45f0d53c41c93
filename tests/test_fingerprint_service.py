"""
tests/test_fingerprint_service.py

Content fingerprinting and duplicate-upload classification.
"""

from __future__ import annotations

import pytest

from db.models.csv_import import ImportStatus
from db.repositories.csv_import_repository import CSVImportRepository
from stateimport.services.fingerprint_service import (
    FingerprintGuard,
    compute_fingerprint,
    decode_content,
    normalize_content,
)

CONTENT = b"State,Year,Value\nCalifornia,2023,1\n"


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


class TestFingerprint:
    def test_is_sha256_hex(self) -> None:
        fingerprint = compute_fingerprint(CONTENT)
        assert len(fingerprint) == 64
        int(fingerprint, 16)

    def test_line_endings_do_not_change_fingerprint(self) -> None:
        crlf = CONTENT.replace(b"\n", b"\r\n")
        cr = CONTENT.replace(b"\n", b"\r")
        assert compute_fingerprint(crlf) == compute_fingerprint(CONTENT)
        assert compute_fingerprint(cr) == compute_fingerprint(CONTENT)

    def test_byte_order_mark_is_ignored(self) -> None:
        assert compute_fingerprint(b"\xef\xbb\xbf" + CONTENT) == compute_fingerprint(CONTENT)

    def test_blank_lines_are_ignored(self) -> None:
        padded = b"State,Year,Value\n\n   \nCalifornia,2023,1\n\n"
        assert compute_fingerprint(padded) == compute_fingerprint(CONTENT)

    def test_different_values_differ(self) -> None:
        assert compute_fingerprint(CONTENT) != compute_fingerprint(CONTENT.replace(b"1\n", b"2\n"))

    def test_normalize_content_keeps_non_blank_lines_in_order(self) -> None:
        assert normalize_content("a\r\n\r\nb\rc\n") == "a\nb\nc"

    def test_invalid_utf8_raises(self) -> None:
        with pytest.raises(UnicodeDecodeError):
            decode_content(b"\xff\xfe\xfa")


# ---------------------------------------------------------------------------
# Duplicate classification
# ---------------------------------------------------------------------------


def _attempt(repository: CSVImportRepository, fingerprint: str, status: ImportStatus):
    attempt = repository.create_attempt(
        name="upload.csv",
        filename="upload.csv",
        file_size=len(CONTENT),
        file_hash=fingerprint,
        template_id=None,
        uploaded_by=1,
    )
    attempt.status = status.value
    return attempt


class TestFingerprintGuard:
    def test_unknown_fingerprint_is_not_duplicate(self, db) -> None:
        result = FingerprintGuard(CSVImportRepository(db)).check("a" * 64)

        assert result.is_duplicate is False
        assert result.can_retry is True
        assert result.original_import_id is None

    @pytest.mark.parametrize("status", [ImportStatus.FAILED, ImportStatus.VALIDATION_FAILED])
    def test_failed_attempt_allows_retry(self, db, status: ImportStatus) -> None:
        repository = CSVImportRepository(db)
        attempt = _attempt(repository, "b" * 64, status)
        db.flush()

        result = FingerprintGuard(repository).check("b" * 64)

        assert result.is_duplicate is True
        assert result.can_retry is True
        assert result.original_import_id == attempt.id
        assert result.original_status == status.value

    def test_in_flight_attempt_allows_retry(self, db, caplog) -> None:
        repository = CSVImportRepository(db)
        attempt = _attempt(repository, "c" * 64, ImportStatus.STAGED)
        db.flush()

        with caplog.at_level("WARNING"):
            result = FingerprintGuard(repository).check("c" * 64)

        assert result.is_duplicate is True
        assert result.can_retry is True
        assert result.original_import_id == attempt.id
        assert "in-flight" in caplog.text

    def test_published_attempt_blocks_reupload(self, db) -> None:
        repository = CSVImportRepository(db)
        published = _attempt(repository, "d" * 64, ImportStatus.PUBLISHED)
        _attempt(repository, "d" * 64, ImportStatus.FAILED)
        db.flush()

        result = FingerprintGuard(repository).check("d" * 64)

        assert result.is_duplicate is True
        assert result.can_retry is False
        assert result.original_import_id == published.id
        assert f"#{published.id}" in result.reason
        assert "upload.csv" in result.reason

    def test_rolled_back_attempt_allows_new_upload(self, db) -> None:
        repository = CSVImportRepository(db)
        _attempt(repository, "e" * 64, ImportStatus.ROLLED_BACK)
        db.flush()

        result = FingerprintGuard(repository).check("e" * 64)

        assert result.is_duplicate is True
        assert result.can_retry is True
