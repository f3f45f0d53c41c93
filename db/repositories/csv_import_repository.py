"""
Repository for import attempt lifecycle persistence and fingerprint lookup.
"""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Select, select, text
from sqlalchemy.orm import Session

from db.models.csv_import import CSVImport, ImportStatus


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _advisory_lock_key(fingerprint: str) -> int:
    # pg_advisory_xact_lock takes a signed bigint.
    digest = hashlib.sha256(fingerprint.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], byteorder="big", signed=True)


class CSVImportRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_attempt(
        self,
        *,
        name: str,
        filename: str,
        file_size: int,
        file_hash: str,
        template_id: int | None,
        uploaded_by: int,
        metadata: dict[str, Any] | None = None,
        description: str | None = None,
        duplicate_of: int | None = None,
        source_content: str | None = None,
    ) -> CSVImport:
        attempt = CSVImport(
            name=name,
            description=description,
            filename=filename,
            file_size=file_size,
            file_hash=file_hash,
            template_id=template_id,
            status=ImportStatus.UPLOADED.value,
            uploaded_by=uploaded_by,
            uploaded_at=_now(),
            metadata_json=metadata,
            duplicate_of=duplicate_of,
            source_content=source_content,
        )
        self._session.add(attempt)
        self._session.flush()
        return attempt

    def get(self, import_id: int) -> CSVImport | None:
        return self._session.get(CSVImport, import_id)

    def latest_by_fingerprint(
        self,
        file_hash: str,
        *,
        status: ImportStatus | None = None,
    ) -> CSVImport | None:
        stmt = select(CSVImport).where(CSVImport.file_hash == file_hash)
        if status is not None:
            stmt = stmt.where(CSVImport.status == status.value)
        stmt = stmt.order_by(CSVImport.uploaded_at.desc(), CSVImport.id.desc()).limit(1)
        return self._session.scalars(stmt).first()

    def lock_fingerprint(self, file_hash: str) -> None:
        """
        Serialize duplicate checks for one fingerprint until the current
        transaction ends. No-op on databases without advisory locks.
        """

        bind = self._session.get_bind()
        if bind.dialect.name != "postgresql":
            return
        self._session.execute(
            text("SELECT pg_advisory_xact_lock(:key)"),
            {"key": _advisory_lock_key(file_hash)},
        )

    def list_imports(
        self,
        *,
        limit: int = 100,
        status: ImportStatus | None = None,
    ) -> list[CSVImport]:
        stmt: Select[tuple[CSVImport]] = select(CSVImport)
        if status is not None:
            stmt = stmt.where(CSVImport.status == status.value)
        stmt = stmt.order_by(CSVImport.uploaded_at.desc(), CSVImport.id.desc()).limit(max(1, limit))
        return list(self._session.scalars(stmt).all())

    def mark_staged(
        self,
        attempt: CSVImport,
        *,
        total_rows: int,
        valid_rows: int,
        error_rows: int,
        processing_time_ms: int | None = None,
    ) -> CSVImport:
        attempt.status = ImportStatus.STAGED.value
        attempt.total_rows = total_rows
        attempt.valid_rows = valid_rows
        attempt.error_rows = error_rows
        attempt.processing_time_ms = processing_time_ms
        attempt.error_message = None
        return attempt

    def mark_validating(self, attempt: CSVImport) -> CSVImport:
        attempt.status = ImportStatus.VALIDATING.value
        return attempt

    def mark_validation_result(
        self,
        attempt: CSVImport,
        *,
        passed: bool,
        summary: dict[str, Any],
        error_message: str | None = None,
    ) -> CSVImport:
        attempt.status = (
            ImportStatus.VALIDATED.value if passed else ImportStatus.VALIDATION_FAILED.value
        )
        attempt.validated_at = _now()
        attempt.validation_summary = summary
        attempt.error_message = None if passed else error_message
        return attempt

    def mark_published(
        self,
        attempt: CSVImport,
        *,
        import_session_id: int,
        published_by: int,
    ) -> CSVImport:
        attempt.status = ImportStatus.PUBLISHED.value
        attempt.import_session_id = import_session_id
        attempt.published_at = _now()
        attempt.published_by = published_by
        return attempt

    def mark_rolled_back(
        self,
        attempt: CSVImport,
        *,
        rolled_back_by: int,
    ) -> CSVImport:
        now = _now()
        attempt.status = ImportStatus.ROLLED_BACK.value
        attempt.rolled_back_at = now
        attempt.rolled_back_by = rolled_back_by
        attempt.error_message = f"Rolled back by user {rolled_back_by} on {now.isoformat()}"
        return attempt

    def mark_failed(self, *, import_id: int, error_message: str) -> CSVImport | None:
        attempt = self.get(import_id)
        if attempt is None:
            return None
        attempt.status = ImportStatus.FAILED.value
        attempt.error_message = error_message
        return attempt
