"""
Persistence for per-attempt import log entries.
"""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import insert, select
from sqlalchemy.orm import Session

from db.models.import_log import ImportLog, ImportLogLevel
from db.repositories.types import ImportLogCreate

_DEFAULT_BATCH_SIZE = 500


class ImportLogRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def add_many(self, csv_import_id: int, entries: Sequence[ImportLogCreate]) -> int:
        if not entries:
            return 0
        values = [
            {
                "csv_import_id": csv_import_id,
                "log_level": entry.log_level.value,
                "row_number": entry.row_number,
                "field_name": entry.field_name,
                "field_value": entry.field_value,
                "failure_category": entry.failure_category,
                "message": entry.message,
                "details": entry.details,
            }
            for entry in entries
        ]
        for start in range(0, len(values), _DEFAULT_BATCH_SIZE):
            self._session.execute(insert(ImportLog), values[start : start + _DEFAULT_BATCH_SIZE])
        return len(values)

    def list_for_import(
        self,
        csv_import_id: int,
        *,
        level: ImportLogLevel | None = None,
        limit: int = 1000,
    ) -> list[ImportLog]:
        stmt = select(ImportLog).where(ImportLog.csv_import_id == csv_import_id)
        if level is not None:
            stmt = stmt.where(ImportLog.log_level == level.value)
        stmt = stmt.order_by(ImportLog.id).limit(max(1, limit))
        return list(self._session.scalars(stmt).all())
