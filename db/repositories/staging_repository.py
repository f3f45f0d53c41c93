"""
Staged-row persistence: bulk insert at staging time, chunked reads for
validation, and processed-flag updates at promotion time.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from datetime import datetime

from sqlalchemy import func, insert, select, update
from sqlalchemy.orm import Session

from db.models.csv_import import CSVImportStaging, ValidationStatus
from db.repositories.types import StagedRowCreate

_DEFAULT_BATCH_SIZE = 1000

PROMOTABLE_STATUSES = (ValidationStatus.VALID.value,)


class StagingRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def bulk_insert(
        self,
        rows: Sequence[StagedRowCreate],
        *,
        batch_size: int = _DEFAULT_BATCH_SIZE,
    ) -> int:
        """
        Insert staged rows with chunked multi-row INSERTs instead of ORM
        per-row add/flush.
        """

        if not rows:
            return 0

        size = max(1, batch_size)
        inserted = 0
        for start in range(0, len(rows), size):
            chunk = rows[start : start + size]
            self._session.execute(insert(CSVImportStaging), [row.to_values() for row in chunk])
            inserted += len(chunk)
        return inserted

    def list_rows(self, csv_import_id: int) -> list[CSVImportStaging]:
        stmt = (
            select(CSVImportStaging)
            .where(CSVImportStaging.csv_import_id == csv_import_id)
            .order_by(CSVImportStaging.row_number, CSVImportStaging.id)
        )
        return list(self._session.scalars(stmt).all())

    def iter_row_chunks(
        self,
        csv_import_id: int,
        *,
        chunk_size: int,
    ) -> Iterator[list[CSVImportStaging]]:
        """
        Yield staged rows in row order, ``chunk_size`` at a time, using
        keyset pagination on (row_number, id).
        """

        size = max(1, chunk_size)
        last_key: tuple[int, int] | None = None
        while True:
            stmt = select(CSVImportStaging).where(CSVImportStaging.csv_import_id == csv_import_id)
            if last_key is not None:
                last_row, last_id = last_key
                stmt = stmt.where(
                    (CSVImportStaging.row_number > last_row)
                    | ((CSVImportStaging.row_number == last_row) & (CSVImportStaging.id > last_id))
                )
            stmt = stmt.order_by(CSVImportStaging.row_number, CSVImportStaging.id).limit(size)
            chunk = list(self._session.scalars(stmt).all())
            if not chunk:
                return
            yield chunk
            last_key = (chunk[-1].row_number, chunk[-1].id)

    def list_promotable(self, csv_import_id: int) -> list[CSVImportStaging]:
        stmt = (
            select(CSVImportStaging)
            .where(
                CSVImportStaging.csv_import_id == csv_import_id,
                CSVImportStaging.validation_status.in_(PROMOTABLE_STATUSES),
                CSVImportStaging.is_processed.is_(False),
            )
            .order_by(CSVImportStaging.row_number, CSVImportStaging.id)
        )
        return list(self._session.scalars(stmt).all())

    def list_invalid(self, csv_import_id: int, *, limit: int | None = None) -> list[CSVImportStaging]:
        stmt = (
            select(CSVImportStaging)
            .where(
                CSVImportStaging.csv_import_id == csv_import_id,
                CSVImportStaging.validation_status == ValidationStatus.INVALID.value,
            )
            .order_by(CSVImportStaging.row_number, CSVImportStaging.id)
        )
        if limit is not None:
            stmt = stmt.limit(max(1, limit))
        return list(self._session.scalars(stmt).all())

    def count_by_status(self, csv_import_id: int) -> dict[str, int]:
        stmt = (
            select(CSVImportStaging.validation_status, func.count(CSVImportStaging.id))
            .where(CSVImportStaging.csv_import_id == csv_import_id)
            .group_by(CSVImportStaging.validation_status)
        )
        return {status: int(count) for status, count in self._session.execute(stmt).all()}

    def mark_processed(self, row_ids: Sequence[int], *, processed_at: datetime) -> int:
        if not row_ids:
            return 0
        updated = 0
        for start in range(0, len(row_ids), _DEFAULT_BATCH_SIZE):
            chunk = list(row_ids[start : start + _DEFAULT_BATCH_SIZE])
            result = self._session.execute(
                update(CSVImportStaging)
                .where(CSVImportStaging.id.in_(chunk))
                .values(is_processed=True, processed_at=processed_at)
                .execution_options(synchronize_session="fetch")
            )
            updated += result.rowcount or 0
        return updated

    def unprocessed_valid_keys(self) -> set[tuple[int, int, int]]:
        """
        Distinct (state_id, statistic_id, year) keys of staged rows that
        are valid but not yet promoted, across all attempts.
        """

        stmt = (
            select(CSVImportStaging.state_id, CSVImportStaging.statistic_id, CSVImportStaging.year)
            .where(
                CSVImportStaging.validation_status == ValidationStatus.VALID.value,
                CSVImportStaging.is_processed.is_(False),
                CSVImportStaging.state_id.is_not(None),
                CSVImportStaging.statistic_id.is_not(None),
                CSVImportStaging.year.is_not(None),
            )
            .distinct()
        )
        return {
            (int(state_id), int(statistic_id), int(year))
            for state_id, statistic_id, year in self._session.execute(stmt).all()
        }

    def list_unprocessed_valid(self) -> list[CSVImportStaging]:
        stmt = (
            select(CSVImportStaging)
            .where(
                CSVImportStaging.validation_status == ValidationStatus.VALID.value,
                CSVImportStaging.is_processed.is_(False),
            )
            .order_by(CSVImportStaging.csv_import_id, CSVImportStaging.row_number)
        )
        return list(self._session.scalars(stmt).all())
