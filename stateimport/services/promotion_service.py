"""
stateimport/services/promotion_service.py

Moves validated staged rows into production facts and reverses a
promotion by import session.

The caller controls commit/rollback; promotion and rollback are each
meant to run inside one transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from db.models.csv_import import CSVImport, CSVImportStaging, ImportStatus
from db.repositories.csv_import_repository import CSVImportRepository
from db.repositories.data_point_repository import DataPointRepository, FactCreate
from db.repositories.national_average_repository import NationalAverageRepository
from db.repositories.staging_repository import StagingRepository
from db.repositories.types import FactKey
from stateimport.domain.csv_import import PromotionResult, RollbackResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PromotionOutcome:
    result: PromotionResult
    affected_averages: set[tuple[int, int]] = field(default_factory=set)


@dataclass(frozen=True)
class RollbackOutcome:
    result: RollbackResult
    affected_averages: set[tuple[int, int]] = field(default_factory=set)


class PromotionService:
    def __init__(
        self,
        *,
        import_repository: CSVImportRepository,
        staging_repository: StagingRepository,
        data_point_repository: DataPointRepository,
        national_average_repository: NationalAverageRepository,
        batch_size: int,
    ) -> None:
        self._imports = import_repository
        self._staging = staging_repository
        self._data_points = data_point_repository
        self._averages = national_average_repository
        self._batch_size = max(1, batch_size)

    def promote(self, attempt: CSVImport, *, actor_id: int) -> PromotionOutcome:
        """
        Upsert every valid, unprocessed staged row into production.

        An active fact with the same (state, statistic, year) is updated in
        place and keeps its session; anything else is inserted on a new
        import session. Within one file the last row for a key wins.
        """

        if attempt.import_status is not ImportStatus.VALIDATED:
            return PromotionOutcome(
                PromotionResult(
                    success=False,
                    message=(
                        "Import must be validated before publishing "
                        f"(current status: {attempt.status})"
                    ),
                )
            )

        rows = self._staging.list_promotable(attempt.id)
        if not rows:
            return PromotionOutcome(PromotionResult(success=False, message="No valid data to publish"))

        latest_by_key: dict[FactKey, CSVImportStaging] = {}
        for row in rows:
            latest_by_key[(int(row.state_id), int(row.statistic_id), int(row.year))] = row

        years = {key[2] for key in latest_by_key}
        import_session = self._data_points.create_session(
            name=f"CSV Import #{attempt.id}: {attempt.name}",
            description=f"Published from {attempt.filename}",
            data_year=next(iter(years)) if len(years) == 1 else None,
            created_by=actor_id,
        )

        existing = self._data_points.find_active_facts(latest_by_key.keys())
        to_insert: list[FactCreate] = []
        updated = 0
        for key, row in latest_by_key.items():
            fact = existing.get(key)
            if fact is not None:
                fact.value = float(row.value)
                updated += 1
                continue
            state_id, statistic_id, year = key
            to_insert.append(
                FactCreate(
                    import_session_id=import_session.id,
                    state_id=state_id,
                    statistic_id=statistic_id,
                    year=year,
                    value=float(row.value),
                )
            )

        inserted = self._data_points.insert_facts(to_insert, batch_size=self._batch_size)
        import_session.record_count = inserted

        self._staging.mark_processed(
            [row.id for row in rows],
            processed_at=datetime.now(timezone.utc),
        )
        affected = {(statistic_id, year) for _, statistic_id, year in latest_by_key}
        self._averages.delete_for_keys(affected)
        self._imports.mark_published(attempt, import_session_id=import_session.id, published_by=actor_id)

        logger.info(
            "Promoted staged rows import_id=%s import_session_id=%s rows=%s inserted=%s updated=%s",
            attempt.id,
            import_session.id,
            len(rows),
            inserted,
            updated,
        )
        return PromotionOutcome(
            PromotionResult(
                success=True,
                message=f"Published {len(rows)} rows ({inserted} inserted, {updated} updated)",
                published_rows=len(rows),
                inserted_rows=inserted,
                updated_rows=updated,
                import_session_id=import_session.id,
            ),
            affected,
        )

    def rollback(self, attempt: CSVImport, *, actor_id: int) -> RollbackOutcome:
        """
        Delete every fact owned by the attempt's import session.

        Facts that promotion updated in place belong to older sessions and
        are left alone.
        """

        if attempt.import_status is not ImportStatus.PUBLISHED:
            return RollbackOutcome(
                RollbackResult(
                    success=False,
                    message=(
                        "Cannot rollback non-published session: only published imports "
                        f"can be rolled back (current status: {attempt.status})"
                    ),
                )
            )
        if attempt.import_session_id is None:
            return RollbackOutcome(RollbackResult(success=False, message="Import session not found"))

        import_session = self._data_points.get_session(attempt.import_session_id)
        if import_session is None:
            return RollbackOutcome(RollbackResult(success=False, message="Import session not found"))

        keys = self._data_points.session_fact_keys(import_session.id)
        deleted = self._data_points.delete_for_session(import_session.id)
        self._data_points.deactivate_session(import_session.id)
        affected = {(statistic_id, year) for _, statistic_id, year in keys}
        self._averages.delete_for_keys(affected)
        self._imports.mark_rolled_back(attempt, rolled_back_by=actor_id)

        logger.info(
            "Rolled back import import_id=%s import_session_id=%s deleted=%s actor=%s",
            attempt.id,
            import_session.id,
            deleted,
            actor_id,
        )
        return RollbackOutcome(
            RollbackResult(
                success=True,
                message=f"Rolled back {deleted} rows",
                rolled_back_rows=deleted,
            ),
            affected,
        )
