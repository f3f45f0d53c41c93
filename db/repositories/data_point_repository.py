"""
db/repositories/data_point_repository.py

Persistence layer for production facts and their import sessions.

The caller controls commit/rollback; this repository never commits on its
own.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from sqlalchemy import delete, func, insert, select
from sqlalchemy.orm import Session

from db.models.data_point import DataPoint, ImportSession
from db.repositories.types import FactKey

_DEFAULT_BATCH_SIZE = 1000


@dataclass(frozen=True)
class FactCreate:
    import_session_id: int
    state_id: int
    statistic_id: int
    year: int
    value: float

    @property
    def key(self) -> FactKey:
        return (self.state_id, self.statistic_id, self.year)


class DataPointRepository:
    """
    Repository for ImportSession and DataPoint rows.

    A fact is *active* when its import session has ``is_active = true``.
    When several active facts share one ``(state, statistic, year)`` key the
    most recently inserted one (highest id) is the one callers see.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Import sessions
    # ------------------------------------------------------------------

    def create_session(
        self,
        *,
        name: str,
        created_by: int | None,
        description: str | None = None,
        data_year: int | None = None,
    ) -> ImportSession:
        import_session = ImportSession(
            name=name,
            description=description,
            data_year=data_year,
            record_count=0,
            is_active=True,
            created_by=created_by,
        )
        self._session.add(import_session)
        self._session.flush()
        return import_session

    def get_session(self, import_session_id: int) -> ImportSession | None:
        return self._session.get(ImportSession, import_session_id)

    def deactivate_session(self, import_session_id: int) -> ImportSession | None:
        import_session = self.get_session(import_session_id)
        if import_session is None:
            return None
        import_session.is_active = False
        return import_session

    # ------------------------------------------------------------------
    # Facts: write
    # ------------------------------------------------------------------

    def insert_facts(
        self,
        facts: Sequence[FactCreate],
        *,
        batch_size: int = _DEFAULT_BATCH_SIZE,
    ) -> int:
        if not facts:
            return 0
        size = max(1, batch_size)
        inserted = 0
        for start in range(0, len(facts), size):
            chunk = facts[start : start + size]
            self._session.execute(
                insert(DataPoint),
                [
                    {
                        "import_session_id": fact.import_session_id,
                        "state_id": fact.state_id,
                        "statistic_id": fact.statistic_id,
                        "year": fact.year,
                        "value": fact.value,
                    }
                    for fact in chunk
                ],
            )
            inserted += len(chunk)
        return inserted

    def delete_for_session(self, import_session_id: int) -> int:
        result = self._session.execute(
            delete(DataPoint)
            .where(DataPoint.import_session_id == import_session_id)
            .execution_options(synchronize_session="fetch")
        )
        return int(result.rowcount or 0)

    # ------------------------------------------------------------------
    # Facts: read
    # ------------------------------------------------------------------

    def find_active_facts(self, keys: Iterable[FactKey]) -> dict[FactKey, DataPoint]:
        """
        Return the visible active fact for each requested key that has one.
        """

        wanted = set(keys)
        if not wanted:
            return {}

        state_ids = {key[0] for key in wanted}
        statistic_ids = {key[1] for key in wanted}
        years = {key[2] for key in wanted}

        stmt = (
            select(DataPoint)
            .join(ImportSession, DataPoint.import_session_id == ImportSession.id)
            .where(
                ImportSession.is_active.is_(True),
                DataPoint.state_id.in_(state_ids),
                DataPoint.statistic_id.in_(statistic_ids),
                DataPoint.year.in_(years),
            )
            .order_by(DataPoint.id)
        )

        found: dict[FactKey, DataPoint] = {}
        for fact in self._session.scalars(stmt).all():
            key = (fact.state_id, fact.statistic_id, fact.year)
            if key in wanted:
                found[key] = fact
        return found

    def session_fact_keys(self, import_session_id: int) -> set[FactKey]:
        stmt = select(DataPoint.state_id, DataPoint.statistic_id, DataPoint.year).where(
            DataPoint.import_session_id == import_session_id
        )
        return {
            (int(state_id), int(statistic_id), int(year))
            for state_id, statistic_id, year in self._session.execute(stmt).all()
        }

    def active_values(self, *, statistic_id: int, year: int) -> dict[int, float]:
        """
        Map ``state_id -> value`` for one statistic/year over active facts.
        """

        stmt = (
            select(DataPoint.state_id, DataPoint.value)
            .join(ImportSession, DataPoint.import_session_id == ImportSession.id)
            .where(
                ImportSession.is_active.is_(True),
                DataPoint.statistic_id == statistic_id,
                DataPoint.year == year,
            )
            .order_by(DataPoint.id)
        )
        return {int(state_id): float(value) for state_id, value in self._session.execute(stmt).all()}

    def active_values_for_state(self, *, state_id: int, year: int | None = None) -> dict[tuple[int, int], float]:
        """
        Map ``(statistic_id, year) -> value`` for one state over active facts.
        """

        stmt = (
            select(DataPoint.statistic_id, DataPoint.year, DataPoint.value)
            .join(ImportSession, DataPoint.import_session_id == ImportSession.id)
            .where(
                ImportSession.is_active.is_(True),
                DataPoint.state_id == state_id,
            )
            .order_by(DataPoint.id)
        )
        if year is not None:
            stmt = stmt.where(DataPoint.year == year)
        return {
            (int(statistic_id), int(fact_year)): float(value)
            for statistic_id, fact_year, value in self._session.execute(stmt).all()
        }

    def active_series(self, *, statistic_id: int, state_id: int) -> dict[int, float]:
        """
        Map ``year -> value`` for one state and statistic over active facts.
        """

        stmt = (
            select(DataPoint.year, DataPoint.value)
            .join(ImportSession, DataPoint.import_session_id == ImportSession.id)
            .where(
                ImportSession.is_active.is_(True),
                DataPoint.statistic_id == statistic_id,
                DataPoint.state_id == state_id,
            )
            .order_by(DataPoint.id)
        )
        return {int(year): float(value) for year, value in self._session.execute(stmt).all()}

    def statistics_with_data(self, *, year: int) -> list[int]:
        stmt = (
            select(DataPoint.statistic_id)
            .join(ImportSession, DataPoint.import_session_id == ImportSession.id)
            .where(ImportSession.is_active.is_(True), DataPoint.year == year)
            .distinct()
            .order_by(DataPoint.statistic_id)
        )
        return [int(statistic_id) for statistic_id in self._session.scalars(stmt).all()]

    def active_keys(self) -> set[FactKey]:
        stmt = (
            select(DataPoint.state_id, DataPoint.statistic_id, DataPoint.year)
            .join(ImportSession, DataPoint.import_session_id == ImportSession.id)
            .where(ImportSession.is_active.is_(True))
            .distinct()
        )
        return {
            (int(state_id), int(statistic_id), int(year))
            for state_id, statistic_id, year in self._session.execute(stmt).all()
        }

    def count_for_session(self, import_session_id: int) -> int:
        stmt = select(func.count(DataPoint.id)).where(DataPoint.import_session_id == import_session_id)
        return int(self._session.scalar(stmt) or 0)
