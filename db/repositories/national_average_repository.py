"""
Persistence for the derived national-average table.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.orm import Session

from db.models.national_average import NationalAverage


class NationalAverageRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, *, statistic_id: int, year: int) -> NationalAverage | None:
        stmt = select(NationalAverage).where(
            NationalAverage.statistic_id == statistic_id,
            NationalAverage.year == year,
        )
        return self._session.scalars(stmt).first()

    def save(
        self,
        *,
        statistic_id: int,
        year: int,
        value: float,
        state_count: int,
        calculation_method: str = "arithmetic_mean",
    ) -> NationalAverage:
        """
        Insert or update the row for ``(statistic_id, year)``.
        """

        now = datetime.now(timezone.utc)
        existing = self.get(statistic_id=statistic_id, year=year)
        if existing is None:
            existing = NationalAverage(
                statistic_id=statistic_id,
                year=year,
                value=value,
                state_count=state_count,
                calculation_method=calculation_method,
                last_calculated=now,
            )
            self._session.add(existing)
        else:
            existing.value = value
            existing.state_count = state_count
            existing.calculation_method = calculation_method
            existing.last_calculated = now
        self._session.flush()
        return existing

    def delete_for_keys(self, keys: Iterable[tuple[int, int]]) -> int:
        """
        Delete rows for every ``(statistic_id, year)`` pair given.
        """

        pairs = sorted(set(keys))
        if not pairs:
            return 0
        stmt = (
            delete(NationalAverage)
            .where(
                or_(
                    *(
                        and_(NationalAverage.statistic_id == statistic_id, NationalAverage.year == year)
                        for statistic_id, year in pairs
                    )
                )
            )
            .execution_options(synchronize_session="fetch")
        )
        result = self._session.execute(stmt)
        return int(result.rowcount or 0)
