"""
stateimport/services/aggregation_service.py

National averages, rankings, comparisons and trends over active
production facts.

A fact is active when its import session is active. National averages are
a cache: an in-process TTL entry first, then the persisted
``national_averages`` row, then a fresh computation that is written back
to both. Promotion and rollback drop both layers for the keys they touch.
"""

from __future__ import annotations

import logging
import statistics as stats
from typing import Literal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.repositories.catalog_repository import CatalogRepository
from db.repositories.data_point_repository import DataPointRepository
from db.repositories.national_average_repository import NationalAverageRepository
from stateimport.config import AggregationSettings, get_aggregation_settings
from stateimport.domain.aggregation import (
    NationalAverageResult,
    PerformerEntry,
    PerformersResult,
    RecomputeSummary,
    StateComparison,
    StateComparisonEntry,
    StatisticComparison,
    TrendPoint,
    TrendSeries,
)
from stateimport.services.cache import TTLCache, national_average_key

logger = logging.getLogger(__name__)

CALCULATION_METHOD = "arithmetic_mean"


class AggregationNotFoundError(LookupError):
    """
    Raised when a statistic, state or the requested data does not exist.
    """


class AggregationValidationError(ValueError):
    """
    Raised when aggregation parameters are invalid.
    """


def percentile_rank(rank: int, total: int) -> float:
    """
    ``(N - rank + 1) / N * 100`` rounded to two decimals; rank 1 is the
    highest value.
    """

    if total <= 0:
        raise AggregationValidationError("total must be positive")
    return round((total - rank + 1) / total * 100, 2)


def competition_rank(value: float, values: list[float]) -> int:
    """
    1 + number of values strictly greater than ``value``.
    """

    return 1 + sum(1 for other in values if other > value)


class AggregationService:
    """
    Read-side aggregation over production facts.

    Parameters
    ----------
    session:
        Active SQLAlchemy session. The caller controls its lifecycle; the
        only writes are national-average cache rows, committed here.
    cache:
        Shared TTL cache for national averages.
    settings:
        Aggregation settings; env-driven defaults when omitted.
    """

    def __init__(
        self,
        session: Session,
        *,
        cache: TTLCache,
        settings: AggregationSettings | None = None,
    ) -> None:
        self._session = session
        self._cache = cache
        self._settings = settings or get_aggregation_settings()
        self._catalog = CatalogRepository(session)
        self._data_points = DataPointRepository(session)
        self._averages = NationalAverageRepository(session)

    # ------------------------------------------------------------------
    # National averages
    # ------------------------------------------------------------------

    def national_average(self, statistic_id: int, year: int) -> NationalAverageResult:
        cache_key = national_average_key(statistic_id, year)
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        stored = self._averages.get(statistic_id=statistic_id, year=year)
        if stored is not None:
            result = NationalAverageResult(
                statistic_id=statistic_id,
                year=year,
                value=float(stored.value),
                state_count=int(stored.state_count),
                calculation_method=stored.calculation_method,
                last_calculated=stored.last_calculated,
            )
            self._cache.set(cache_key, result)
            return result

        return self._compute_and_store(statistic_id, year)

    def _compute_and_store(self, statistic_id: int, year: int) -> NationalAverageResult:
        values = self._data_points.active_values(statistic_id=statistic_id, year=year)
        if not values:
            raise AggregationNotFoundError(
                f"No data points found for statistic {statistic_id} and year {year}"
            )

        mean = sum(values.values()) / len(values)
        last_calculated = None
        try:
            row = self._averages.save(
                statistic_id=statistic_id,
                year=year,
                value=mean,
                state_count=len(values),
                calculation_method=CALCULATION_METHOD,
            )
            last_calculated = row.last_calculated
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.warning(
                "Failed to persist national average statistic_id=%s year=%s: %s",
                statistic_id,
                year,
                exc,
            )

        result = NationalAverageResult(
            statistic_id=statistic_id,
            year=year,
            value=mean,
            state_count=len(values),
            calculation_method=CALCULATION_METHOD,
            last_calculated=last_calculated,
        )
        self._cache.set(national_average_key(statistic_id, year), result)
        return result

    def recompute_national_averages(self, year: int) -> RecomputeSummary:
        """
        Recompute and store averages for every statistic with data in
        ``year``. One statistic failing does not stop the rest.
        """

        summary = RecomputeSummary(year=year)
        for statistic_id in self._data_points.statistics_with_data(year=year):
            self._cache.delete(national_average_key(statistic_id, year))
            try:
                self._compute_and_store(statistic_id, year)
            except AggregationNotFoundError as exc:
                logger.warning(
                    "Skipped national average statistic_id=%s year=%s: %s",
                    statistic_id,
                    year,
                    exc,
                )
                summary.failed.append(statistic_id)
                continue
            summary.recomputed.append(statistic_id)
        logger.info(
            "Recomputed national averages year=%s recomputed=%s failed=%s",
            year,
            len(summary.recomputed),
            len(summary.failed),
        )
        return summary

    # ------------------------------------------------------------------
    # Comparisons and rankings
    # ------------------------------------------------------------------

    def statistic_comparison(self, statistic_id: int, year: int) -> StatisticComparison:
        statistic = self._catalog.get_statistic(statistic_id)
        if statistic is None:
            raise AggregationNotFoundError(f"Statistic not found: {statistic_id}")

        values = list(self._data_points.active_values(statistic_id=statistic_id, year=year).values())
        if not values:
            raise AggregationNotFoundError(
                f"No data found for statistic {statistic_id} in year {year}"
            )

        average = self.national_average(statistic_id, year)
        return StatisticComparison(
            statistic_id=statistic_id,
            statistic_name=statistic.name,
            year=year,
            unit=statistic.unit,
            average=average.value,
            median=float(stats.median(values)),
            minimum=min(values),
            maximum=max(values),
            state_count=len(values),
        )

    def top_bottom_performers(
        self,
        statistic_id: int,
        year: int,
        *,
        limit: int | None = None,
        order: Literal["desc", "asc"] = "desc",
    ) -> PerformersResult:
        """
        Rank states by value. Equal values are ordered by state id
        ascending, so ranks are stable across calls.
        """

        if order not in ("desc", "asc"):
            raise AggregationValidationError(f"order must be 'desc' or 'asc', got {order!r}")
        effective_limit = self._settings.default_performer_limit if limit is None else limit
        if effective_limit < 1:
            raise AggregationValidationError("limit must be at least 1")

        statistic = self._catalog.get_statistic(statistic_id)
        if statistic is None:
            raise AggregationNotFoundError(f"Statistic not found: {statistic_id}")

        values = self._data_points.active_values(statistic_id=statistic_id, year=year)
        sign = -1.0 if order == "desc" else 1.0
        ranked = sorted(values.items(), key=lambda item: (sign * item[1], item[0]))[:effective_limit]
        states = self._catalog.states_by_id(state_id for state_id, _ in ranked)

        performers = [
            PerformerEntry(
                rank=index,
                state_id=state_id,
                state_name=states[state_id].name if state_id in states else "",
                value=value,
            )
            for index, (state_id, value) in enumerate(ranked, start=1)
        ]
        return PerformersResult(
            statistic_id=statistic_id,
            statistic_name=statistic.name,
            unit=statistic.unit,
            year=year,
            order=order,
            performers=performers,
        )

    def state_comparison(self, state_id: int, year: int) -> StateComparison:
        """
        Percentile standing of one state for every statistic it has data
        for in ``year``.
        """

        state = self._catalog.get_state(state_id)
        if state is None:
            raise AggregationNotFoundError(f"State not found: {state_id}")

        own_values = self._data_points.active_values_for_state(state_id=state_id, year=year)
        statistics_by_id = self._catalog.statistics_by_id(statistic_id for statistic_id, _ in own_values)

        entries: list[StateComparisonEntry] = []
        for (statistic_id, _), value in sorted(own_values.items()):
            peers = list(self._data_points.active_values(statistic_id=statistic_id, year=year).values())
            rank = competition_rank(value, peers)
            statistic = statistics_by_id.get(statistic_id)
            entries.append(
                StateComparisonEntry(
                    statistic_id=statistic_id,
                    statistic_name=statistic.name if statistic else "",
                    unit=statistic.unit if statistic else "",
                    value=value,
                    rank=rank,
                    total_states=len(peers),
                    percentile=percentile_rank(rank, len(peers)),
                )
            )
        return StateComparison(state_id=state_id, state_name=state.name, year=year, statistics=entries)

    def trend_data(self, statistic_id: int, state_id: int) -> TrendSeries:
        statistic = self._catalog.get_statistic(statistic_id)
        if statistic is None:
            raise AggregationNotFoundError(f"Statistic not found: {statistic_id}")
        state = self._catalog.get_state(state_id)
        if state is None:
            raise AggregationNotFoundError(f"State not found: {state_id}")

        series = self._data_points.active_series(statistic_id=statistic_id, state_id=state_id)
        if not series:
            raise AggregationNotFoundError(
                f"No trend data for statistic {statistic_id} and state {state_id}"
            )

        trends: list[TrendPoint] = []
        previous: float | None = None
        for year in sorted(series):
            value = series[year]
            change = value - previous if previous is not None else 0.0
            change_percent = (change / previous * 100) if previous else 0.0
            trends.append(
                TrendPoint(
                    year=year,
                    value=value,
                    change=change,
                    change_percent=round(change_percent, 2),
                )
            )
            previous = value
        return TrendSeries(
            statistic_id=statistic_id,
            statistic_name=statistic.name,
            state_id=state_id,
            state_name=state.name,
            trends=trends,
        )
