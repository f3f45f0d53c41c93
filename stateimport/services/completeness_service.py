"""
stateimport/services/completeness_service.py

Coverage reporting across production facts and staged-but-unpromoted
rows, per category, statistic and year.
"""

from __future__ import annotations

import logging
from collections import defaultdict

from sqlalchemy.orm import Session

from db.models.catalog import Statistic
from db.repositories.catalog_repository import CatalogRepository
from db.repositories.data_point_repository import DataPointRepository
from db.repositories.staging_repository import StagingRepository
from stateimport.config import AggregationSettings, get_aggregation_settings
from stateimport.domain.aggregation import (
    CategoryCompleteness,
    CompletenessFilters,
    CompletenessReport,
    CompletenessSummary,
    MetricCompleteness,
    OverlapAnalysis,
    OverlapEntry,
    YearCompleteness,
)
from stateimport.services.aggregation_service import AggregationValidationError

logger = logging.getLogger(__name__)

DATA_STATES = ("production", "staged", "overlap", "incomplete")

# statistic_id -> year -> set of state ids
_Coverage = dict[int, dict[int, set[int]]]


def _percent(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    return int(round(part / whole * 100))


def _group(keys: set[tuple[int, int, int]], *, excluded_state_id: int | None) -> _Coverage:
    grouped: _Coverage = defaultdict(lambda: defaultdict(set))
    for state_id, statistic_id, year in keys:
        if state_id == excluded_state_id:
            continue
        grouped[statistic_id][year].add(state_id)
    return grouped


class CompletenessService:
    """
    Builds completeness reports. Read-only; the caller owns the session.
    """

    def __init__(self, session: Session, *, settings: AggregationSettings | None = None) -> None:
        self._settings = settings or get_aggregation_settings()
        self._catalog = CatalogRepository(session)
        self._data_points = DataPointRepository(session)
        self._staging = StagingRepository(session)

    def completeness_report(self, filters: CompletenessFilters | None = None) -> CompletenessReport:
        filters = filters or CompletenessFilters()
        if filters.data_state is not None and filters.data_state not in DATA_STATES:
            raise AggregationValidationError(
                f"data_state must be one of {', '.join(DATA_STATES)}, got {filters.data_state!r}"
            )

        total_states = self._catalog.count_active_states(excluded_name=self._settings.excluded_state_name)
        excluded = self._catalog.find_state(self._settings.excluded_state_name)
        excluded_state_id = excluded.id if excluded is not None else None
        production = _group(self._data_points.active_keys(), excluded_state_id=excluded_state_id)
        staged = _group(self._staging.unprocessed_valid_keys(), excluded_state_id=excluded_state_id)

        statistics_by_category: dict[int, list[Statistic]] = defaultdict(list)
        for statistic in self._catalog.list_active_statistics():
            statistics_by_category[statistic.category_id].append(statistic)

        categories: list[CategoryCompleteness] = []
        for category in self._catalog.list_active_categories():
            if filters.category_id is not None and category.id != filters.category_id:
                continue

            metrics: list[MetricCompleteness] = []
            for statistic in statistics_by_category.get(category.id, []):
                if filters.statistic_id is not None and statistic.id != filters.statistic_id:
                    continue
                metric = self._metric(
                    statistic,
                    production=production.get(statistic.id, {}),
                    staged=staged.get(statistic.id, {}),
                    total_states=total_states,
                    filters=filters,
                )
                if metric is not None:
                    metrics.append(metric)

            if not metrics:
                continue
            metrics_with_data = sum(1 for metric in metrics if metric.years_with_data > 0)
            categories.append(
                CategoryCompleteness(
                    id=category.id,
                    name=category.name,
                    metrics=metrics,
                    metrics_with_data=metrics_with_data,
                    coverage_percentage=_percent(metrics_with_data, len(metrics)),
                )
            )

        summary = self._summary(categories, total_states)
        logger.debug(
            "Built completeness report categories=%s metrics=%s total_states=%s",
            summary.total_categories,
            summary.total_metrics,
            total_states,
        )
        return CompletenessReport(categories=categories, summary=summary, filters=filters)

    def _metric(
        self,
        statistic: Statistic,
        *,
        production: dict[int, set[int]],
        staged: dict[int, set[int]],
        total_states: int,
        filters: CompletenessFilters,
    ) -> MetricCompleteness | None:
        years: list[YearCompleteness] = []
        for year in sorted(set(production) | set(staged)):
            if filters.year is not None and year != filters.year:
                continue
            production_states = production.get(year, set())
            staged_states = staged.get(year, set())
            overlap = production_states & staged_states
            covered = len(production_states | staged_states)
            entry = YearCompleteness(
                year=year,
                production_states=len(production_states),
                staged_states=len(staged_states),
                overlap_states=len(overlap),
                total_states=total_states,
                coverage_percentage=_percent(covered, total_states),
            )
            if self._include_year(entry, filters):
                years.append(entry)

        if filters.show_incomplete_only and not any(year.coverage_percentage < 100 for year in years):
            return None
        if filters.show_staged_only and not any(year.staged_states > 0 for year in years):
            return None

        years_with_data = sum(1 for year in years if year.has_data)
        return MetricCompleteness(
            id=statistic.id,
            name=statistic.name,
            ra_number=statistic.ra_number,
            unit=statistic.unit,
            years=years,
            years_with_data=years_with_data,
            coverage_percentage=_percent(years_with_data, len(years)),
        )

    @staticmethod
    def _include_year(entry: YearCompleteness, filters: CompletenessFilters) -> bool:
        if filters.data_state is None:
            return True
        if filters.data_state == "production":
            return entry.production_states > 0
        if filters.data_state == "staged":
            return entry.staged_states > 0
        if filters.data_state == "overlap":
            return entry.has_overlap
        return entry.coverage_percentage < 100

    @staticmethod
    def _summary(categories: list[CategoryCompleteness], total_states: int) -> CompletenessSummary:
        all_years: set[int] = set()
        years_with_data: set[int] = set()
        for category in categories:
            for metric in category.metrics:
                for year in metric.years:
                    all_years.add(year.year)
                    if year.has_data:
                        years_with_data.add(year.year)

        total_metrics = sum(category.total_metrics for category in categories)
        metrics_with_data = sum(category.metrics_with_data for category in categories)
        return CompletenessSummary(
            total_categories=len(categories),
            total_metrics=total_metrics,
            total_years=len(all_years),
            total_states=total_states,
            categories_with_data=sum(1 for category in categories if category.metrics_with_data > 0),
            metrics_with_data=metrics_with_data,
            years_with_data=len(years_with_data),
            overall_coverage_percentage=_percent(metrics_with_data, total_metrics),
        )

    def overlap_analysis(self) -> OverlapAnalysis:
        """
        Staged, unpromoted values that collide with an active production
        fact for the same state, statistic and year.
        """

        staged_rows = [
            row
            for row in self._staging.list_unprocessed_valid()
            if row.state_id is not None and row.statistic_id is not None and row.year is not None
        ]
        facts = self._data_points.find_active_facts(
            (row.state_id, row.statistic_id, row.year) for row in staged_rows
        )
        states = self._catalog.states_by_id(row.state_id for row in staged_rows)
        statistics = self._catalog.statistics_by_id(row.statistic_id for row in staged_rows)

        overlaps: list[OverlapEntry] = []
        for row in staged_rows:
            fact = facts.get((row.state_id, row.statistic_id, row.year))
            if fact is None or row.value is None:
                continue
            statistic = statistics.get(row.statistic_id)
            state = states.get(row.state_id)
            overlaps.append(
                OverlapEntry(
                    statistic_id=row.statistic_id,
                    statistic_name=statistic.name if statistic else "",
                    year=row.year,
                    state_id=row.state_id,
                    state_name=state.name if state else "",
                    staged_value=float(row.value),
                    production_value=float(fact.value),
                    difference=abs(float(row.value) - float(fact.value)),
                )
            )

        average = sum(entry.difference for entry in overlaps) / len(overlaps) if overlaps else 0.0
        return OverlapAnalysis(overlaps=overlaps, average_difference=average)
