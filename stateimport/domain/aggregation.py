"""
stateimport/domain/aggregation.py

Result models for national averages, rankings, trends and completeness.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal


@dataclass(frozen=True)
class NationalAverageResult:
    statistic_id: int
    year: int
    value: float
    state_count: int
    calculation_method: str
    last_calculated: datetime | None = None


@dataclass(frozen=True)
class PerformerEntry:
    rank: int
    state_id: int
    state_name: str
    value: float


@dataclass(frozen=True)
class PerformersResult:
    statistic_id: int
    statistic_name: str
    unit: str
    year: int
    order: Literal["desc", "asc"]
    performers: list[PerformerEntry]


@dataclass(frozen=True)
class StateComparisonEntry:
    """
    One statistic's standing for a state. Percentile 100 means top.
    """

    statistic_id: int
    statistic_name: str
    unit: str
    value: float
    rank: int
    total_states: int
    percentile: float


@dataclass(frozen=True)
class StateComparison:
    state_id: int
    state_name: str
    year: int
    statistics: list[StateComparisonEntry]


@dataclass(frozen=True)
class StatisticComparison:
    statistic_id: int
    statistic_name: str
    year: int
    unit: str
    average: float
    median: float
    minimum: float
    maximum: float
    state_count: int


@dataclass(frozen=True)
class TrendPoint:
    year: int
    value: float
    change: float
    change_percent: float


@dataclass(frozen=True)
class TrendSeries:
    statistic_id: int
    statistic_name: str
    state_id: int
    state_name: str
    trends: list[TrendPoint]


@dataclass(frozen=True)
class RecomputeSummary:
    year: int
    recomputed: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)


DataState = Literal["production", "staged", "overlap", "incomplete"]


@dataclass(frozen=True)
class CompletenessFilters:
    category_id: int | None = None
    statistic_id: int | None = None
    year: int | None = None
    data_state: DataState | None = None
    show_incomplete_only: bool = False
    show_staged_only: bool = False


@dataclass(frozen=True)
class YearCompleteness:
    year: int
    production_states: int
    staged_states: int
    overlap_states: int
    total_states: int
    coverage_percentage: int

    @property
    def has_overlap(self) -> bool:
        return self.overlap_states > 0

    @property
    def has_data(self) -> bool:
        return self.production_states > 0 or self.staged_states > 0


@dataclass(frozen=True)
class MetricCompleteness:
    id: int
    name: str
    ra_number: str | None
    unit: str
    years: list[YearCompleteness]
    years_with_data: int
    coverage_percentage: int

    @property
    def total_years(self) -> int:
        return len(self.years)


@dataclass(frozen=True)
class CategoryCompleteness:
    id: int
    name: str
    metrics: list[MetricCompleteness]
    metrics_with_data: int
    coverage_percentage: int

    @property
    def total_metrics(self) -> int:
        return len(self.metrics)


@dataclass(frozen=True)
class CompletenessSummary:
    total_categories: int
    total_metrics: int
    total_years: int
    total_states: int
    categories_with_data: int
    metrics_with_data: int
    years_with_data: int
    overall_coverage_percentage: int


@dataclass(frozen=True)
class CompletenessReport:
    categories: list[CategoryCompleteness]
    summary: CompletenessSummary
    filters: CompletenessFilters


@dataclass(frozen=True)
class OverlapEntry:
    statistic_id: int
    statistic_name: str
    year: int
    state_id: int
    state_name: str
    staged_value: float
    production_value: float
    difference: float


@dataclass(frozen=True)
class OverlapAnalysis:
    overlaps: list[OverlapEntry]
    average_difference: float

    @property
    def total_overlaps(self) -> int:
        return len(self.overlaps)
