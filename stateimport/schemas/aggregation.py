"""
stateimport/schemas/aggregation.py

Response schemas for aggregation and completeness endpoints.

Domain results are frozen dataclasses; ``from_attributes`` lets these
models read them directly.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class _FromAttributes(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class NationalAverageResponse(_FromAttributes):
    statistic_id: int
    year: int
    value: float
    state_count: int = Field(..., ge=0)
    calculation_method: str
    last_calculated: datetime | None = None


class PerformerResponse(_FromAttributes):
    rank: int = Field(..., ge=1)
    state_id: int
    state_name: str
    value: float


class PerformersResponse(_FromAttributes):
    statistic_id: int
    statistic_name: str
    unit: str
    year: int
    order: str
    performers: list[PerformerResponse]


class StateComparisonEntryResponse(_FromAttributes):
    statistic_id: int
    statistic_name: str
    unit: str
    value: float
    rank: int
    total_states: int
    percentile: float


class StateComparisonResponse(_FromAttributes):
    state_id: int
    state_name: str
    year: int
    statistics: list[StateComparisonEntryResponse]


class StatisticComparisonResponse(_FromAttributes):
    statistic_id: int
    statistic_name: str
    year: int
    unit: str
    average: float
    median: float
    minimum: float
    maximum: float
    state_count: int


class TrendPointResponse(_FromAttributes):
    year: int
    value: float
    change: float
    change_percent: float


class TrendSeriesResponse(_FromAttributes):
    statistic_id: int
    statistic_name: str
    state_id: int
    state_name: str
    trends: list[TrendPointResponse]


class RecomputeSummaryResponse(_FromAttributes):
    year: int
    recomputed: list[int]
    failed: list[int]


class YearCompletenessResponse(_FromAttributes):
    year: int
    production_states: int
    staged_states: int
    overlap_states: int
    total_states: int
    coverage_percentage: int
    has_overlap: bool


class MetricCompletenessResponse(_FromAttributes):
    id: int
    name: str
    ra_number: str | None = None
    unit: str
    years: list[YearCompletenessResponse]
    total_years: int
    years_with_data: int
    coverage_percentage: int


class CategoryCompletenessResponse(_FromAttributes):
    id: int
    name: str
    metrics: list[MetricCompletenessResponse]
    total_metrics: int
    metrics_with_data: int
    coverage_percentage: int


class CompletenessSummaryResponse(_FromAttributes):
    total_categories: int
    total_metrics: int
    total_years: int
    total_states: int
    categories_with_data: int
    metrics_with_data: int
    years_with_data: int
    overall_coverage_percentage: int


class CompletenessFiltersResponse(_FromAttributes):
    category_id: int | None = None
    statistic_id: int | None = None
    year: int | None = None
    data_state: str | None = None
    show_incomplete_only: bool = False
    show_staged_only: bool = False


class CompletenessReportResponse(_FromAttributes):
    categories: list[CategoryCompletenessResponse]
    summary: CompletenessSummaryResponse
    filters: CompletenessFiltersResponse


class OverlapEntryResponse(_FromAttributes):
    statistic_id: int
    statistic_name: str
    year: int
    state_id: int
    state_name: str
    staged_value: float
    production_value: float
    difference: float


class OverlapAnalysisResponse(_FromAttributes):
    overlaps: list[OverlapEntryResponse]
    total_overlaps: int
    average_difference: float
