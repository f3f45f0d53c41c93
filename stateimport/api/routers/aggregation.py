"""
stateimport/api/routers/aggregation.py

Read-side analytics endpoints over published facts: national averages,
rankings, comparisons, trends and data completeness.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Literal, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Query, status

from stateimport.api.dependencies import get_aggregation_service, get_completeness_service
from stateimport.domain.aggregation import CompletenessFilters
from stateimport.schemas.aggregation import (
    CompletenessReportResponse,
    NationalAverageResponse,
    OverlapAnalysisResponse,
    PerformersResponse,
    RecomputeSummaryResponse,
    StateComparisonResponse,
    StatisticComparisonResponse,
    TrendSeriesResponse,
)
from stateimport.services.aggregation_service import (
    AggregationNotFoundError,
    AggregationService,
    AggregationValidationError,
)
from stateimport.services.completeness_service import CompletenessService

router = APIRouter(prefix="/aggregations", tags=["aggregations"])

T = TypeVar("T")


def _run(operation: Callable[[], T]) -> T:
    try:
        return operation()
    except AggregationNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except AggregationValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc


@router.get("/national-average", response_model=NationalAverageResponse)
def national_average(
    statistic_id: int = Query(..., ge=1),
    year: int = Query(...),
    service: AggregationService = Depends(get_aggregation_service),
) -> NationalAverageResponse:
    result = _run(lambda: service.national_average(statistic_id, year))
    return NationalAverageResponse.model_validate(result)


@router.post("/national-averages/recompute", response_model=RecomputeSummaryResponse)
def recompute_national_averages(
    year: int = Query(...),
    service: AggregationService = Depends(get_aggregation_service),
) -> RecomputeSummaryResponse:
    return RecomputeSummaryResponse.model_validate(service.recompute_national_averages(year))


@router.get("/statistic-comparison", response_model=StatisticComparisonResponse)
def statistic_comparison(
    statistic_id: int = Query(..., ge=1),
    year: int = Query(...),
    service: AggregationService = Depends(get_aggregation_service),
) -> StatisticComparisonResponse:
    result = _run(lambda: service.statistic_comparison(statistic_id, year))
    return StatisticComparisonResponse.model_validate(result)


@router.get("/performers", response_model=PerformersResponse)
def top_bottom_performers(
    statistic_id: int = Query(..., ge=1),
    year: int = Query(...),
    limit: int | None = Query(default=None, ge=1),
    order: Literal["desc", "asc"] = Query(default="desc"),
    service: AggregationService = Depends(get_aggregation_service),
) -> PerformersResponse:
    result = _run(lambda: service.top_bottom_performers(statistic_id, year, limit=limit, order=order))
    return PerformersResponse.model_validate(result)


@router.get("/state-comparison", response_model=StateComparisonResponse)
def state_comparison(
    state_id: int = Query(..., ge=1),
    year: int = Query(...),
    service: AggregationService = Depends(get_aggregation_service),
) -> StateComparisonResponse:
    result = _run(lambda: service.state_comparison(state_id, year))
    return StateComparisonResponse.model_validate(result)


@router.get("/trends", response_model=TrendSeriesResponse)
def trend_data(
    statistic_id: int = Query(..., ge=1),
    state_id: int = Query(..., ge=1),
    service: AggregationService = Depends(get_aggregation_service),
) -> TrendSeriesResponse:
    result = _run(lambda: service.trend_data(statistic_id, state_id))
    return TrendSeriesResponse.model_validate(result)


@router.get("/completeness", response_model=CompletenessReportResponse)
def completeness_report(
    category_id: int | None = Query(default=None),
    statistic_id: int | None = Query(default=None),
    year: int | None = Query(default=None),
    data_state: str | None = Query(default=None),
    show_incomplete_only: bool = Query(default=False),
    show_staged_only: bool = Query(default=False),
    service: CompletenessService = Depends(get_completeness_service),
) -> CompletenessReportResponse:
    filters = CompletenessFilters(
        category_id=category_id,
        statistic_id=statistic_id,
        year=year,
        data_state=data_state,  # type: ignore[arg-type]
        show_incomplete_only=show_incomplete_only,
        show_staged_only=show_staged_only,
    )
    report = _run(lambda: service.completeness_report(filters))
    return CompletenessReportResponse.model_validate(report)


@router.get("/overlap", response_model=OverlapAnalysisResponse)
def overlap_analysis(
    service: CompletenessService = Depends(get_completeness_service),
) -> OverlapAnalysisResponse:
    return OverlapAnalysisResponse.model_validate(service.overlap_analysis())
