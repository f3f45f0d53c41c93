"""
stateimport/schemas package marker.
"""

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
from stateimport.schemas.csv_import import (
    CSVImportResponse,
    CSVImportResultResponse,
    CSVTemplateResponse,
    DuplicateCheckRequest,
    DuplicateCheckResponse,
    FailedRowResponse,
    ImportLogResponse,
    PromotionResultResponse,
    RollbackResultResponse,
    ValidationIssueResponse,
    ValidationResultResponse,
)

__all__ = [
    "CSVImportResponse",
    "CSVImportResultResponse",
    "CSVTemplateResponse",
    "CompletenessReportResponse",
    "DuplicateCheckRequest",
    "DuplicateCheckResponse",
    "FailedRowResponse",
    "ImportLogResponse",
    "NationalAverageResponse",
    "OverlapAnalysisResponse",
    "PerformersResponse",
    "PromotionResultResponse",
    "RecomputeSummaryResponse",
    "RollbackResultResponse",
    "StateComparisonResponse",
    "StatisticComparisonResponse",
    "TrendSeriesResponse",
    "ValidationIssueResponse",
    "ValidationResultResponse",
]
