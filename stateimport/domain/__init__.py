"""
stateimport/domain package marker.
"""

from stateimport.domain.aggregation import (
    CompletenessFilters,
    CompletenessReport,
    NationalAverageResult,
    OverlapAnalysis,
    PerformerEntry,
    PerformersResult,
    RecomputeSummary,
    StateComparison,
    StateComparisonEntry,
    StatisticComparison,
    TrendPoint,
    TrendSeries,
)
from stateimport.domain.csv_import import (
    CSVImportResult,
    DuplicateCheckResult,
    FailedRow,
    HeaderValidationResult,
    MappedRow,
    MultiCategoryRow,
    PromotionResult,
    RollbackResult,
    SingleCategoryContext,
    SingleCategoryRow,
    StagingStats,
    ValidationIssue,
    ValidationResult,
    ValidationStats,
)

__all__ = [
    "CSVImportResult",
    "CompletenessFilters",
    "CompletenessReport",
    "DuplicateCheckResult",
    "FailedRow",
    "HeaderValidationResult",
    "MappedRow",
    "MultiCategoryRow",
    "NationalAverageResult",
    "OverlapAnalysis",
    "PerformerEntry",
    "PerformersResult",
    "PromotionResult",
    "RecomputeSummary",
    "RollbackResult",
    "SingleCategoryContext",
    "SingleCategoryRow",
    "StagingStats",
    "StateComparison",
    "StateComparisonEntry",
    "StatisticComparison",
    "TrendPoint",
    "TrendSeries",
    "ValidationIssue",
    "ValidationResult",
    "ValidationStats",
]
