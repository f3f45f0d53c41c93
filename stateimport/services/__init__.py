"""
stateimport/services package marker.
"""

from stateimport.services.aggregation_service import (
    AggregationNotFoundError,
    AggregationService,
    AggregationValidationError,
)
from stateimport.services.cache import TTLCache
from stateimport.services.completeness_service import CompletenessService
from stateimport.services.csv_import_service import CSVImportService, build_csv_import_service
from stateimport.services.fingerprint_service import FingerprintGuard, compute_fingerprint
from stateimport.services.template_registry import DEFAULT_TEMPLATES, TemplateRegistry

__all__ = [
    "AggregationNotFoundError",
    "AggregationService",
    "AggregationValidationError",
    "CSVImportService",
    "CompletenessService",
    "DEFAULT_TEMPLATES",
    "FingerprintGuard",
    "TTLCache",
    "TemplateRegistry",
    "build_csv_import_service",
    "compute_fingerprint",
]
