"""Shared failure categories for import error handling."""

from enum import Enum


class FailureCategory(str, Enum):
    CSV_PARSING = "csv_parsing"
    MISSING_REQUIRED = "missing_required"
    DATA_TYPE = "data_type"
    INVALID_REFERENCE = "invalid_reference"
    BUSINESS_RULE = "business_rule"
    DATABASE_ERROR = "database_error"


BLOCKING_FAILURES = [
    FailureCategory.CSV_PARSING,
    FailureCategory.MISSING_REQUIRED,
    FailureCategory.DATA_TYPE,
    FailureCategory.INVALID_REFERENCE,
    FailureCategory.DATABASE_ERROR,
]

NON_BLOCKING_FAILURES = [
    FailureCategory.BUSINESS_RULE,
]
