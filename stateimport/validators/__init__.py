"""
stateimport/validators package marker.
"""

from stateimport.validators.header_validator import validate_headers
from stateimport.validators.row_validator import CSVRowValidator, ParsedFields
from stateimport.validators.staged_row_validator import RowCheckContext, StagedRowValidator

__all__ = [
    "CSVRowValidator",
    "ParsedFields",
    "RowCheckContext",
    "StagedRowValidator",
    "validate_headers",
]
