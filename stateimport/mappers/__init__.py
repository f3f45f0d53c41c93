"""
stateimport/mappers package marker.
"""

from stateimport.mappers.row_mapper import TEMPLATE_COLUMNS, ColumnMapping, RowMapper, normalize_header

__all__ = [
    "TEMPLATE_COLUMNS",
    "ColumnMapping",
    "RowMapper",
    "normalize_header",
]
