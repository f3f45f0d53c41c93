"""
stateimport/mappers/row_mapper.py

Maps template-specific CSV rows into typed row shapes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence

from db.models.csv_import import TemplateKind
from stateimport.domain.csv_import import MappedRow, MultiCategoryRow, SingleCategoryRow

# Canonical field -> header name, per template kind.
TEMPLATE_COLUMNS: dict[TemplateKind, dict[str, str]] = {
    TemplateKind.MULTI_CATEGORY: {
        "state": "State",
        "year": "Year",
        "category": "Category",
        "measure": "Measure",
        "value": "Value",
    },
    TemplateKind.SINGLE_CATEGORY: {
        "state": "State",
        "year": "Year",
        "value": "Value",
    },
    TemplateKind.LEGACY_EXPORT: {
        "state": "State",
        "year": "Year",
        "category": "Category",
        "measure": "Measure Name",
        "value": "Value",
    },
}


def normalize_header(header: str) -> str:
    """
    Normalize a column name for case-insensitive matching.
    """

    return header.replace("\ufeff", "").strip().lower()


@dataclass(frozen=True)
class ColumnMapping:
    """
    Resolved canonical-field to source-header mapping for one file.
    """

    kind: TemplateKind
    canonical_to_source: dict[str, str]


class RowMapper:
    """
    Turns raw ``csv.DictReader`` rows into :class:`MultiCategoryRow` or
    :class:`SingleCategoryRow` values.
    """

    def resolve_columns(self, headers: Sequence[str], kind: TemplateKind) -> ColumnMapping:
        lookup = {normalize_header(header): header for header in headers if header}
        resolved: dict[str, str] = {}
        for canonical_field, expected in TEMPLATE_COLUMNS[kind].items():
            source = lookup.get(normalize_header(expected))
            if source is not None:
                resolved[canonical_field] = source
        return ColumnMapping(kind=kind, canonical_to_source=resolved)

    def map_row(
        self,
        *,
        raw_row: Mapping[str | None, object],
        row_number: int,
        mapping: ColumnMapping,
    ) -> MappedRow:
        raw = _clean_raw(raw_row)

        def pick(canonical_field: str) -> str:
            source = mapping.canonical_to_source.get(canonical_field)
            if source is None:
                return ""
            return raw.get(source, "").strip()

        if mapping.kind is TemplateKind.SINGLE_CATEGORY:
            return SingleCategoryRow(
                row_number=row_number,
                state=pick("state"),
                year=pick("year"),
                value=pick("value"),
                raw=raw,
            )
        return MultiCategoryRow(
            row_number=row_number,
            state=pick("state"),
            year=pick("year"),
            category=pick("category"),
            measure=pick("measure"),
            value=pick("value"),
            raw=raw,
        )

    @staticmethod
    def is_completely_empty_row(raw_row: Mapping[str | None, object]) -> bool:
        for value in raw_row.values():
            if isinstance(value, list):
                if any(str(item).strip() for item in value):
                    return False
            elif value is not None and str(value).strip():
                return False
        return True


def _clean_raw(raw_row: Mapping[str | None, object]) -> dict[str, str]:
    """
    Copy a DictReader row into a JSON-safe ``{header: text}`` payload.

    Overflow cells (DictReader's ``None`` key) are kept under ``_extra``.
    """

    cleaned: dict[str, str] = {}
    for key, value in raw_row.items():
        if key is None:
            if isinstance(value, list) and value:
                cleaned["_extra"] = ",".join(str(item) for item in value)
            continue
        cleaned[str(key).replace("\ufeff", "").strip()] = "" if value is None else str(value)
    return cleaned
