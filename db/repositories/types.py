"""
Typed DTOs used by repository write paths.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from db.models.csv_import import ValidationStatus
from db.models.import_log import ImportLogLevel

FactKey = tuple[int, int, int]
"""(state_id, statistic_id, year)"""


@dataclass(frozen=True)
class StagedRowCreate:
    """
    One staged row ready for bulk insert.
    """

    csv_import_id: int
    row_number: int
    raw_data: dict[str, Any]
    validation_status: ValidationStatus
    state_name: str | None = None
    state_id: int | None = None
    year: int | None = None
    category_name: str | None = None
    statistic_name: str | None = None
    statistic_id: int | None = None
    value: float | None = None
    validation_errors: list[dict[str, Any]] | None = None

    def to_values(self) -> dict[str, Any]:
        return {
            "csv_import_id": self.csv_import_id,
            "row_number": self.row_number,
            "state_name": self.state_name,
            "state_id": self.state_id,
            "year": self.year,
            "category_name": self.category_name,
            "statistic_name": self.statistic_name,
            "statistic_id": self.statistic_id,
            "value": self.value,
            "raw_data": self.raw_data,
            "validation_status": self.validation_status.value,
            "validation_errors": self.validation_errors,
            "is_processed": False,
            "processed_at": None,
        }


@dataclass(frozen=True)
class ImportLogCreate:
    log_level: ImportLogLevel
    failure_category: str
    message: str
    row_number: int | None = None
    field_name: str | None = None
    field_value: str | None = None
    details: dict[str, Any] | None = None
