"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.catalog import Category, State, Statistic
from db.models.csv_import import (
    CSVImport,
    CSVImportStaging,
    CSVImportTemplate,
    ImportStatus,
    TemplateKind,
    ValidationStatus,
)
from db.models.data_point import DataPoint, ImportSession
from db.models.import_log import ImportLog, ImportLogLevel
from db.models.national_average import NationalAverage

__all__ = [
    "State",
    "Category",
    "Statistic",
    "CSVImportTemplate",
    "CSVImport",
    "CSVImportStaging",
    "ImportStatus",
    "TemplateKind",
    "ValidationStatus",
    "ImportSession",
    "DataPoint",
    "NationalAverage",
    "ImportLog",
    "ImportLogLevel",
]
