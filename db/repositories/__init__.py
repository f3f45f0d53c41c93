"""
Repository layer exports.
"""

from db.repositories.catalog_repository import CatalogRepository, ReferenceCatalog
from db.repositories.csv_import_repository import CSVImportRepository
from db.repositories.data_point_repository import DataPointRepository, FactCreate
from db.repositories.errors import RepositoryError, TemplateNotFoundError
from db.repositories.import_log_repository import ImportLogRepository
from db.repositories.national_average_repository import NationalAverageRepository
from db.repositories.staging_repository import StagingRepository
from db.repositories.template_repository import TemplateRepository
from db.repositories.types import FactKey, ImportLogCreate, StagedRowCreate

__all__ = [
    "CatalogRepository",
    "ReferenceCatalog",
    "CSVImportRepository",
    "DataPointRepository",
    "FactCreate",
    "ImportLogRepository",
    "NationalAverageRepository",
    "StagingRepository",
    "TemplateRepository",
    "FactKey",
    "ImportLogCreate",
    "StagedRowCreate",
    "RepositoryError",
    "TemplateNotFoundError",
]
