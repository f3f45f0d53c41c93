"""Package marker for API routers."""

from stateimport.api.routers.aggregation import router as aggregation_router
from stateimport.api.routers.csv_imports import router as csv_imports_router

__all__ = ["aggregation_router", "csv_imports_router"]
