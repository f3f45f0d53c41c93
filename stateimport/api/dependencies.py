"""
stateimport/api/dependencies.py

Shared FastAPI dependencies: request validation, acting user identity,
database sessions and service construction.
"""

from __future__ import annotations

from collections.abc import Iterator

from fastapi import Depends, File, Header, HTTPException, Request, UploadFile, status
from sqlalchemy.orm import Session

from stateimport.config import get_aggregation_settings
from stateimport.services.aggregation_service import AggregationService
from stateimport.services.cache import TTLCache
from stateimport.services.completeness_service import CompletenessService
from stateimport.services.csv_import_service import CSVImportService

CSV_CONTENT_TYPES = {
    "text/csv",
    "application/csv",
    "application/vnd.ms-excel",
}


def get_csv_upload(file: UploadFile = File(...)) -> UploadFile:
    """
    Validate that the uploaded file is a CSV by extension or MIME type.
    """

    filename = (file.filename or "").strip().lower()
    content_type = (file.content_type or "").strip().lower()

    is_csv_filename = filename.endswith(".csv")
    is_csv_content_type = content_type in CSV_CONTENT_TYPES

    if not is_csv_filename and not is_csv_content_type:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only CSV files are allowed.",
        )

    return file


def get_acting_user_id(x_user_id: str | None = Header(default=None)) -> int:
    """
    Read the acting user id supplied by the upstream session layer.
    """

    if x_user_id is None or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id header is required.",
        )
    try:
        user_id = int(x_user_id.strip())
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-User-Id must be an integer.",
        ) from exc
    if user_id < 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-User-Id must be positive.",
        )
    return user_id


def get_db(request: Request) -> Iterator[Session]:
    """
    Yield a session from the app's session factory and always close it.
    """

    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_cache(request: Request) -> TTLCache:
    return request.app.state.cache


def get_csv_import_service(request: Request) -> CSVImportService:
    return request.app.state.csv_import_service


def get_aggregation_service(request: Request, db: Session = Depends(get_db)) -> AggregationService:
    return AggregationService(db, cache=get_cache(request), settings=get_aggregation_settings())


def get_completeness_service(db: Session = Depends(get_db)) -> CompletenessService:
    return CompletenessService(db, settings=get_aggregation_settings())
