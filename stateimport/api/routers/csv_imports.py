"""
stateimport/api/routers/csv_imports.py

CSV import HTTP endpoints: upload, validate, promote, rollback, retry and
the read views around an import attempt.
"""

from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Depends, Form, HTTPException, Query, Response, UploadFile, status
from sqlalchemy.orm import Session

from db.models.csv_import import ImportStatus
from db.repositories.template_repository import TemplateRepository
from stateimport.api.dependencies import get_acting_user_id, get_csv_import_service, get_csv_upload, get_db
from stateimport.domain.csv_import import CSVImportResult
from stateimport.schemas.csv_import import (
    CSVImportResponse,
    CSVImportResultResponse,
    CSVTemplateResponse,
    DuplicateCheckRequest,
    DuplicateCheckResponse,
    FailedRowResponse,
    ImportLogResponse,
    PromotionResultResponse,
    RollbackResultResponse,
    ValidationResultResponse,
)
from stateimport.failure_codes import FailureCategory
from stateimport.services.csv_import_service import CSVImportService
from stateimport.services.template_registry import TemplateRegistry

router = APIRouter(prefix="/csv-imports", tags=["csv-imports"])


def _parse_metadata(raw: str | None) -> dict[str, Any]:
    if raw is None or not raw.strip():
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="metadata must be a JSON object.",
        ) from exc
    if not isinstance(parsed, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="metadata must be a JSON object.",
        )
    return parsed


def _require_import(service: CSVImportService, db: Session, import_id: int) -> None:
    if service.get_import(db=db, import_id=import_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Import not found: {import_id}",
        )


@router.get("/templates", response_model=list[CSVTemplateResponse])
def list_templates(db: Session = Depends(get_db)) -> list[CSVTemplateResponse]:
    templates = TemplateRegistry(TemplateRepository(db)).list_templates()
    return [CSVTemplateResponse.model_validate(template) for template in templates]


@router.post("/upload", response_model=CSVImportResultResponse, status_code=status.HTTP_201_CREATED)
def upload_csv(
    response: Response,
    file: UploadFile = Depends(get_csv_upload),
    template_id: int = Form(...),
    metadata: str | None = Form(default=None, description="Optional JSON object of upload metadata"),
    name: str | None = Form(default=None),
    description: str | None = Form(default=None),
    user_id: int = Depends(get_acting_user_id),
    db: Session = Depends(get_db),
    service: CSVImportService = Depends(get_csv_import_service),
) -> CSVImportResultResponse:
    """
    Upload one CSV file and stage its rows.
    """

    metadata_dict = _parse_metadata(metadata)
    try:
        content = file.file.read(service.max_file_size_bytes + 1)
    finally:
        file.file.close()

    result = service.upload_and_stage(
        db=db,
        content=content,
        filename=file.filename or "upload.csv",
        template_id=template_id,
        uploaded_by=user_id,
        metadata=metadata_dict,
        name=name,
        description=description,
    )
    if not result.success:
        response.status_code = _failure_status(result.errors, duplicate=_is_blocked_duplicate(result))
    return CSVImportResultResponse.from_domain(result)


@router.post("/duplicate-check", response_model=DuplicateCheckResponse)
def check_duplicate(
    payload: DuplicateCheckRequest,
    db: Session = Depends(get_db),
    service: CSVImportService = Depends(get_csv_import_service),
) -> DuplicateCheckResponse:
    return DuplicateCheckResponse.from_domain(
        service.check_duplicate(db=db, fingerprint=payload.fingerprint.lower())
    )


@router.get("", response_model=list[CSVImportResponse])
def list_imports(
    limit: int = Query(default=100, ge=1, le=1000),
    import_status: ImportStatus | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    service: CSVImportService = Depends(get_csv_import_service),
) -> list[CSVImportResponse]:
    attempts = service.list_imports(db=db, limit=limit, status=import_status)
    return [CSVImportResponse.model_validate(attempt) for attempt in attempts]


@router.get("/{import_id}", response_model=CSVImportResponse)
def get_import(
    import_id: int,
    db: Session = Depends(get_db),
    service: CSVImportService = Depends(get_csv_import_service),
) -> CSVImportResponse:
    attempt = service.get_import(db=db, import_id=import_id)
    if attempt is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Import not found: {import_id}",
        )
    return CSVImportResponse.model_validate(attempt)


@router.get("/{import_id}/failed-rows", response_model=list[FailedRowResponse])
def list_failed_rows(
    import_id: int,
    db: Session = Depends(get_db),
    service: CSVImportService = Depends(get_csv_import_service),
) -> list[FailedRowResponse]:
    _require_import(service, db, import_id)
    return [FailedRowResponse.from_domain(row) for row in service.list_failed_rows(db=db, import_id=import_id)]


@router.get("/{import_id}/logs", response_model=list[ImportLogResponse])
def list_import_logs(
    import_id: int,
    db: Session = Depends(get_db),
    service: CSVImportService = Depends(get_csv_import_service),
) -> list[ImportLogResponse]:
    _require_import(service, db, import_id)
    return [
        ImportLogResponse.model_validate(entry)
        for entry in service.list_import_logs(db=db, import_id=import_id)
    ]


@router.post("/{import_id}/validate", response_model=ValidationResultResponse)
def validate_import(
    import_id: int,
    response: Response,
    db: Session = Depends(get_db),
    service: CSVImportService = Depends(get_csv_import_service),
) -> ValidationResultResponse:
    _require_import(service, db, import_id)
    result = service.validate(db=db, import_id=import_id)
    if result.stats is None and not result.is_valid:
        response.status_code = _failure_status(result.errors)
    return ValidationResultResponse.from_domain(result)


@router.post("/{import_id}/promote", response_model=PromotionResultResponse)
def promote_import(
    import_id: int,
    response: Response,
    user_id: int = Depends(get_acting_user_id),
    db: Session = Depends(get_db),
    service: CSVImportService = Depends(get_csv_import_service),
) -> PromotionResultResponse:
    _require_import(service, db, import_id)
    result = service.promote(db=db, import_id=import_id, actor_id=user_id)
    if not result.success:
        response.status_code = _failure_status(result.errors)
    return PromotionResultResponse.from_domain(result)


@router.post("/{import_id}/rollback", response_model=RollbackResultResponse)
def rollback_import(
    import_id: int,
    response: Response,
    user_id: int = Depends(get_acting_user_id),
    db: Session = Depends(get_db),
    service: CSVImportService = Depends(get_csv_import_service),
) -> RollbackResultResponse:
    _require_import(service, db, import_id)
    result = service.rollback(db=db, import_id=import_id, actor_id=user_id)
    if not result.success:
        response.status_code = _failure_status(result.errors)
    return RollbackResultResponse.from_domain(result)


@router.post("/{import_id}/retry", response_model=CSVImportResultResponse, status_code=status.HTTP_201_CREATED)
def retry_import(
    import_id: int,
    response: Response,
    user_id: int = Depends(get_acting_user_id),
    db: Session = Depends(get_db),
    service: CSVImportService = Depends(get_csv_import_service),
) -> CSVImportResultResponse:
    _require_import(service, db, import_id)
    result = service.retry(db=db, import_id=import_id, actor_id=user_id)
    if not result.success:
        response.status_code = _failure_status(result.errors, duplicate=_is_blocked_duplicate(result))
    return CSVImportResultResponse.from_domain(result)


def _is_blocked_duplicate(result: CSVImportResult) -> bool:
    # Rejected duplicates never get an attempt of their own.
    return result.import_id is None and result.duplicate_of is not None


def _failure_status(errors: list, *, duplicate: bool = False) -> int:
    """
    Map a failed result to an HTTP status: database failures are 500,
    duplicates and state conflicts 409, everything else 400.
    """

    categories = {issue.failure_category for issue in errors}
    if FailureCategory.DATABASE_ERROR in categories:
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    if duplicate:
        return status.HTTP_409_CONFLICT
    if not errors or FailureCategory.BUSINESS_RULE in categories:
        return status.HTTP_409_CONFLICT
    return status.HTTP_400_BAD_REQUEST
