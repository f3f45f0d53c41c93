"""
db/models/csv_import.py

CSV import pipeline tables: templates, import attempts and staged rows.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, JSONVariant, TimestampMixin


class TemplateKind(str, Enum):
    MULTI_CATEGORY = "multi_category"
    SINGLE_CATEGORY = "single_category"
    LEGACY_EXPORT = "legacy_export"


class ImportStatus(str, Enum):
    """
    Import attempt lifecycle.

    uploaded -> staged -> validating -> validated -> published -> rolled_back
    staged/validating -> validation_failed
    any step -> failed
    """

    UPLOADED = "uploaded"
    STAGED = "staged"
    VALIDATING = "validating"
    VALIDATED = "validated"
    VALIDATION_FAILED = "validation_failed"
    PUBLISHED = "published"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


RETRYABLE_STATUSES = frozenset({ImportStatus.FAILED, ImportStatus.VALIDATION_FAILED})
IN_FLIGHT_STATUSES = frozenset(
    {
        ImportStatus.UPLOADED,
        ImportStatus.STAGED,
        ImportStatus.VALIDATING,
        ImportStatus.VALIDATED,
    }
)


class ValidationStatus(str, Enum):
    PENDING = "pending"
    VALID = "valid"
    INVALID = "invalid"
    WARNING = "warning"


class CSVImportTemplate(Base, TimestampMixin):
    """
    Accepted CSV shape. ``template_schema`` holds ``{"expectedHeaders": [...]}``.
    """

    __tablename__ = "csv_import_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    kind: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="multi_category, single_category, legacy_export",
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    template_schema: Mapped[dict[str, Any]] = mapped_column(JSONVariant, nullable=False)
    sample_data: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    @property
    def expected_headers(self) -> list[str]:
        return [str(header) for header in (self.template_schema or {}).get("expectedHeaders", [])]

    @property
    def template_kind(self) -> TemplateKind:
        return TemplateKind(self.kind)

    def __repr__(self) -> str:
        return f"<CSVImportTemplate id={self.id} name={self.name!r} kind={self.kind!r}>"


class CSVImport(Base):
    """
    One upload's lifecycle record.

    ``metadata_json`` carries the free-form upload metadata; for
    single-category templates it also holds the resolved category and
    statistic identifiers. ``duplicate_of`` points at the earlier attempt
    this one retries.
    """

    __tablename__ = "csv_imports"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    file_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="SHA-256 of normalized file content",
    )
    template_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("csv_import_templates.id"),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=ImportStatus.UPLOADED.value,
    )
    uploaded_by: Mapped[int] = mapped_column(Integer, nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    validated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    published_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rolled_back_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rolled_back_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_content: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="Decoded upload text, re-parsed when the attempt is retried",
    )
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata",
        JSONVariant,
        nullable=True,
    )
    validation_summary: Mapped[dict[str, Any] | None] = mapped_column(JSONVariant, nullable=True)
    duplicate_of: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("csv_imports.id"),
        nullable=True,
    )
    import_session_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("import_sessions.id"),
        nullable=True,
        comment="Production session created when this attempt was published",
    )
    total_rows: Mapped[int | None] = mapped_column(Integer, nullable=True)
    valid_rows: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error_rows: Mapped[int | None] = mapped_column(Integer, nullable=True)
    processing_time_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)

    template: Mapped[CSVImportTemplate | None] = relationship("CSVImportTemplate")

    __table_args__ = (
        Index("ix_csv_imports_file_hash", "file_hash"),
        Index("ix_csv_imports_status", "status"),
        Index("ix_csv_imports_file_hash_uploaded_at", "file_hash", "uploaded_at"),
    )

    @property
    def import_status(self) -> ImportStatus:
        return ImportStatus(self.status)

    def __repr__(self) -> str:
        return f"<CSVImport id={self.id} filename={self.filename!r} status={self.status!r}>"


class CSVImportStaging(Base):
    """
    One parsed CSV row awaiting validation and promotion.

    A row staged ``valid`` always has a state id, a statistic id, a year and
    a numeric value.
    """

    __tablename__ = "csv_import_staging"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    csv_import_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("csv_imports.id", ondelete="CASCADE"),
        nullable=False,
    )
    row_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Original CSV line number (header is line 1)",
    )
    state_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    state_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("states.id"), nullable=True)
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    category_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    statistic_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    statistic_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("statistics.id"),
        nullable=True,
    )
    value: Mapped[float | None] = mapped_column(Float, nullable=True)
    raw_data: Mapped[dict[str, Any]] = mapped_column(JSONVariant, nullable=False)
    validation_status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=ValidationStatus.PENDING.value,
    )
    validation_errors: Mapped[list[dict[str, Any]] | None] = mapped_column(
        JSONVariant,
        nullable=True,
    )
    is_processed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_csv_import_staging_import", "csv_import_id"),
        Index("ix_csv_import_staging_import_row", "csv_import_id", "row_number"),
    )

    def __repr__(self) -> str:
        return (
            f"<CSVImportStaging id={self.id} csv_import_id={self.csv_import_id} "
            f"row={self.row_number} status={self.validation_status!r}>"
        )
