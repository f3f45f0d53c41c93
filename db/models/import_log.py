"""
db/models/import_log.py

Per-attempt log of validation errors, warnings and system errors.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONVariant


class ImportLogLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    VALIDATION_ERROR = "validation_error"
    SYSTEM_ERROR = "system_error"


class ImportLog(Base):
    __tablename__ = "import_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    csv_import_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("csv_imports.id", ondelete="CASCADE"),
        nullable=False,
    )
    log_level: Mapped[str] = mapped_column(String(32), nullable=False)
    row_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    field_name: Mapped[str | None] = mapped_column(String(64), nullable=True)
    field_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    failure_category: Mapped[str] = mapped_column(String(32), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[dict[str, Any] | None] = mapped_column(JSONVariant, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("ix_import_logs_csv_import_id", "csv_import_id"),
        Index("ix_import_logs_csv_import_level", "csv_import_id", "log_level"),
    )
