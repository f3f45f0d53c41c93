"""
db/models/national_average.py

Persisted national averages. One row per (statistic, year); fully
recomputable from data_points, so rows may be deleted at any time.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base

_UNIQUE_CONSTRAINT = "uq_national_averages_statistic_year"


class NationalAverage(Base):
    __tablename__ = "national_averages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    statistic_id: Mapped[int] = mapped_column(Integer, ForeignKey("statistics.id"), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    value: Mapped[float] = mapped_column(Float, nullable=False)
    state_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Number of states included in the calculation",
    )
    calculation_method: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default="arithmetic_mean",
    )
    last_calculated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        UniqueConstraint("statistic_id", "year", name=_UNIQUE_CONSTRAINT),
    )
