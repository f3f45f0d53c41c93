"""
db/models/data_point.py

Production facts and the import sessions that own them.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base


class ImportSession(Base):
    """
    One coherent publish event. Facts published by a promotion hang off the
    session created for it; rollback deletes them by session id.
    """

    __tablename__ = "import_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    data_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    record_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    import_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    data_points: Mapped[list["DataPoint"]] = relationship(
        "DataPoint",
        back_populates="import_session",
        passive_deletes=True,
    )

    __table_args__ = (Index("ix_import_sessions_is_active", "is_active"),)


class DataPoint(Base):
    __tablename__ = "data_points"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    import_session_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("import_sessions.id"),
        nullable=False,
    )
    state_id: Mapped[int] = mapped_column(Integer, ForeignKey("states.id"), nullable=False)
    statistic_id: Mapped[int] = mapped_column(Integer, ForeignKey("statistics.id"), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    value: Mapped[float] = mapped_column(Float, nullable=False)

    import_session: Mapped[ImportSession] = relationship(
        "ImportSession",
        back_populates="data_points",
    )

    __table_args__ = (
        Index("ix_data_points_import_session_id", "import_session_id"),
        Index("ix_data_points_state_statistic_year", "state_id", "statistic_id", "year"),
        Index("ix_data_points_statistic_year", "statistic_id", "year"),
    )

    def __repr__(self) -> str:
        return (
            f"<DataPoint id={self.id} state_id={self.state_id} "
            f"statistic_id={self.statistic_id} year={self.year} value={self.value}>"
        )
