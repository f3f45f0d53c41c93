"""
db/models/catalog.py

Reference catalog tables: states, categories and the statistics
(measures) defined inside each category.

The catalog is owned by the surrounding application; the import pipeline
only reads it to resolve human-readable names into identifiers.
"""

from __future__ import annotations

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base


class State(Base):
    __tablename__ = "states"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
    abbreviation: Mapped[str] = mapped_column(String(8), nullable=False, unique=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<State id={self.id} name={self.name!r}>"


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    statistics: Mapped[list["Statistic"]] = relationship(
        "Statistic",
        back_populates="category",
    )


class Statistic(Base):
    """
    One named measure. Names are only unique inside their category.
    """

    __tablename__ = "statistics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    category_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("categories.id"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    ra_number: Mapped[str | None] = mapped_column(
        String(32),
        nullable=True,
        comment="External reference number, e.g. 1001",
    )
    unit: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    category: Mapped[Category] = relationship("Category", back_populates="statistics")

    __table_args__ = (
        UniqueConstraint("category_id", "name", name="uq_statistics_category_name"),
        Index("ix_statistics_category_id", "category_id"),
    )

    def __repr__(self) -> str:
        return f"<Statistic id={self.id} name={self.name!r} category_id={self.category_id}>"
