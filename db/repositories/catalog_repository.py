"""
Read-only lookups against the reference catalog (states, categories,
statistics).
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from db.models.catalog import Category, State, Statistic


class ReferenceCatalog(Protocol):
    """
    Name-to-identifier lookups the import pipeline relies on.
    """

    def find_state(self, name: str) -> State | None:
        ...

    def find_category(self, name: str) -> Category | None:
        ...

    def find_statistic(self, *, category_id: int, name: str) -> Statistic | None:
        ...

    def get_statistic(self, statistic_id: int) -> Statistic | None:
        ...


class CatalogRepository:
    """
    SQLAlchemy-backed reference catalog. All name matching is
    case-insensitive and whitespace-trimmed.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def find_state(self, name: str) -> State | None:
        """
        Match a state by full name or abbreviation.
        """

        needle = name.strip().lower()
        if not needle:
            return None
        stmt = (
            select(State)
            .where(
                or_(
                    func.lower(State.name) == needle,
                    func.lower(State.abbreviation) == needle,
                )
            )
            .order_by(State.id)
        )
        return self._session.scalars(stmt).first()

    def find_category(self, name: str) -> Category | None:
        needle = name.strip().lower()
        if not needle:
            return None
        stmt = select(Category).where(func.lower(Category.name) == needle).order_by(Category.id)
        return self._session.scalars(stmt).first()

    def find_statistic(self, *, category_id: int, name: str) -> Statistic | None:
        """
        Match a statistic by name inside one category.
        """

        needle = name.strip().lower()
        if not needle:
            return None
        stmt = (
            select(Statistic)
            .where(
                Statistic.category_id == category_id,
                func.lower(Statistic.name) == needle,
            )
            .order_by(Statistic.id)
        )
        return self._session.scalars(stmt).first()

    def get_state(self, state_id: int) -> State | None:
        return self._session.get(State, state_id)

    def get_category(self, category_id: int) -> Category | None:
        return self._session.get(Category, category_id)

    def get_statistic(self, statistic_id: int) -> Statistic | None:
        return self._session.get(Statistic, statistic_id)

    def existing_state_ids(self, state_ids: Iterable[int]) -> set[int]:
        ids = set(state_ids)
        if not ids:
            return set()
        return set(self._session.scalars(select(State.id).where(State.id.in_(ids))).all())

    def existing_statistic_ids(self, statistic_ids: Iterable[int]) -> set[int]:
        ids = set(statistic_ids)
        if not ids:
            return set()
        return set(
            self._session.scalars(select(Statistic.id).where(Statistic.id.in_(ids))).all()
        )

    def states_by_id(self, state_ids: Iterable[int]) -> dict[int, State]:
        ids = set(state_ids)
        if not ids:
            return {}
        return {state.id: state for state in self._session.scalars(select(State).where(State.id.in_(ids))).all()}

    def statistics_by_id(self, statistic_ids: Iterable[int]) -> dict[int, Statistic]:
        ids = set(statistic_ids)
        if not ids:
            return {}
        stmt = select(Statistic).where(Statistic.id.in_(ids))
        return {statistic.id: statistic for statistic in self._session.scalars(stmt).all()}

    def list_active_categories(self) -> list[Category]:
        stmt = select(Category).where(Category.is_active.is_(True)).order_by(Category.name)
        return list(self._session.scalars(stmt).all())

    def list_active_statistics(self) -> list[Statistic]:
        stmt = select(Statistic).where(Statistic.is_active.is_(True)).order_by(Statistic.name)
        return list(self._session.scalars(stmt).all())

    def count_active_states(self, *, excluded_name: str | None = None) -> int:
        stmt = select(func.count(State.id)).where(State.is_active.is_(True))
        if excluded_name:
            stmt = stmt.where(func.lower(State.name) != excluded_name.strip().lower())
        return int(self._session.scalar(stmt) or 0)
