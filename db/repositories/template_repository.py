"""
Persistence helpers for CSV import templates.
"""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.csv_import import CSVImportTemplate, TemplateKind


class TemplateRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, template_id: int) -> CSVImportTemplate | None:
        return self._session.get(CSVImportTemplate, template_id)

    def get_by_name(self, name: str) -> CSVImportTemplate | None:
        stmt = select(CSVImportTemplate).where(CSVImportTemplate.name == name.strip())
        return self._session.scalars(stmt).first()

    def list_active(self) -> list[CSVImportTemplate]:
        stmt = (
            select(CSVImportTemplate)
            .where(CSVImportTemplate.is_active.is_(True))
            .order_by(CSVImportTemplate.id)
        )
        return list(self._session.scalars(stmt).all())

    def ensure(
        self,
        *,
        name: str,
        kind: TemplateKind,
        expected_headers: Sequence[str],
        description: str | None = None,
        sample_data: str | None = None,
    ) -> tuple[CSVImportTemplate, bool]:
        """
        Insert a template when no template with ``name`` exists.

        Existing templates are returned untouched. Returns
        ``(template, created)``.
        """

        existing = self.get_by_name(name)
        if existing is not None:
            return existing, False

        template = CSVImportTemplate(
            name=name.strip(),
            kind=kind.value,
            description=description,
            template_schema={"expectedHeaders": list(expected_headers)},
            sample_data=sample_data,
            is_active=True,
        )
        self._session.add(template)
        self._session.flush()
        return template, True

    def deactivate(self, template_id: int) -> CSVImportTemplate | None:
        template = self.get(template_id)
        if template is None:
            return None
        template.is_active = False
        return template
