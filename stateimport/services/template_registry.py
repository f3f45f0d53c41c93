"""
stateimport/services/template_registry.py

Well-known CSV templates, template lookup and header checks.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from db.models.csv_import import CSVImportTemplate, TemplateKind
from db.repositories.errors import TemplateNotFoundError
from db.repositories.template_repository import TemplateRepository
from stateimport.domain.csv_import import HeaderValidationResult
from stateimport.validators.header_validator import validate_headers

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TemplateDefinition:
    name: str
    kind: TemplateKind
    expected_headers: tuple[str, ...]
    description: str
    sample_data: str


MULTI_CATEGORY_TEMPLATE = TemplateDefinition(
    name="Multi-Category Data Import",
    kind=TemplateKind.MULTI_CATEGORY,
    expected_headers=("State", "Year", "Category", "Measure", "Value"),
    description="Rows carry their own category and measure; one file may span many statistics.",
    sample_data=(
        "State,Year,Category,Measure,Value\n"
        "California,2023,Economy,Gross Domestic Product,3500000\n"
        "Texas,2023,Economy,Gross Domestic Product,2200000\n"
    ),
)

SINGLE_CATEGORY_TEMPLATE = TemplateDefinition(
    name="Single-Category Data Import",
    kind=TemplateKind.SINGLE_CATEGORY,
    expected_headers=("State", "Year", "Value"),
    description=(
        "One statistic per file. Category and statistic names are supplied "
        "as categoryName and statisticName upload metadata."
    ),
    sample_data="State,Year,Value\nCalifornia,2023,100.5\nTexas,2023,85.2\n",
)

LEGACY_EXPORT_TEMPLATE = TemplateDefinition(
    name="Multi Year Export",
    kind=TemplateKind.LEGACY_EXPORT,
    expected_headers=(
        "ID",
        "State",
        "Year",
        "Category",
        "Measure Name",
        "Value",
        "state_id",
        "category_id",
        "measure_id",
    ),
    description="Legacy export format. Numeric id columns are ignored; rows are matched by name.",
    sample_data=(
        "ID,State,Year,Category,Measure Name,Value,state_id,category_id,measure_id\n"
        "1,California,2022,Economy,Gross Domestic Product,3400000,5,1,1\n"
    ),
)

DEFAULT_TEMPLATES: tuple[TemplateDefinition, ...] = (
    MULTI_CATEGORY_TEMPLATE,
    SINGLE_CATEGORY_TEMPLATE,
    LEGACY_EXPORT_TEMPLATE,
)


class TemplateRegistry:
    def __init__(self, repository: TemplateRepository) -> None:
        self._repository = repository

    def resolve(self, template_id: int) -> CSVImportTemplate:
        """
        Return the active template with ``template_id``.

        Raises TemplateNotFoundError for unknown or deactivated templates.
        """

        template = self._repository.get(template_id)
        if template is None or not template.is_active:
            raise TemplateNotFoundError(f"Template not found: {template_id}")
        return template

    def list_templates(self) -> list[CSVImportTemplate]:
        return self._repository.list_active()

    def validate_headers(
        self,
        actual_headers: Sequence[str],
        template: CSVImportTemplate,
    ) -> HeaderValidationResult:
        return validate_headers(actual_headers, template.expected_headers)

    def seed_default_templates(
        self,
        definitions: Sequence[TemplateDefinition] = DEFAULT_TEMPLATES,
    ) -> list[str]:
        """
        Insert each well-known template that is not present yet.

        Returns the names of templates created by this call. The caller
        commits.
        """

        created: list[str] = []
        for definition in definitions:
            _, was_created = self._repository.ensure(
                name=definition.name,
                kind=definition.kind,
                expected_headers=definition.expected_headers,
                description=definition.description,
                sample_data=definition.sample_data,
            )
            if was_created:
                created.append(definition.name)
                logger.info("Seeded CSV template name=%r kind=%s", definition.name, definition.kind.value)
        return created
