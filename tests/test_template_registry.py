"""
tests/test_template_registry.py

Template seeding, resolution and strict header checks.
"""

from __future__ import annotations

import pytest

from db.repositories.errors import TemplateNotFoundError
from db.repositories.template_repository import TemplateRepository
from stateimport.failure_codes import FailureCategory
from stateimport.services.template_registry import DEFAULT_TEMPLATES, TemplateRegistry
from stateimport.validators.header_validator import validate_headers

EXPECTED = ["State", "Year", "Category", "Measure", "Value"]


class TestValidateHeaders:
    def test_exact_match_is_ok(self) -> None:
        result = validate_headers(EXPECTED, EXPECTED)
        assert result.ok is True
        assert result.missing == []
        assert result.unexpected == []

    def test_comparison_ignores_case_order_and_whitespace(self) -> None:
        result = validate_headers([" value", "MEASURE", "category ", "year", "State"], EXPECTED)
        assert result.ok is True

    def test_reports_missing_and_unexpected(self) -> None:
        result = validate_headers(["State", "Year", "Category", "Value", "Notes"], EXPECTED)

        assert result.ok is False
        assert result.missing == ["Measure"]
        assert result.unexpected == ["Notes"]

        messages = [issue.message for issue in result.to_issues()]
        assert messages == ['Missing required column "Measure"', 'Unexpected column "Notes"']
        assert {issue.failure_category for issue in result.to_issues()} == {FailureCategory.CSV_PARSING}

    def test_blank_header_cells_are_ignored(self) -> None:
        assert validate_headers([*EXPECTED, "", "  "], EXPECTED).ok is True

    def test_byte_order_mark_on_first_header(self) -> None:
        assert validate_headers(["\ufeffState", *EXPECTED[1:]], EXPECTED).ok is True


class TestTemplateRegistry:
    def test_seed_is_idempotent(self, db) -> None:
        registry = TemplateRegistry(TemplateRepository(db))

        first = registry.seed_default_templates()
        db.commit()
        second = registry.seed_default_templates()

        assert first == [definition.name for definition in DEFAULT_TEMPLATES]
        assert second == []
        assert len(registry.list_templates()) == len(DEFAULT_TEMPLATES)

    def test_resolve_returns_seeded_template(self, db, catalog) -> None:
        template = TemplateRegistry(TemplateRepository(db)).resolve(catalog.multi_template)

        assert template.expected_headers == EXPECTED
        assert template.template_kind.value == "multi_category"

    def test_resolve_unknown_template_raises(self, db, catalog) -> None:
        with pytest.raises(TemplateNotFoundError):
            TemplateRegistry(TemplateRepository(db)).resolve(9999)

    def test_resolve_deactivated_template_raises(self, db, catalog) -> None:
        repository = TemplateRepository(db)
        repository.deactivate(catalog.legacy_template)
        db.commit()

        with pytest.raises(TemplateNotFoundError):
            TemplateRegistry(repository).resolve(catalog.legacy_template)
        assert catalog.legacy_template not in {t.id for t in TemplateRegistry(repository).list_templates()}
