from __future__ import annotations

import unittest

from db.models.csv_import import TemplateKind
from stateimport.domain.csv_import import MultiCategoryRow, SingleCategoryRow
from stateimport.mappers.row_mapper import RowMapper, normalize_header


class TestRowMapper(unittest.TestCase):
    def setUp(self) -> None:
        self.mapper = RowMapper()

    def test_resolves_columns_case_insensitively(self) -> None:
        headers = ["state", "YEAR", "Category", "measure", "Value "]

        mapping = self.mapper.resolve_columns(headers, TemplateKind.MULTI_CATEGORY)

        self.assertEqual(mapping.canonical_to_source["state"], "state")
        self.assertEqual(mapping.canonical_to_source["year"], "YEAR")
        self.assertEqual(mapping.canonical_to_source["measure"], "measure")
        self.assertEqual(mapping.canonical_to_source["value"], "Value ")

    def test_legacy_export_reads_measure_name_column(self) -> None:
        headers = ["ID", "State", "Year", "Category", "Measure Name", "Value", "state_id", "category_id", "measure_id"]
        mapping = self.mapper.resolve_columns(headers, TemplateKind.LEGACY_EXPORT)

        row = self.mapper.map_row(
            raw_row={
                "ID": "1",
                "State": "Texas",
                "Year": "2022",
                "Category": "Economy",
                "Measure Name": "GDP",
                "Value": "12",
                "state_id": "7",
                "category_id": "1",
                "measure_id": "1",
            },
            row_number=2,
            mapping=mapping,
        )

        self.assertIsInstance(row, MultiCategoryRow)
        self.assertEqual(row.measure, "GDP")
        self.assertEqual(row.state, "Texas")

    def test_maps_single_category_row_and_trims_cells(self) -> None:
        mapping = self.mapper.resolve_columns(["State", "Year", "Value"], TemplateKind.SINGLE_CATEGORY)

        row = self.mapper.map_row(
            raw_row={"State": "  California ", "Year": " 2023", "Value": "100.5 "},
            row_number=5,
            mapping=mapping,
        )

        self.assertIsInstance(row, SingleCategoryRow)
        self.assertEqual(row.row_number, 5)
        self.assertEqual(row.state, "California")
        self.assertEqual(row.year, "2023")
        self.assertEqual(row.value, "100.5")
        self.assertEqual(row.raw["State"], "  California ")

    def test_overflow_cells_are_kept_under_extra(self) -> None:
        mapping = self.mapper.resolve_columns(["State", "Year", "Value"], TemplateKind.SINGLE_CATEGORY)

        row = self.mapper.map_row(
            raw_row={"State": "Texas", "Year": "2023", "Value": "1", None: ["x", "y"]},
            row_number=2,
            mapping=mapping,
        )

        self.assertEqual(row.raw["_extra"], "x,y")
        self.assertNotIn(None, row.raw)

    def test_missing_cells_map_to_empty_strings(self) -> None:
        mapping = self.mapper.resolve_columns(["State", "Year", "Value"], TemplateKind.SINGLE_CATEGORY)

        row = self.mapper.map_row(raw_row={"State": "Texas", "Year": None, "Value": None}, row_number=2, mapping=mapping)

        self.assertEqual(row.year, "")
        self.assertEqual(row.value, "")

    def test_detects_completely_empty_rows(self) -> None:
        self.assertTrue(RowMapper.is_completely_empty_row({"State": " ", "Year": "", "Value": None}))
        self.assertFalse(RowMapper.is_completely_empty_row({"State": "", "Year": "", None: ["", "1"]}))
        self.assertFalse(RowMapper.is_completely_empty_row({"State": "Texas", "Year": "", "Value": ""}))

    def test_normalize_header_strips_bom(self) -> None:
        self.assertEqual(normalize_header("\ufeff State "), "state")


if __name__ == "__main__":
    unittest.main()
