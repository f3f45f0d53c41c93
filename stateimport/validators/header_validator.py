"""
stateimport/validators/header_validator.py

Strict, case-insensitive CSV header checks against a template.
"""

from __future__ import annotations

from typing import Sequence

from stateimport.domain.csv_import import HeaderValidationResult
from stateimport.mappers.row_mapper import normalize_header


def validate_headers(actual_headers: Sequence[str], expected_headers: Sequence[str]) -> HeaderValidationResult:
    """
    Compare headers as case-insensitive sets.

    Every expected header must be present and no other header may appear.
    Blank header cells are ignored. Reported names keep the caller's
    original spelling.
    """

    actual = {
        normalize_header(header): header.strip()
        for header in actual_headers
        if header is not None and normalize_header(header)
    }
    expected = {normalize_header(header): header for header in expected_headers if normalize_header(header)}

    missing = [expected[key] for key in expected if key not in actual]
    unexpected = [actual[key] for key in actual if key not in expected]
    return HeaderValidationResult(
        ok=not missing and not unexpected,
        missing=missing,
        unexpected=unexpected,
    )
