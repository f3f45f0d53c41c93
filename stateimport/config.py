"""
stateimport/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


@dataclass(frozen=True)
class CSVImportSettings:
    """
    Runtime settings for the CSV import pipeline.
    """

    batch_size: int = 1000
    max_validation_errors: int = 500
    log_validation_errors: bool = True
    implausible_value_threshold: float = 1e9
    validation_chunk_size: int = 500
    max_file_size_bytes: int = 10 * 1024 * 1024


@dataclass(frozen=True)
class AggregationSettings:
    """
    Runtime settings for national averages, rankings and completeness.
    """

    cache_ttl_seconds: float = 300.0
    excluded_state_name: str = "Nation"
    default_performer_limit: int = 10


@lru_cache(maxsize=1)
def get_csv_import_settings() -> CSVImportSettings:
    """
    Return cached CSV import settings from environment variables.
    """

    return CSVImportSettings(
        batch_size=max(1, _get_int_env("CSV_IMPORT_BATCH_SIZE", 1000)),
        max_validation_errors=max(1, _get_int_env("CSV_IMPORT_MAX_VALIDATION_ERRORS", 500)),
        log_validation_errors=_get_bool_env("CSV_IMPORT_LOG_VALIDATION_ERRORS", True),
        implausible_value_threshold=max(
            0.0, _get_float_env("CSV_IMPORT_IMPLAUSIBLE_VALUE_THRESHOLD", 1e9)
        ),
        validation_chunk_size=max(1, _get_int_env("CSV_IMPORT_VALIDATION_CHUNK_SIZE", 500)),
        max_file_size_bytes=max(1, _get_int_env("CSV_IMPORT_MAX_FILE_SIZE_BYTES", 10 * 1024 * 1024)),
    )


@lru_cache(maxsize=1)
def get_aggregation_settings() -> AggregationSettings:
    """
    Return cached aggregation settings from environment variables.
    """

    return AggregationSettings(
        cache_ttl_seconds=max(0.0, _get_float_env("AGGREGATION_CACHE_TTL_SECONDS", 300.0)),
        excluded_state_name=_get_str_env("AGGREGATION_EXCLUDED_STATE_NAME", "Nation"),
        default_performer_limit=max(1, _get_int_env("AGGREGATION_DEFAULT_PERFORMER_LIMIT", 10)),
    )
