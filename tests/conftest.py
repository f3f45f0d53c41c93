"""
tests/conftest.py

Shared fixtures: an in-memory SQLite database with the full schema, a
small reference catalog and the built-in CSV templates.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import db.models  # noqa: F401  registers all ORM models on Base.metadata
from db.base import Base
from db.models.catalog import Category, State, Statistic
from db.repositories.template_repository import TemplateRepository
from stateimport.config import AggregationSettings, CSVImportSettings
from stateimport.services.cache import TTLCache
from stateimport.services.csv_import_service import CSVImportService
from stateimport.services.template_registry import (
    LEGACY_EXPORT_TEMPLATE,
    MULTI_CATEGORY_TEMPLATE,
    SINGLE_CATEGORY_TEMPLATE,
    TemplateRegistry,
)


@dataclass(frozen=True)
class SeededCatalog:
    california: int
    texas: int
    new_york: int
    nation: int
    economy: int
    education: int
    gdp: int
    unemployment: int
    graduation_rate: int
    multi_template: int
    single_template: int
    legacy_template: int


@pytest.fixture()
def engine() -> Iterator[Engine]:
    test_engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(test_engine)
    yield test_engine
    Base.metadata.drop_all(test_engine)
    test_engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def db(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def catalog(db: Session) -> SeededCatalog:
    states = {
        "California": State(name="California", abbreviation="CA", is_active=True),
        "Texas": State(name="Texas", abbreviation="TX", is_active=True),
        "New York": State(name="New York", abbreviation="NY", is_active=True),
        "Nation": State(name="Nation", abbreviation="US", is_active=True),
    }
    economy = Category(name="Economy", sort_order=1, is_active=True)
    education = Category(name="Education", sort_order=2, is_active=True)
    db.add_all([*states.values(), economy, education])
    db.flush()

    gdp = Statistic(category_id=economy.id, name="GDP", ra_number="1001", unit="USD", is_active=True)
    unemployment = Statistic(
        category_id=economy.id,
        name="Unemployment Rate",
        ra_number="1002",
        unit="%",
        is_active=True,
    )
    graduation = Statistic(
        category_id=education.id,
        name="Graduation Rate",
        ra_number="2001",
        unit="%",
        is_active=True,
    )
    db.add_all([gdp, unemployment, graduation])
    db.flush()

    TemplateRegistry(TemplateRepository(db)).seed_default_templates()
    templates = TemplateRepository(db)
    db.commit()

    return SeededCatalog(
        california=states["California"].id,
        texas=states["Texas"].id,
        new_york=states["New York"].id,
        nation=states["Nation"].id,
        economy=economy.id,
        education=education.id,
        gdp=gdp.id,
        unemployment=unemployment.id,
        graduation_rate=graduation.id,
        multi_template=templates.get_by_name(MULTI_CATEGORY_TEMPLATE.name).id,
        single_template=templates.get_by_name(SINGLE_CATEGORY_TEMPLATE.name).id,
        legacy_template=templates.get_by_name(LEGACY_EXPORT_TEMPLATE.name).id,
    )


@pytest.fixture()
def import_settings() -> CSVImportSettings:
    return CSVImportSettings(
        batch_size=2,
        max_validation_errors=50,
        log_validation_errors=False,
        implausible_value_threshold=1_000_000.0,
        validation_chunk_size=2,
        max_file_size_bytes=64 * 1024,
    )


@pytest.fixture()
def aggregation_settings() -> AggregationSettings:
    return AggregationSettings(cache_ttl_seconds=300.0, excluded_state_name="Nation", default_performer_limit=10)


@pytest.fixture()
def cache() -> TTLCache:
    return TTLCache(ttl_seconds=300.0)


@pytest.fixture()
def import_service(import_settings: CSVImportSettings, cache: TTLCache) -> CSVImportService:
    return CSVImportService(settings=import_settings, cache=cache)
