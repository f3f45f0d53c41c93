"""
stateimport/main.py

FastAPI application factory.

Run with ``uvicorn --factory stateimport.main:create_app``.
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy import inspect as sa_inspect
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from stateimport.config import get_aggregation_settings
from stateimport.services.cache import TTLCache
from stateimport.services.csv_import_service import build_csv_import_service

logger = logging.getLogger(__name__)


def _validate_env() -> None:
    """
    Validate required environment variables before any engine is built.

    Raises RuntimeError listing every missing or invalid variable so the
    operator can fix all problems in one restart cycle.
    """

    from db.config import load_env_files

    load_env_files()

    errors: list[str] = []

    database_url = os.getenv("DATABASE_URL", "").strip()
    cloud_database_url = os.getenv("CLOUD_DATABASE_URL", "").strip()
    local_database_url = os.getenv("LOCAL_DATABASE_URL", "").strip()
    if not (database_url or cloud_database_url or local_database_url):
        errors.append(
            "No database URL configured. Set DATABASE_URL, CLOUD_DATABASE_URL or LOCAL_DATABASE_URL."
        )

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    if log_level not in logging.getLevelNamesMapping():
        errors.append(f"LOG_LEVEL='{log_level}' is not a valid logging level.")

    if errors:
        raise RuntimeError(
            "Startup validation failed, missing or invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _check_db(session_factory: sessionmaker[Session]) -> None:
    """Open a session and run SELECT 1. Raises RuntimeError if the DB is unreachable."""

    try:
        db = session_factory()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
    except Exception as exc:
        raise RuntimeError("Database unavailable.") from exc


def _check_schema(engine: Engine) -> None:
    """
    Every table registered on Base.metadata must exist in the database.

    Does NOT auto-migrate.
    """

    import db.models  # noqa: F401  registers all ORM models on Base.metadata
    from db.base import Base

    actual = set(sa_inspect(engine).get_table_names())
    missing = set(Base.metadata.tables.keys()) - actual
    if missing:
        logger.critical(
            "Schema mismatch: %d table(s) absent from the database: %s. "
            "Run 'alembic upgrade head' and restart.",
            len(missing),
            ", ".join(sorted(missing)),
        )
        raise RuntimeError(
            f"Schema mismatch: {len(missing)} table(s) missing from the database "
            f"({', '.join(sorted(missing))}). Run migrations and restart."
        )


def create_app(
    session_factory: sessionmaker[Session] | None = None,
    cache: TTLCache | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    When ``session_factory`` is omitted the engine is built from the
    environment and connectivity plus schema are checked on startup.
    """

    engine: Engine | None = None
    if session_factory is None:
        _validate_env()
        _configure_logging()

        from db.session import create_db_engine, create_session_factory

        engine = create_db_engine()
        session_factory = create_session_factory(engine)

    if cache is None:
        cache = TTLCache(ttl_seconds=get_aggregation_settings().cache_ttl_seconds)

    @asynccontextmanager
    async def lifespan(application: FastAPI) -> AsyncIterator[None]:
        if engine is not None:
            _check_db(session_factory)
            logger.info("Database connectivity confirmed")
            _check_schema(engine)
            logger.info("Database schema validated")
        try:
            yield
        finally:
            application.state.cache.clear()
            if engine is not None:
                engine.dispose()
                logger.info("Database engine disposed")

    application = FastAPI(
        title="State Statistics Import API",
        version="1.0.0",
        lifespan=lifespan,
    )
    application.state.session_factory = session_factory
    application.state.cache = cache
    application.state.csv_import_service = build_csv_import_service(cache)

    from stateimport.api.routers import aggregation_router, csv_imports_router

    application.include_router(csv_imports_router)
    application.include_router(aggregation_router)

    @application.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return application
