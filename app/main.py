from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI

from app.config import ROW_STORE_BACKENDS


def _validate_env() -> None:
    """
    Validate required environment variables at startup.

    Runs before any store or database connection is initialised.
    Raises RuntimeError listing every missing or invalid variable so the
    operator can fix all problems in one restart cycle.

    Rules:
    - ROW_STORE_BACKEND must be one of the supported backends.
    - The postgres backend needs a database URL.
    - The supabase backend needs SUPABASE_URL and an API key.
    """

    from db.config import load_env_files

    load_env_files()

    errors: list[str] = []

    backend = os.getenv("ROW_STORE_BACKEND", "postgres").strip().lower()
    if backend not in ROW_STORE_BACKENDS:
        errors.append(
            f"ROW_STORE_BACKEND='{backend}' is not valid. "
            f"Allowed values: {sorted(ROW_STORE_BACKENDS)}."
        )

    if backend == "postgres":
        database_urls = (
            os.getenv("DATABASE_URL", "").strip(),
            os.getenv("SUPABASE_DB_URL", "").strip(),
            os.getenv("LOCAL_DATABASE_URL", "").strip(),
        )
        if not any(database_urls):
            errors.append(
                "No database URL configured. Set DATABASE_URL, SUPABASE_DB_URL or LOCAL_DATABASE_URL."
            )

    if backend == "supabase":
        if not os.getenv("SUPABASE_URL", "").strip():
            errors.append("SUPABASE_URL is not set but ROW_STORE_BACKEND is supabase.")
        api_key = os.getenv("SUPABASE_API_KEY", "").strip() or os.getenv("SUPABASE_ANON_KEY", "").strip()
        if not api_key:
            errors.append(
                "Supabase API key is not set. Provide SUPABASE_API_KEY or SUPABASE_ANON_KEY."
            )

    if errors:
        raise RuntimeError(
            "Startup validation failed, missing or invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    from app.logging_utils import configure_logging

    configure_logging(os.getenv("LOG_LEVEL", "INFO"))


def _check_db() -> None:
    """Open a session and run SELECT 1. Raises RuntimeError if the DB is unreachable."""
    from sqlalchemy import text
    from sqlalchemy.exc import SQLAlchemyError

    from db.session import SessionLocal

    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
    except SQLAlchemyError as exc:
        raise RuntimeError("Database unavailable.") from exc


def _check_schema() -> None:
    """
    Compare Base.metadata table names against the live DB schema.

    Every table registered on Base.metadata must exist in the database.
    Does NOT auto-migrate.
    """
    from sqlalchemy import inspect as sa_inspect

    import db.models  # noqa: F401  registers all ORM models on Base.metadata
    from db.base import Base
    from db.session import get_engine

    inspector = sa_inspect(get_engine())
    actual: set[str] = set(inspector.get_table_names())
    expected: set[str] = set(Base.metadata.tables.keys())
    missing = expected - actual

    if missing:
        log = logging.getLogger(__name__)
        log.critical(
            "Schema mismatch: %d table(s) defined in ORM metadata are absent from "
            "the database: %s. Run 'alembic upgrade head' and restart.",
            len(missing),
            ", ".join(sorted(missing)),
        )
        raise RuntimeError(
            f"Schema mismatch: {len(missing)} table(s) missing from the database "
            f"({', '.join(sorted(missing))}). Run migrations and restart."
        )


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Validate DB connectivity and schema on boot when the postgres backend is active."""
    from app.config import get_row_store_settings

    log = logging.getLogger(__name__)
    backend = get_row_store_settings().backend
    if backend == "postgres":
        _check_db()
        log.info("Database connectivity confirmed")
        _check_schema()
        log.info("Database schema validated")
    log.info("Row store backend: %s", backend)
    yield


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _validate_env()
    _configure_logging()

    application = FastAPI(
        title="Stock Count API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.routers import (
        auth_router,
        entries_router,
        exports_router,
        reports_router,
        users_router,
    )

    application.include_router(auth_router)
    application.include_router(users_router)
    application.include_router(reports_router)
    application.include_router(entries_router)
    application.include_router(exports_router)

    @application.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return application


app = create_app()
