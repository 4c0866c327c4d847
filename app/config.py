"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files

ROW_STORE_BACKENDS = {"postgres", "supabase"}


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
    """
    Read a float from environment variables with safe fallback.
    """

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


def _get_optional_str_env(name: str) -> str | None:
    """
    Read an optional string value from environment variables.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


def _require_row_store_backend() -> str:
    """
    Read and validate ROW_STORE_BACKEND. Defaults to 'postgres'.
    """

    backend = _get_str_env("ROW_STORE_BACKEND", "postgres").lower()
    if backend not in ROW_STORE_BACKENDS:
        raise RuntimeError(
            f"ROW_STORE_BACKEND '{backend}' is not valid. "
            f"Allowed values: {sorted(ROW_STORE_BACKENDS)}."
        )
    return backend


@dataclass(frozen=True)
class RowStoreSettings:
    """
    Row store selection and shared I/O limits.

    page_size is the window used when paging through a report's entries;
    the store may cap result sizes, so loads always page.
    """

    backend: str = "postgres"
    timeout_seconds: float = 15.0
    page_size: int = 1000
    insert_batch_size: int = 1000


@dataclass(frozen=True)
class SupabaseSettings:
    """
    Supabase (PostgREST) backend settings.
    """

    url: str | None = None
    api_key: str | None = None
    schema: str = "public"
    max_retries: int = 0
    backoff_initial_seconds: float = 0.5
    backoff_multiplier: float = 2.0


@dataclass(frozen=True)
class UploadSettings:
    """
    Runtime settings for spreadsheet uploads.
    """

    max_validation_errors: int = 500
    log_validation_errors: bool = True
    max_upload_bytes: int = 20 * 1024 * 1024


@dataclass(frozen=True)
class ExportSettings:
    """
    Rendering settings for printable worksheets.
    """

    dpi: int = 100
    font_path: str | None = None
    date_format: str = "%m/%d/%Y"


@lru_cache(maxsize=1)
def get_row_store_settings() -> RowStoreSettings:
    """
    Return cached row store settings from environment variables.
    """

    return RowStoreSettings(
        backend=_require_row_store_backend(),
        timeout_seconds=max(1.0, _get_float_env("ROW_STORE_TIMEOUT_SECONDS", 15.0)),
        page_size=max(1, _get_int_env("ENTRY_PAGE_SIZE", 1000)),
        insert_batch_size=max(1, _get_int_env("ENTRY_INSERT_BATCH_SIZE", 1000)),
    )


@lru_cache(maxsize=1)
def get_supabase_settings() -> SupabaseSettings:
    """
    Return Supabase connection settings from environment variables.
    """

    return SupabaseSettings(
        url=_get_optional_str_env("SUPABASE_URL"),
        api_key=_get_optional_str_env("SUPABASE_API_KEY") or _get_optional_str_env("SUPABASE_ANON_KEY"),
        schema=_get_str_env("SUPABASE_SCHEMA", "public"),
        max_retries=max(0, _get_int_env("SUPABASE_MAX_RETRIES", 0)),
        backoff_initial_seconds=max(0.1, _get_float_env("SUPABASE_BACKOFF_INITIAL_SECONDS", 0.5)),
        backoff_multiplier=max(1.0, _get_float_env("SUPABASE_BACKOFF_MULTIPLIER", 2.0)),
    )


@lru_cache(maxsize=1)
def get_upload_settings() -> UploadSettings:
    """
    Return cached upload settings from environment variables.
    """

    return UploadSettings(
        max_validation_errors=max(1, _get_int_env("UPLOAD_MAX_VALIDATION_ERRORS", 500)),
        log_validation_errors=_get_bool_env("UPLOAD_LOG_VALIDATION_ERRORS", True),
        max_upload_bytes=max(1024, _get_int_env("UPLOAD_MAX_BYTES", 20 * 1024 * 1024)),
    )


@lru_cache(maxsize=1)
def get_export_settings() -> ExportSettings:
    """
    Return worksheet rendering settings from environment variables.
    """

    return ExportSettings(
        dpi=min(300, max(72, _get_int_env("EXPORT_PDF_DPI", 100))),
        font_path=_get_optional_str_env("EXPORT_FONT_PATH"),
        date_format=_get_str_env("EXPORT_DATE_FORMAT", "%m/%d/%Y"),
    )
