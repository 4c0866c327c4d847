"""
Row store package exports and the env-driven backend factory.
"""

from __future__ import annotations

from functools import lru_cache

from app.stores.base import RowStore
from app.stores.errors import (
    EntryNotFoundError,
    RowStoreError,
    StoreReadError,
    StoreUpdateError,
    StoreWriteError,
)


@lru_cache(maxsize=1)
def get_row_store() -> RowStore:
    """
    Build and cache the row store selected by ROW_STORE_BACKEND.
    """

    from app.config import get_row_store_settings, get_supabase_settings

    settings = get_row_store_settings()
    if settings.backend == "supabase":
        from app.stores.supabase_store import SupabaseRowStore

        return SupabaseRowStore(
            settings=get_supabase_settings(),
            timeout_seconds=settings.timeout_seconds,
        )

    from app.stores.sql_store import SQLRowStore

    return SQLRowStore(insert_batch_size=settings.insert_batch_size)


__all__ = [
    "EntryNotFoundError",
    "RowStore",
    "RowStoreError",
    "StoreReadError",
    "StoreUpdateError",
    "StoreWriteError",
    "get_row_store",
]
