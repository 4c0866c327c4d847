"""
Row store protocol shared by the PostgreSQL and Supabase backends.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Mapping, Protocol

from app.domain.inventory import EntryRecord, NewEntry, Principal, ReportSummary, UserAccount


class RowStore(Protocol):
    """
    Table-oriented remote store for users, reports and entries.

    Every method is a blocking call bounded by the configured store timeout.
    """

    def list_reports(self) -> list[ReportSummary]:
        """Reports ordered newest first."""
        ...

    def list_users(self) -> list[UserAccount]:
        ...

    def create_report(self, created_by: str) -> ReportSummary:
        ...

    def insert_entries(self, entries: Sequence[NewEntry]) -> int:
        """Insert one upload batch; returns the number of rows written."""
        ...

    def query_entries(
        self,
        *,
        file_id: int,
        assigned_to: str | None = None,
        offset: int = 0,
        limit: int = 1000,
    ) -> list[EntryRecord]:
        """One page of entries ordered by upload_index ascending."""
        ...

    def update_entry(
        self,
        entry_id: int,
        *,
        count: int | None,
        entered_by: str,
        assigned_to: str | None = None,
    ) -> EntryRecord:
        """
        Persist count/entered_by for one entry. When ``assigned_to`` is given
        the update only matches an entry assigned to that user.
        """
        ...

    def authenticate(self, username: str, password: str) -> Principal | None:
        ...


def entry_from_mapping(row: Mapping[str, Any]) -> EntryRecord:
    """
    Build an EntryRecord from a column->value mapping (ORM row or JSON object).
    """

    return EntryRecord(
        id=int(row["id"]),
        file_id=int(row["file_id"]),
        upload_index=int(row["upload_index"]),
        sku=str(row["sku"]),
        on_hand=_optional_int(row.get("on_hand")),
        description=row.get("description") or "",
        assigned_to=str(row["assigned_to"]),
        count=_optional_int(row.get("count")),
        entered_by=row.get("entered_by"),
    )


def _optional_int(value: Any) -> int | None:
    if value is None:
        return None
    return int(value)
