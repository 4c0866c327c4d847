"""
Row store exceptions.
"""

from __future__ import annotations


class RowStoreError(Exception):
    """Base exception for row store failures."""


class StoreReadError(RowStoreError):
    """Raised when a read against the row store fails."""


class StoreWriteError(RowStoreError):
    """
    Raised when creating a report or batch-inserting its entries fails.

    ``orphaned_report_id`` is set when the report row was created but its
    entries could not be inserted; that report exists without rows.
    """

    def __init__(self, message: str, *, orphaned_report_id: int | None = None) -> None:
        super().__init__(message)
        self.orphaned_report_id = orphaned_report_id


class StoreUpdateError(RowStoreError):
    """Raised when persisting a single entry's count fails."""


class EntryNotFoundError(StoreUpdateError):
    """Raised when an update matches no entry (unknown id or not assigned to caller)."""
