"""
app/domain/inventory.py

Domain models shared by ingestion, the row stores, count sessions and exports.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


class Role:
    ADMIN = "admin"
    USER = "user"


@dataclass(frozen=True)
class Principal:
    """
    The authenticated caller.
    """

    username: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


@dataclass(frozen=True)
class UserAccount:
    username: str
    role: str = Role.USER


@dataclass(frozen=True)
class ReportSummary:
    """
    One uploaded spreadsheet as listed to users.
    """

    id: int
    created_at: datetime | None
    uploaded_by: str | None = None


@dataclass(frozen=True)
class ParsedRow:
    """
    A spreadsheet row that passed validation, before assignment.
    """

    sku: str
    on_hand: int
    description: str
    count: int | None = None


@dataclass(frozen=True)
class NewEntry:
    """
    Fully populated entry ready for the batch insert of one upload.
    """

    file_id: int
    upload_index: int
    sku: str
    on_hand: int | None
    description: str
    assigned_to: str
    count: int | None = None
    entered_by: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "file_id": self.file_id,
            "upload_index": self.upload_index,
            "sku": self.sku,
            "on_hand": self.on_hand,
            "description": self.description,
            "assigned_to": self.assigned_to,
            "count": self.count,
            "entered_by": self.entered_by,
        }


@dataclass(frozen=True)
class EntryRecord:
    """
    A persisted entry as read back from the row store.
    """

    id: int
    file_id: int
    upload_index: int
    sku: str
    on_hand: int | None
    description: str
    assigned_to: str
    count: int | None = None
    entered_by: str | None = None


@dataclass(frozen=True)
class RowValidationError:
    """
    One spreadsheet row validation error detail.
    """

    row_number: int
    message: str
    column: str | None = None
    value: str | None = None


@dataclass(frozen=True)
class IngestResult:
    """
    Valid rows of one spreadsheet plus what was dropped.
    """

    rows: list[ParsedRow]
    rows_failed: int
    validation_errors: list[RowValidationError] = field(default_factory=list)


@dataclass(frozen=True)
class UploadSummary:
    """
    End-of-run upload summary.
    """

    report_id: int
    rows_inserted: int
    rows_failed: int
    assignments: dict[str, int]
    validation_errors: list[RowValidationError] = field(default_factory=list)
