"""
Domain package exports.
"""

from app.domain.inventory import (
    EntryRecord,
    IngestResult,
    NewEntry,
    ParsedRow,
    Principal,
    ReportSummary,
    Role,
    RowValidationError,
    UploadSummary,
    UserAccount,
)

__all__ = [
    "EntryRecord",
    "IngestResult",
    "NewEntry",
    "ParsedRow",
    "Principal",
    "ReportSummary",
    "Role",
    "RowValidationError",
    "UploadSummary",
    "UserAccount",
]
