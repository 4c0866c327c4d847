"""
app/schemas/inventory.py

Request and response schemas for the inventory count endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class PrincipalResponse(BaseModel):
    """
    API response model for the authenticated caller.
    """

    username: str
    role: str
    is_admin: bool


class UserResponse(BaseModel):
    username: str
    role: str


class ReportResponse(BaseModel):
    """
    API response model for one uploaded report.
    """

    id: int
    created_at: datetime | None = None
    uploaded_by: str | None = None


class RowValidationErrorResponse(BaseModel):
    """
    API response model for one row-level validation error.
    """

    row_number: int = Field(..., ge=1)
    message: str
    column: str | None = None
    value: str | None = None


class UploadSummaryResponse(BaseModel):
    """
    API response model for a completed upload.
    """

    report_id: int
    rows_inserted: int = Field(..., ge=0)
    rows_failed: int = Field(..., ge=0)
    assignments: dict[str, int] = Field(default_factory=dict)
    validation_errors: list[RowValidationErrorResponse] = Field(default_factory=list)


class EntryResponse(BaseModel):
    """
    API response model for one visible entry.

    ``on_hand`` is null for non-admin callers.
    """

    id: int
    upload_index: int = Field(..., ge=0)
    sku: str
    description: str = ""
    on_hand: int | None = None
    assigned_to: str
    count: int | None = None
    entered_by: str | None = None
    status: str
    color: str
    sync_status: str = "confirmed"
    sync_error: str | None = None
    editable: bool = True


class EntryListResponse(BaseModel):
    """
    API response model for the loaded rows of one report.

    ``complete`` is False when a page failed mid-load; ``entries`` then holds
    the rows read before the failure and ``error`` says why.
    """

    file_id: int
    complete: bool
    error: str | None = None
    pages: int = Field(..., ge=0)
    entries: list[EntryResponse] = Field(default_factory=list)


class CountUpdateRequest(BaseModel):
    """
    New count for one entry. Blank or non-integer input clears the count.
    """

    count: Any = None
