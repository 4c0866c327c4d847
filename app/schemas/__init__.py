"""
app/schemas package marker.
"""

from app.schemas.inventory import (
    CountUpdateRequest,
    EntryListResponse,
    EntryResponse,
    LoginRequest,
    PrincipalResponse,
    ReportResponse,
    RowValidationErrorResponse,
    UploadSummaryResponse,
    UserResponse,
)

__all__ = [
    "CountUpdateRequest",
    "EntryListResponse",
    "EntryResponse",
    "LoginRequest",
    "PrincipalResponse",
    "ReportResponse",
    "RowValidationErrorResponse",
    "UploadSummaryResponse",
    "UserResponse",
]
