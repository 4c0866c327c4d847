"""
app/api/routers/reports.py

Report listing and spreadsheet upload endpoints.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Form, HTTPException, UploadFile, status

from app.api.dependencies import get_current_principal, get_spreadsheet_upload, require_admin
from app.config import get_upload_settings
from app.domain.errors import IngestError, UploadValidationError
from app.domain.inventory import Principal
from app.schemas.inventory import ReportResponse, RowValidationErrorResponse, UploadSummaryResponse
from app.services.upload_service import UploadService, get_upload_service
from app.stores import get_row_store
from app.stores.base import RowStore
from app.stores.errors import StoreReadError, StoreWriteError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("", response_model=list[ReportResponse])
def list_reports(
    _: Principal = Depends(get_current_principal),
    store: RowStore = Depends(get_row_store),
) -> list[ReportResponse]:
    """
    List uploaded reports, newest first.
    """

    try:
        reports = store.list_reports()
    except StoreReadError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Unable to load reports: {exc}",
        ) from exc
    return [
        ReportResponse(id=report.id, created_at=report.created_at, uploaded_by=report.uploaded_by)
        for report in reports
    ]


@router.post("", response_model=UploadSummaryResponse, status_code=status.HTTP_201_CREATED)
def upload_report(
    principal: Principal = Depends(require_admin),
    file: UploadFile = Depends(get_spreadsheet_upload),
    users: list[str] = Form(default=[]),
    upload_service: UploadService = Depends(get_upload_service),
) -> UploadSummaryResponse:
    """
    Create a report from a spreadsheet and split its rows across ``users``.
    """

    max_bytes = get_upload_settings().max_upload_bytes
    try:
        content = file.file.read(max_bytes + 1)
        if len(content) > max_bytes:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"File exceeds the {max_bytes} byte upload limit.",
            )
        summary = upload_service.upload(
            content=content,
            filename=file.filename,
            users=users,
            uploaded_by=principal,
        )
    except (UploadValidationError, IngestError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except StoreWriteError as exc:
        detail: dict[str, object] = {"message": str(exc)}
        if exc.orphaned_report_id is not None:
            detail["orphaned_report_id"] = exc.orphaned_report_id
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=detail,
        ) from exc
    except StoreReadError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Unable to load users: {exc}",
        ) from exc
    finally:
        file.file.close()

    return UploadSummaryResponse(
        report_id=summary.report_id,
        rows_inserted=summary.rows_inserted,
        rows_failed=summary.rows_failed,
        assignments=summary.assignments,
        validation_errors=[
            RowValidationErrorResponse(
                row_number=error.row_number,
                column=error.column,
                message=error.message,
                value=error.value,
            )
            for error in summary.validation_errors
        ],
    )
