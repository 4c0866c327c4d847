"""
app/api/routers/exports.py

Download endpoints for the mismatch report, missing-counts worksheet and
assigned sheet.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from app.api.dependencies import get_current_principal, require_admin
from app.domain.inventory import EntryRecord, Principal
from app.services.export_service import (
    build_assigned_sheet_html,
    build_mismatch_csv,
    counts_needed_filename,
    mismatch_filename,
    missing_counts_filename,
    render_missing_counts_list_pdf,
    render_missing_counts_pdf,
)
from app.services.session_registry import SessionRegistry, get_session_registry
from app.stores.errors import StoreReadError

router = APIRouter(prefix="/reports/{file_id}/exports", tags=["exports"])


def _snapshot(registry: SessionRegistry, principal: Principal, file_id: int) -> tuple[EntryRecord, ...]:
    try:
        session = registry.session_with_report(principal, file_id)
    except StoreReadError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Export not generated: {exc}",
        ) from exc
    return session.state.snapshot()


def _attachment(filename: str) -> dict[str, str]:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


@router.get("/mismatch")
def export_mismatch(
    file_id: int,
    include_user: bool = Query(default=True),
    principal: Principal = Depends(require_admin),
    registry: SessionRegistry = Depends(get_session_registry),
) -> Response:
    """
    CSV of counted rows whose count differs from on hand.
    """

    content = build_mismatch_csv(_snapshot(registry, principal, file_id), include_user=include_user)
    return Response(
        content=content,
        media_type="text/csv",
        headers=_attachment(mismatch_filename()),
    )


@router.get("/missing-counts")
def export_missing_counts(
    file_id: int,
    layout: str = Query(default="two_column", pattern="^(two_column|list)$"),
    principal: Principal = Depends(get_current_principal),
    registry: SessionRegistry = Depends(get_session_registry),
) -> Response:
    """
    PDF worksheet of the caller's visible rows that have no count yet.
    """

    records = _snapshot(registry, principal, file_id)
    if layout == "list":
        content = render_missing_counts_list_pdf(records, user=principal.username)
        filename = missing_counts_filename()
    else:
        content = render_missing_counts_pdf(records, user=principal.username)
        filename = counts_needed_filename()
    return Response(
        content=content,
        media_type="application/pdf",
        headers=_attachment(filename),
    )


@router.get("/assigned-sheet")
def export_assigned_sheet(
    file_id: int,
    principal: Principal = Depends(get_current_principal),
    registry: SessionRegistry = Depends(get_session_registry),
) -> Response:
    html = build_assigned_sheet_html(_snapshot(registry, principal, file_id), principal.username)
    return Response(content=html, media_type="text/html")
