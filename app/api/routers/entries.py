"""
app/api/routers/entries.py

Entry listing and count entry endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.dependencies import get_current_principal
from app.domain.errors import EntryAccessError, EntryNotLoadedError
from app.domain.inventory import Principal
from app.schemas.inventory import CountUpdateRequest, EntryListResponse, EntryResponse
from app.services.count_session import CountSession
from app.services.entry_state import TrackedEntry
from app.services.session_registry import SessionRegistry, get_session_registry
from app.stores.errors import EntryNotFoundError, StoreUpdateError

router = APIRouter(prefix="/reports/{file_id}/entries", tags=["entries"])


def _entry_response(tracked: TrackedEntry, session: CountSession) -> EntryResponse:
    record = tracked.record
    return EntryResponse(
        id=record.id,
        upload_index=record.upload_index,
        sku=record.sku,
        description=record.description,
        on_hand=record.on_hand if session.principal.is_admin else None,
        assigned_to=record.assigned_to,
        count=record.count,
        entered_by=record.entered_by,
        status=tracked.count_status.value,
        color=tracked.color,
        sync_status=tracked.sync_status.value,
        sync_error=tracked.sync_error,
        editable=session.can_edit(record),
    )


@router.get("", response_model=EntryListResponse)
def list_entries(
    file_id: int,
    reload: bool = Query(default=True, description="Re-read rows from the store"),
    principal: Principal = Depends(get_current_principal),
    registry: SessionRegistry = Depends(get_session_registry),
) -> EntryListResponse:
    """
    Return the caller's visible rows of ``file_id`` in upload order.

    A failed page does not fail the request: the rows read so far are
    returned with ``complete`` set to false.
    """

    session = registry.session_for(principal)
    if reload or session.active_report_id != file_id:
        result = session.load_report(file_id)
        complete, error, pages = result.complete, result.error, result.pages
    elif session.last_load is not None and session.last_load.file_id == file_id:
        complete, error, pages = session.last_load.complete, session.last_load.error, 0
    else:
        complete, error, pages = True, None, 0

    return EntryListResponse(
        file_id=file_id,
        complete=complete,
        error=error,
        pages=pages,
        entries=[_entry_response(tracked, session) for tracked in session.state.tracked()],
    )


@router.patch("/{entry_id}", response_model=EntryResponse)
def update_count(
    file_id: int,
    entry_id: int,
    payload: CountUpdateRequest,
    principal: Principal = Depends(get_current_principal),
    registry: SessionRegistry = Depends(get_session_registry),
) -> EntryResponse:
    """
    Record a physical count for one entry.
    """

    session = registry.session_with_report(principal, file_id, require_complete=False)
    try:
        session.record_count(entry_id, payload.count)
    except EntryNotLoadedError as exc:
        loaded = session.last_load
        if loaded is not None and not loaded.complete:
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail=f"Report only partially loaded, reload and retry: {loaded.error}",
            ) from exc
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except EntryAccessError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=str(exc),
        ) from exc
    except EntryNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Count not saved: {exc}",
        ) from exc
    except StoreUpdateError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Count not saved, re-save or reload: {exc}",
        ) from exc

    return _entry_response(session.state.get(entry_id), session)
