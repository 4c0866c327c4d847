"""Streamlit frontend for stock counts."""

from __future__ import annotations

import os
from typing import Any

import pandas as pd
import streamlit as st

from app.domain.errors import IngestError, InvalidCredentialsError, UploadValidationError
from app.domain.inventory import Principal
from app.logging_utils import configure_logging
from app.services.count_session import CountSession
from app.services.entry_state import TrackedEntry
from app.stores.errors import RowStoreError, StoreReadError, StoreUpdateError, StoreWriteError

st.set_page_config(page_title="Stock Count", page_icon="SC", layout="wide")

STATUS_LABELS = {
    "unset": "",
    "exact": "🟢 exact",
    "near": "🟡 within 10",
    "moderate": "🟠 within 20",
    "far": "🔴 off by more than 20",
}


@st.cache_resource(show_spinner=False)
def _load_backend_handles() -> dict[str, Any]:
    """Load backend services lazily to keep startup lightweight."""
    from app.config import get_row_store_settings  # noqa: PLC0415
    from app.services.auth_service import get_auth_service  # noqa: PLC0415
    from app.services.upload_service import get_upload_service  # noqa: PLC0415
    from app.stores import get_row_store  # noqa: PLC0415

    configure_logging(os.getenv("LOG_LEVEL", "INFO"))
    return {
        "store": get_row_store(),
        "auth": get_auth_service(),
        "upload": get_upload_service(),
        "page_size": get_row_store_settings().page_size,
    }


def _init_state() -> None:
    defaults: dict[str, Any] = {
        "principal": None,
        "count_session": None,
        "load_warning": None,
        "upload_message": None,
    }
    for key, value in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = value


def _report_label(report: Any) -> str:
    created = report.created_at.strftime("%Y-%m-%d %H:%M:%S") if report.created_at else "unknown date"
    return f"#{report.id} · {created}" + (f" · {report.uploaded_by}" if report.uploaded_by else "")


def _entries_frame(tracked: tuple[TrackedEntry, ...], session: CountSession) -> pd.DataFrame:
    rows = []
    for item in tracked:
        record = item.record
        row: dict[str, Any] = {
            "id": record.id,
            "SKU": record.sku,
            "Description": record.description,
        }
        if session.principal.is_admin:
            row["On Hand"] = record.on_hand
            row["Assigned To"] = record.assigned_to
        row["Count"] = record.count
        row["Status"] = STATUS_LABELS[item.count_status.value]
        row["Saved"] = item.sync_status.value
        rows.append(row)
    frame = pd.DataFrame(rows)
    if not frame.empty:
        frame["Count"] = frame["Count"].astype("Int64")
    return frame


def _render_login() -> None:
    st.title("Stock Count")
    with st.form("login"):
        username = st.text_input("Username")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Login", use_container_width=True)

    if not submitted:
        return

    handles = _load_backend_handles()
    try:
        principal: Principal = handles["auth"].authenticate(username, password)
    except InvalidCredentialsError as exc:
        st.error(str(exc))
        return
    except StoreReadError as exc:
        st.error(f"Unable to verify credentials: {exc}")
        return

    st.session_state.principal = principal
    st.session_state.count_session = CountSession(
        store=handles["store"],
        principal=principal,
        page_size=handles["page_size"],
    )
    st.rerun()


def _render_upload(principal: Principal) -> None:
    handles = _load_backend_handles()
    st.subheader("Upload Inventory File")
    try:
        usernames = [user.username for user in handles["store"].list_users()]
    except StoreReadError as exc:
        st.error(f"Unable to load users: {exc}")
        return

    with st.form("upload", clear_on_submit=True):
        uploaded = st.file_uploader("Inventory file", type=["csv", "xls", "xlsx", "xml"])
        selected = st.multiselect("Select Active Users", options=usernames)
        submitted = st.form_submit_button("Upload")

    if not submitted:
        return

    try:
        summary = handles["upload"].upload(
            content=uploaded.getvalue() if uploaded is not None else None,
            filename=uploaded.name if uploaded is not None else None,
            users=selected,
            uploaded_by=principal,
        )
    except (UploadValidationError, IngestError) as exc:
        st.error(str(exc))
        return
    except StoreWriteError as exc:
        st.error(f"Upload failed: {exc}")
        return

    assigned = ", ".join(f"{user}: {count}" for user, count in summary.assignments.items())
    st.session_state.upload_message = (
        f"Report #{summary.report_id} created with {summary.rows_inserted} rows "
        f"({summary.rows_failed} skipped). Assigned {assigned}."
    )
    st.rerun()


def _cell_count(value: Any) -> int | None:
    return None if value is None or pd.isna(value) else int(value)


def _save_edits(session: CountSession, before: pd.DataFrame, after: pd.DataFrame) -> None:
    failures: list[str] = []
    for position in after.index:
        count = _cell_count(after.at[position, "Count"])
        if count == _cell_count(before.at[position, "Count"]):
            continue
        try:
            session.record_count(int(after.at[position, "id"]), count)
        except StoreUpdateError as exc:
            failures.append(f"{after.at[position, 'SKU']}: {exc}")
    if failures:
        st.error("Some counts were not saved. Re-save or reload the report.\n\n" + "\n".join(failures))


def _render_downloads(session: CountSession) -> None:
    from app.services.export_service import (  # noqa: PLC0415
        build_assigned_sheet_html,
        build_mismatch_csv,
        counts_needed_filename,
        mismatch_filename,
        missing_counts_filename,
        render_missing_counts_list_pdf,
        render_missing_counts_pdf,
    )

    loaded = session.last_load
    if loaded is not None and not loaded.complete:
        st.warning("Downloads are unavailable until the report loads completely. Reload the report.")
        return

    records = session.state.snapshot()
    user = session.principal.username
    dcol1, dcol2, dcol3, dcol4 = st.columns(4)
    if session.principal.is_admin:
        with dcol1:
            st.download_button(
                label="Mismatch Report (CSV)",
                data=build_mismatch_csv(records).encode("utf-8"),
                file_name=mismatch_filename(),
                mime="text/csv",
                use_container_width=True,
            )
    with dcol2:
        st.download_button(
            label="Counts Needed (PDF)",
            data=render_missing_counts_pdf(records, user=user),
            file_name=counts_needed_filename(),
            mime="application/pdf",
            use_container_width=True,
        )
    with dcol3:
        st.download_button(
            label="Missing Counts List (PDF)",
            data=render_missing_counts_list_pdf(records, user=user),
            file_name=missing_counts_filename(),
            mime="application/pdf",
            use_container_width=True,
        )
    with dcol4:
        st.download_button(
            label="My Assigned Rows (HTML)",
            data=build_assigned_sheet_html(records, user).encode("utf-8"),
            file_name=f"Assigned_{user}.html",
            mime="text/html",
            use_container_width=True,
        )


def _render_main(principal: Principal, session: CountSession) -> None:
    handles = _load_backend_handles()
    hcol1, hcol2 = st.columns([4, 1])
    with hcol1:
        st.caption(f"Logged in as: {principal.username} ({principal.role})")
    with hcol2:
        if st.button("Logout", use_container_width=True):
            for key in ("principal", "count_session", "load_warning", "upload_message"):
                st.session_state[key] = None
            st.rerun()

    if principal.is_admin:
        _render_upload(principal)
        if st.session_state.upload_message:
            st.success(st.session_state.upload_message)

    try:
        reports = handles["store"].list_reports()
    except StoreReadError as exc:
        st.error(f"Unable to load reports: {exc}")
        return

    if not reports:
        st.info("No reports uploaded yet.")
        return

    labels = {report.id: _report_label(report) for report in reports}
    ids = list(labels)
    default_index = ids.index(session.active_report_id) if session.active_report_id in labels else None
    selected_id = st.selectbox(
        "Select Report",
        options=ids,
        index=default_index,
        format_func=lambda report_id: labels[report_id],
        placeholder="-- Select a Report --",
    )
    reload_clicked = st.button("Reload report")

    if selected_id is not None and (selected_id != session.active_report_id or reload_clicked):
        with st.spinner("Loading entries..."):
            result = session.load_report(selected_id)
        st.session_state.load_warning = (
            None if result.complete else f"Only {len(result.rows)} rows loaded: {result.error}"
        )

    if st.session_state.load_warning:
        st.warning(st.session_state.load_warning)

    tracked = session.state.tracked()
    if not tracked:
        st.info("No report selected or no entries available yet.")
        return

    before = _entries_frame(tracked, session)
    disabled = [column for column in before.columns if column != "Count"]
    after = st.data_editor(
        before,
        key=f"entries_{session.active_report_id}",
        hide_index=True,
        use_container_width=True,
        disabled=disabled,
        column_config={
            "id": None,
            "Count": st.column_config.NumberColumn("Count", min_value=0, step=1, format="%d"),
        },
    )
    _save_edits(session, before, after)

    pending = session.state.unconfirmed()
    if pending:
        st.warning(f"{len(pending)} count(s) not confirmed by the store. Re-save or reload the report.")

    _render_downloads(session)


_init_state()

if st.session_state.principal is None or st.session_state.count_session is None:
    _render_login()
else:
    try:
        _render_main(st.session_state.principal, st.session_state.count_session)
    except RowStoreError as exc:
        st.error(f"Row store error: {exc}")
